"""
Download Response DTOs

DTOs for the job submission and format query endpoints.
"""

from pydantic import BaseModel, Field
from typing import Any, List, Optional


class DownloadAccepted(BaseModel):
    """Acknowledgment returned when a job has been queued for execution."""

    message: str = Field(description="Human-readable acknowledgment")
    job_id: str = Field(description="Identifier of the accepted job (for log correlation)")


class FormatsResponse(BaseModel):
    """
    Response DTO for available formats of a media URL.

    ``formats`` is passed through from yt-dlp unchanged so the client can
    pick exact format ids for expert mode.
    """

    title: Optional[str] = Field(None, description="Media title")
    thumbnail: Optional[str] = Field(None, description="Thumbnail URL")
    formats: List[dict[str, Any]] = Field(default_factory=list, description="yt-dlp format descriptors")
