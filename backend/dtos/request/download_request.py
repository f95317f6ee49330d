"""
Download Request DTOs

DTOs for the job submission and format query endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class DownloadRequest(BaseModel):
    """
    Request DTO for submitting a download job.

    Every field is optional at the HTTP boundary so that the job orchestrator
    can report all missing/invalid fields together instead of failing on the
    first one. ``options`` is parsed into a typed variant during validation.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "session_id": "3f1c0c7e-8a53-4f67-9a8a-2d3b1b7c0f11",
                "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "title": "My video",
                "options": {"type": "simple", "ext": "mp4"}
            }
        }
    )

    session_id: Optional[str] = Field(
        None,
        alias="clientId",
        description="Session id received in the connection_ack message"
    )
    url: Optional[str] = Field(None, description="Media page URL")
    title: Optional[str] = Field(None, description="Display title used to name the output file")
    options: Optional[dict[str, Any]] = Field(None, description="Encoding options (simple, expert_video, expert_audio)")


class FormatsRequest(BaseModel):
    """Request DTO for fetching available formats of a URL."""

    url: Optional[str] = Field(None, description="Media page URL")
