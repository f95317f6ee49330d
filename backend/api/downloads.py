"""
Download and format lookup API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from constants import HTTPStatus, StatusMessages
from dependencies import get_job_orchestrator, get_metadata_query
from dtos.request.download_request import DownloadRequest, FormatsRequest
from dtos.response.download_response import DownloadAccepted, FormatsResponse
from services.job_orchestrator import JobOrchestrator
from services.metadata_query import MetadataQuery
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/get-formats", response_model=FormatsResponse)
@handle_api_errors("Format lookup")
async def get_formats(
    request: FormatsRequest,
    query: MetadataQuery = Depends(get_metadata_query)
):
    """
    Fetch title, thumbnail and available formats for a media URL.

    Runs synchronously from the client's point of view; no session needed.

    Raises:
        HTTPException: 400 if url is missing, 500 if yt-dlp fails
    """
    if not request.url:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="url is required.")

    return await query.fetch_formats(request.url)


@router.post("/download", status_code=HTTPStatus.ACCEPTED, response_model=DownloadAccepted)
@handle_api_errors("Download request")
async def submit_download(
    request: DownloadRequest,
    orchestrator: JobOrchestrator = Depends(get_job_orchestrator)
):
    """
    Queue a download job for a connected WebSocket session.

    The job runs in the background; progress and the final result are pushed
    to the session. Validation problems are all reported together.

    Raises:
        HTTPException: 400 listing every invalid field
    """
    logger.info(f"Received /download request for session {request.session_id}: {request.url}")
    job = orchestrator.submit(request)
    return DownloadAccepted(message=StatusMessages.ACCEPTED, job_id=job.job_id)
