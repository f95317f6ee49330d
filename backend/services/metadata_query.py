"""
Format metadata lookup via ``yt-dlp -J``.

A one-shot request/response call: no session, no progress relay. Any
failure surfaces as MetadataFetchError for the API layer to report.
"""
import json
import logging

from constants import StatusMessages
from dtos.response.download_response import FormatsResponse
from exceptions import MetadataFetchError
from workers.process_runner import ProcessRunner, RunFailure

logger = logging.getLogger(__name__)


class MetadataQuery:
    """Fetches title, thumbnail and available formats for a URL"""

    def __init__(self, runner: ProcessRunner, ytdlp_binary: str = 'yt-dlp'):
        self.runner = runner
        self.ytdlp_binary = ytdlp_binary

    async def fetch_formats(self, url: str) -> FormatsResponse:
        """
        Ask yt-dlp for the media's metadata and keep the parts the client needs.

        Args:
            url: Media page URL

        Returns:
            FormatsResponse

        Raises:
            MetadataFetchError: if the process fails or its output is unusable
        """
        outcome = await self.runner.run(self.ytdlp_binary, ['-J', url])

        if isinstance(outcome, RunFailure):
            logger.error(f"Error fetching formats for {url}: {outcome.message}")
            raise MetadataFetchError(url, StatusMessages.METADATA_FAILED, reason=outcome.to_exception().message)

        try:
            info = json.loads(outcome.stdout)
        except json.JSONDecodeError as e:
            logger.error(f"yt-dlp returned invalid JSON for {url}: {e}")
            raise MetadataFetchError(url, StatusMessages.METADATA_FAILED, reason=f"Invalid JSON: {e}")

        if not isinstance(info, dict):
            raise MetadataFetchError(url, StatusMessages.METADATA_FAILED, reason="Unexpected metadata payload")

        formats = info.get('formats') or []
        return FormatsResponse(
            title=info.get('title'),
            thumbnail=info.get('thumbnail'),
            formats=[f for f in formats if isinstance(f, dict)],
        )
