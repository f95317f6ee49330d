"""
Application-wide constants.

This module centralizes the magic strings and numbers shared between the
job pipeline, the WebSocket layer and the API.
"""
from enum import Enum


class NotificationType(str, Enum):
    """Discriminator for server -> client WebSocket messages"""

    CONNECTION_ACK = 'connection_ack'
    STATUS = 'status'
    PROGRESS = 'progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


class FailureKind(str, Enum):
    """Ways a single external process invocation can fail"""

    EXIT_NONZERO = 'EXIT_NONZERO'  # Process ran and exited with a non-zero code
    TIMEOUT = 'TIMEOUT'            # Killed after exceeding the wall-clock limit
    SPAWN_ERROR = 'SPAWN_ERROR'    # Binary missing, not executable, etc.


class YtDlpFormats:
    """Format selectors and output containers passed to yt-dlp"""

    # best mp4 video+audio -> best mp4 -> best overall
    SIMPLE_VIDEO_SELECTOR = 'bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best'
    SIMPLE_AUDIO_FORMAT = 'mp3'
    BEST_AUDIO_QUALITY = '0'
    MERGED_VIDEO_CONTAINER = 'mp4'


class FilenameConfig:
    """Output filename constraints"""

    FORBIDDEN_CHARACTERS = '\\/:*?"<>|'
    REPLACEMENT = '_'
    MAX_TITLE_LENGTH = 100
    EXTENSION_PATTERN = r'^[A-Za-z0-9]+$'  # Bare extension, no dots or separators


class WebSocketConfig:
    """WebSocket session configuration"""

    SEND_QUEUE_SIZE = 1000  # Per-session queued messages before dropping


class StatusMessages:
    """User-facing notification texts"""

    PREPARING = 'Preparing download...'
    ACCEPTED = 'Download request accepted'
    ARTIFACT_MISSING = 'Download finished, but the file could not be found on the server.'
    FILE_TOO_LARGE = 'The file is larger than the maximum allowed download size.'
    METADATA_FAILED = (
        'Failed to fetch media information. Check that the URL is valid '
        'and the media is not private.'
    )
    HEALTH = 'Backend server is running.'


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    ACCEPTED = 202

    # Client Errors
    BAD_REQUEST = 400

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
