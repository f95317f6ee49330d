"""
Output filename arbitration.

Turns an untrusted display title into a filesystem-safe name and picks a
name that does not collide with an existing artifact.

Known limitation: unique_name() checks existence but does not create the
file, so two concurrent jobs with the same sanitized title can pick the
same name. yt-dlp creates the file later, outside this module.
"""
from pathlib import Path
import logging

from constants import FilenameConfig

logger = logging.getLogger(__name__)

_FORBIDDEN = str.maketrans({ch: FilenameConfig.REPLACEMENT for ch in FilenameConfig.FORBIDDEN_CHARACTERS})


def sanitize_title(title: str) -> str:
    """
    Replace path/shell-hostile characters and cap the length.

    Truncation applies to the sanitized string.

    Args:
        title: Untrusted title from the client

    Returns:
        Title safe to use as a filename stem
    """
    return title.translate(_FORBIDDEN)[:FilenameConfig.MAX_TITLE_LENGTH]


def unique_name(directory: Path | str, safe_title: str, extension: str) -> str:
    """
    Find the first unused ``title.ext`` / ``title (N).ext`` in directory.

    Args:
        directory: Directory the file will be written to
        safe_title: Already-sanitized filename stem
        extension: Extension without the leading dot

    Returns:
        Bare filename (not a path)
    """
    directory = Path(directory)
    candidate = f"{safe_title}.{extension}"
    counter = 1
    while (directory / candidate).exists():
        candidate = f"{safe_title} ({counter}).{extension}"
        counter += 1

    if counter > 1:
        logger.debug(f"Name collision for {safe_title}.{extension}, using {candidate}")
    return candidate
