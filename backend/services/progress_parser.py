"""
yt-dlp progress line parser.

Turns lines such as ``[download]  42.5% of 10.00MiB at 1.00MiB/s ETA 00:05``
into a percentage. Anything else is simply not progress. Also recognises
the notice yt-dlp prints when --max-filesize skips a download.
"""
import re
from typing import Optional

_PROGRESS_PATTERN = re.compile(r'\[download\]\s+(\d+(?:\.\d+)?)%\s+of')
_SIZE_LIMIT_PATTERN = re.compile(r'File is larger than max-filesize')


def parse_progress(line: str) -> Optional[float]:
    """
    Extract the percent-complete value from a yt-dlp output line.

    Args:
        line: One line of yt-dlp stdout

    Returns:
        Percentage clamped to 0-100, or None if the line carries no progress
    """
    if not line:
        return None

    match = _PROGRESS_PATTERN.search(line)
    if not match:
        return None

    return min(max(float(match.group(1)), 0.0), 100.0)


def is_size_limit_abort(line: str) -> bool:
    """
    True for the notice yt-dlp prints when --max-filesize skips a download.

    yt-dlp still exits 0 in that case, so this line is the only signal.
    """
    return bool(line) and _SIZE_LIMIT_PATTERN.search(line) is not None
