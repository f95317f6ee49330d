import sys
from pathlib import Path

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Now import after path is set
import asyncio
import json

import pytest

from config.settings import Settings
from workers.process_runner import RunFailure, RunSuccess


class FakeWebSocket:
    """Minimal stand-in for fastapi.WebSocket used by the session registry"""

    def __init__(self, fail_after: int | None = None):
        self.accepted = False
        self.sent: list[str] = []
        self.fail_after = fail_after

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    @property
    def messages(self) -> list[dict]:
        return [json.loads(item) for item in self.sent]


class FakeRunner:
    """
    ProcessRunner double that records calls and replays scripted output.

    ``lines`` are fed to the progress callback; ``create`` names a file that
    is written to the ``-o`` path before returning ``outcome``.
    """

    def __init__(self, outcome=None, lines=(), create_output: bool = False, delay: float = 0):
        self.outcome = outcome or RunSuccess('')
        self.lines = list(lines)
        self.create_output = create_output
        self.delay = delay
        self.calls: list[tuple[str, list[str]]] = []

    async def run(self, command, args, on_progress_line=None):
        self.calls.append((command, list(args)))
        for line in self.lines:
            if on_progress_line is not None:
                await on_progress_line(line)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.create_output:
            output = Path(args[args.index('-o') + 1])
            output.write_bytes(b'media')
        return self.outcome


async def wait_for_messages(websocket: FakeWebSocket, count: int, timeout: float = 2.0) -> list[dict]:
    """Let sender tasks run until ``count`` messages were delivered"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(websocket.sent) < count and loop.time() < deadline:
        await asyncio.sleep(0.01)
    return websocket.messages


@pytest.fixture
def fake_websocket():
    return FakeWebSocket()


@pytest.fixture
def downloads_dir(tmp_path):
    path = tmp_path / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, downloads_dir):
    """Settings pointing at a throwaway downloads/log directory"""
    return Settings(
        host="127.0.0.1",
        port=3000,
        file_lifetime_seconds=900,
        max_file_size="2g",
        process_timeout_seconds=5,
        frontend_url="http://localhost:3000",
        downloads_dir=downloads_dir,
        ytdlp_binary="yt-dlp",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def failure():
    """Factory for RunFailure values"""
    def _make(kind, message='boom', **kwargs):
        return RunFailure(kind, 'yt-dlp', message, **kwargs)
    return _make
