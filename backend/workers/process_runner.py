"""
External process runner used for every yt-dlp invocation.
"""
import asyncio
import codecs
import logging
import os
import re
import signal
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

from constants import FailureKind
from exceptions import ProcessError, ProcessExecutionError, ProcessSpawnError, ProcessTimeout

logger = logging.getLogger(__name__)

ProgressLineCallback = Callable[[str], Awaitable[None]]

# yt-dlp redraws progress with carriage returns when it thinks it owns a tty
_LINE_BREAK = re.compile(r'\r\n|\r|\n')
_READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class RunSuccess:
    """Process exited with code 0"""
    stdout: str
    ok = True


@dataclass(frozen=True)
class RunFailure:
    """Process could not be started, timed out, or exited non-zero"""
    kind: FailureKind
    command: str
    message: str
    stderr: str = ''
    returncode: Optional[int] = None
    timeout_seconds: Optional[float] = None
    ok = False

    def to_exception(self) -> ProcessError:
        """Map this failure onto the application exception taxonomy"""
        if self.kind == FailureKind.TIMEOUT:
            return ProcessTimeout(self.command, self.timeout_seconds or 0)
        if self.kind == FailureKind.SPAWN_ERROR:
            return ProcessSpawnError(self.command, self.message)
        return ProcessExecutionError(self.command, self.returncode if self.returncode is not None else -1, self.stderr)


RunOutcome = Union[RunSuccess, RunFailure]


class ProcessRunner:
    """
    Runs one external command per call with a wall-clock timeout.

    stdout is streamed line by line to an optional async callback and also
    accumulated; stderr is accumulated for diagnostics. The result is always
    a RunOutcome - spawn errors, timeouts and non-zero exits never raise.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds

    async def run(
        self,
        command: str,
        args: Sequence[str],
        on_progress_line: Optional[ProgressLineCallback] = None
    ) -> RunOutcome:
        """Run ``command`` with ``args`` (no shell) and wait for it to finish

        Args:
            command: Executable name or path
            args: Argument vector, passed through as discrete arguments
            on_progress_line: Optional async callback invoked for every stdout line

        Returns:
            RunSuccess with the captured stdout, or RunFailure
        """
        argv = [str(arg) for arg in args]
        logger.info(f"Executing: {command} {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Own process group so ffmpeg and other helpers die with yt-dlp
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to start {command}: {e}")
            return RunFailure(FailureKind.SPAWN_ERROR, command, str(e))

        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []

        stdout_task = asyncio.create_task(
            self._read_lines(process.stdout, stdout_chunks, on_progress_line)
        )
        stderr_task = asyncio.create_task(self._read_all(process.stderr, stderr_chunks))

        try:
            await asyncio.wait_for(
                asyncio.gather(stdout_task, stderr_task, process.wait()),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._kill(process, stdout_task, stderr_task)
            logger.error(f"{command} timed out after {self.timeout_seconds}s (pid {process.pid})")
            return RunFailure(
                FailureKind.TIMEOUT,
                command,
                f"Process timed out after {self.timeout_seconds:g} seconds",
                stderr=''.join(stderr_chunks).strip(),
                timeout_seconds=self.timeout_seconds
            )
        except BaseException:
            # Cancelled by the caller or a failing progress callback
            await self._kill(process, stdout_task, stderr_task)
            raise

        stdout_text = ''.join(stdout_chunks)
        stderr_text = ''.join(stderr_chunks).strip()

        if process.returncode != 0:
            logger.error(f"{command} stderr: {stderr_text}")
            return RunFailure(
                FailureKind.EXIT_NONZERO,
                command,
                stderr_text or f"{command} exited with code {process.returncode}",
                stderr=stderr_text,
                returncode=process.returncode
            )

        logger.info(f"{command} completed successfully")
        return RunSuccess(stdout_text)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process, *readers: asyncio.Task):
        """Force-kill the process group, reap the leader and stop the pipe readers"""
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            elif process.returncode is None:
                process.kill()
        except (ProcessLookupError, PermissionError):
            pass
        # Reap so no zombie is left behind
        await process.wait()
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

    @staticmethod
    async def _read_lines(
        stream: asyncio.StreamReader,
        sink: list[str],
        on_line: Optional[ProgressLineCallback]
    ):
        """Accumulate a stream and hand every complete line to ``on_line``"""
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        buffer = ''
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                break

            text = decoder.decode(chunk)
            sink.append(text)
            if on_line is None:
                continue

            buffer += text
            parts = _LINE_BREAK.split(buffer)
            # Last part is an incomplete line (or '' after a trailing break)
            buffer = parts.pop()
            for line in parts:
                if line.strip():
                    await on_line(line)

        if on_line is not None and buffer.strip():
            await on_line(buffer)

    @staticmethod
    async def _read_all(stream: asyncio.StreamReader, sink: list[str]):
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                break
            sink.append(decoder.decode(chunk))
