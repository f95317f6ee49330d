"""
Download Job Orchestrator

Validates job submissions, runs one yt-dlp process per job and relays its
lifecycle to the submitting client's WebSocket session:

    received -> preparing -> running -> completed | failed

Every accepted job sends exactly one terminal notification. Failures are
contained in the job's own task and never affect other jobs or sessions.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set
import asyncio
import logging
import uuid

import pydantic

from constants import StatusMessages, YtDlpFormats
from domain.value_objects.job_options import (
    ExpertAudioOptions,
    ExpertVideoOptions,
    JobOptions,
    SimpleOptions,
    job_options_adapter,
)
from domain.value_objects.job_state import JobState
from dtos.request.download_request import DownloadRequest
from exceptions import ApplicationError, ArtifactMissingError, ValidationError
from schemas import (
    CompletedData,
    CompletedNotification,
    FailedNotification,
    Notification,
    ProgressNotification,
    StatusNotification,
)
from services.artifact_cleanup import ArtifactCleanupScheduler
from services.filename_arbiter import sanitize_title, unique_name
from services.progress_parser import is_size_limit_abort, parse_progress
from services.websocket import SessionRegistry
from workers.process_runner import ProcessRunner, RunFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadJob:
    """A validated job request"""
    session_id: str
    url: str
    title: str
    options: JobOptions
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class JobTracker:
    """Per-job state holder that enforces the linear lifecycle"""

    def __init__(self, job: DownloadJob):
        self.job = job
        self.state = JobState.RECEIVED

    def advance(self, new_state: JobState) -> bool:
        """Move to new_state if the transition is legal, otherwise keep the current state"""
        if not self.state.can_transition_to(new_state):
            logger.warning(f"Job {self.job.job_id}: ignoring transition {self.state.value} -> {new_state.value}")
            return False
        logger.debug(f"Job {self.job.job_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True


def build_download_args(options: JobOptions, output_path: Path, url: str, max_file_size: Optional[str] = None) -> List[str]:
    """
    Build the yt-dlp argument vector for one job.

    Args:
        options: Parsed options variant
        output_path: Exact output file path
        url: Media URL (always the last argument)
        max_file_size: Optional yt-dlp --max-filesize value (e.g. "2g")

    Returns:
        Argument list, to be passed without shell interpretation
    """
    args = ['--no-playlist', '--newline', '-o', str(output_path)]
    if max_file_size:
        args += ['--max-filesize', max_file_size]

    if isinstance(options, ExpertVideoOptions):
        args += ['-f', f"{options.vcodec_id}+{options.acodec_id}"]
        args += ['--merge-output-format', YtDlpFormats.MERGED_VIDEO_CONTAINER]
    elif isinstance(options, ExpertAudioOptions):
        args += ['-f', options.acodec_id, '-x', '--audio-format', options.ext]
        if options.audio_quality is not None and str(options.audio_quality) != '':
            args += ['--audio-quality', str(options.audio_quality)]
    elif isinstance(options, SimpleOptions):
        if options.ext == YtDlpFormats.SIMPLE_AUDIO_FORMAT:
            args += ['-x', '--audio-format', YtDlpFormats.SIMPLE_AUDIO_FORMAT,
                     '--audio-quality', YtDlpFormats.BEST_AUDIO_QUALITY]
        else:
            args += ['-f', YtDlpFormats.SIMPLE_VIDEO_SELECTOR]
    else:
        raise TypeError(f"Unsupported options type: {type(options).__name__}")

    args.append(url)
    return args


class JobOrchestrator:
    """
    Runs download jobs and relays their progress to WebSocket sessions.

    The orchestrator never holds connection handles; it addresses sessions
    by id through the SessionRegistry.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        runner: ProcessRunner,
        cleanup: ArtifactCleanupScheduler,
        downloads_dir: Path,
        ytdlp_binary: str = 'yt-dlp',
        download_url_prefix: str = '/downloads',
        max_file_size: Optional[str] = None,
    ):
        self.registry = registry
        self.runner = runner
        self.cleanup = cleanup
        self.downloads_dir = Path(downloads_dir)
        self.ytdlp_binary = ytdlp_binary
        self.download_url_prefix = download_url_prefix.rstrip('/')
        self.max_file_size = max_file_size
        self._tasks: Set[asyncio.Task] = set()

    def validate(self, request: DownloadRequest) -> DownloadJob:
        """
        Check a submission and collect every problem before rejecting.

        Raises:
            ValidationError: listing all missing/invalid fields
        """
        errors: List[str] = []
        invalid_fields: List[str] = []

        if not request.session_id:
            errors.append('session_id is missing.')
            invalid_fields.append('session_id')
        if not request.url:
            errors.append('url is missing.')
            invalid_fields.append('url')
        if not request.title:
            errors.append('title is missing.')
            invalid_fields.append('title')

        options = None
        if not request.options:
            errors.append('options is missing.')
            invalid_fields.append('options')
        else:
            try:
                options = job_options_adapter.validate_python(request.options)
            except pydantic.ValidationError as e:
                details = '; '.join(
                    f"{'.'.join(str(part) for part in err['loc']) or 'options'}: {err['msg']}"
                    for err in e.errors()
                )
                errors.append(f"options are invalid ({details}).")
                invalid_fields.append('options')

        if request.session_id and not self.registry.is_registered(request.session_id):
            errors.append(f"Unknown session_id '{request.session_id}'.")
            invalid_fields.append('session_id')

        if errors:
            message = f"Invalid request: {' '.join(errors)}"
            logger.error(message)
            raise ValidationError(message, invalid_fields)

        return DownloadJob(
            session_id=request.session_id,
            url=request.url,
            title=request.title,
            options=options,
        )

    def submit(self, request: DownloadRequest) -> DownloadJob:
        """
        Validate a submission and start it in the background.

        Returns:
            The accepted job

        Raises:
            ValidationError: if the request is rejected (no process is started)
        """
        job = self.validate(request)
        task = asyncio.create_task(self.process_download(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Accepted job {job.job_id} for session {job.session_id}: {job.url}")
        return job

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    async def shutdown(self):
        """Cancel running jobs (their processes are killed by the runner)"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def process_download(self, job: DownloadJob) -> JobState:
        """
        Run one job to completion and send its terminal notification.

        Returns:
            The terminal JobState
        """
        tracker = JobTracker(job)

        try:
            tracker.advance(JobState.PREPARING)
            self._notify(job, StatusNotification(message=StatusMessages.PREPARING))

            safe_title = sanitize_title(job.title)
            self.downloads_dir.mkdir(parents=True, exist_ok=True)
            filename = unique_name(self.downloads_dir, safe_title, job.options.output_extension)
            output_path = self.downloads_dir / filename

            args = build_download_args(job.options, output_path, job.url, self.max_file_size)

            size_limit_hit = False

            async def on_line(line: str):
                nonlocal size_limit_hit
                if is_size_limit_abort(line):
                    size_limit_hit = True
                    return
                progress = parse_progress(line)
                if progress is not None:
                    self._notify(job, ProgressNotification(progress=progress))

            tracker.advance(JobState.RUNNING)
            outcome = await self.runner.run(self.ytdlp_binary, args, on_line)

            if isinstance(outcome, RunFailure):
                raise outcome.to_exception()

            if not output_path.is_file():
                message = StatusMessages.FILE_TOO_LARGE if size_limit_hit else StatusMessages.ARTIFACT_MISSING
                raise ArtifactMissingError(str(output_path), message)

            if tracker.advance(JobState.COMPLETED):
                self._notify(job, CompletedNotification(data=CompletedData(
                    downloadUrl=f"{self.download_url_prefix}/{filename}",
                    filename=filename,
                )))
                self.cleanup.schedule(output_path)
                logger.info(f"Job {job.job_id} completed: {filename}")

        except ApplicationError as e:
            logger.error(f"Download failed for session {job.session_id} (job {job.job_id}): {e.message}")
            self._fail(job, tracker, e.message)
        except asyncio.CancelledError:
            self._fail(job, tracker, 'Download was cancelled because the server is shutting down.')
            raise
        except Exception as e:
            logger.error(f"Unexpected error in job {job.job_id}: {e}", exc_info=True)
            self._fail(job, tracker, f"Unexpected error: {e}")

        return tracker.state

    def _fail(self, job: DownloadJob, tracker: JobTracker, message: str):
        if tracker.advance(JobState.FAILED):
            self._notify(job, FailedNotification(message=message))

    def _notify(self, job: DownloadJob, notification: Notification):
        self.registry.send(job.session_id, notification.to_message())
