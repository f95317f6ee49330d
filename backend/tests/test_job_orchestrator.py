"""
Tests for services/job_orchestrator.py
"""
import asyncio
from pathlib import Path

import pytest

from conftest import FakeRunner, FakeWebSocket, wait_for_messages
from constants import FailureKind, StatusMessages, YtDlpFormats
from domain.value_objects.job_options import (
    ExpertAudioOptions,
    ExpertVideoOptions,
    SimpleOptions,
)
from domain.value_objects.job_state import JobState
from dtos.request.download_request import DownloadRequest
from exceptions import ValidationError
from services.artifact_cleanup import ArtifactCleanupScheduler
from services.job_orchestrator import JobOrchestrator, build_download_args
from services.websocket import SessionRegistry
from workers.process_runner import RunSuccess

OUT = Path("/downloads/clip.mp4")
URL = "https://example.com/watch?v=1"


class TestBuildDownloadArgs:

    def test_simple_mp3_extracts_best_audio(self):
        args = build_download_args(SimpleOptions(type="simple", ext="mp3"), OUT, URL)

        assert args == [
            '--no-playlist', '--newline', '-o', str(OUT),
            '-x', '--audio-format', 'mp3', '--audio-quality', '0',
            URL,
        ]

    def test_simple_video_uses_mp4_fallback_chain(self):
        args = build_download_args(SimpleOptions(type="simple", ext="mp4"), OUT, URL)

        assert args[args.index('-f') + 1] == YtDlpFormats.SIMPLE_VIDEO_SELECTOR
        assert '-x' not in args
        assert args[-1] == URL

    def test_expert_video_merges_exact_ids_into_mp4(self):
        options = ExpertVideoOptions(type="expert_video", vcodec_id="137", acodec_id="140")

        args = build_download_args(options, OUT, URL)

        assert args[args.index('-f') + 1] == "137+140"
        assert args[args.index('--merge-output-format') + 1] == "mp4"

    def test_expert_audio_with_quality(self):
        options = ExpertAudioOptions(type="expert_audio", acodec_id="251", ext="opus", audio_quality="5")

        args = build_download_args(options, OUT, URL)

        assert args[args.index('-f') + 1] == "251"
        assert '-x' in args
        assert args[args.index('--audio-format') + 1] == "opus"
        assert args[args.index('--audio-quality') + 1] == "5"

    def test_expert_audio_without_quality(self):
        options = ExpertAudioOptions(type="expert_audio", acodec_id="140", ext="m4a")

        args = build_download_args(options, OUT, URL)

        assert '--audio-quality' not in args

    def test_every_variant_pins_playlist_and_output(self):
        for options in (
            SimpleOptions(type="simple", ext="mp4"),
            ExpertVideoOptions(type="expert_video", vcodec_id="1", acodec_id="2"),
            ExpertAudioOptions(type="expert_audio", acodec_id="2", ext="mp3"),
        ):
            args = build_download_args(options, OUT, URL, max_file_size="2g")
            assert '--no-playlist' in args
            assert args[args.index('-o') + 1] == str(OUT)
            assert args[args.index('--max-filesize') + 1] == "2g"
            assert args[-1] == URL

    def test_unknown_options_type_is_rejected(self):
        with pytest.raises(TypeError):
            build_download_args(object(), OUT, URL)


def _orchestrator(registry, runner, downloads_dir, lifetime=900):
    return JobOrchestrator(
        registry=registry,
        runner=runner,
        cleanup=ArtifactCleanupScheduler(lifetime_seconds=lifetime),
        downloads_dir=downloads_dir,
    )


def _request(session_id, **overrides):
    payload = {
        "session_id": session_id,
        "url": URL,
        "title": "My: Clip",
        "options": {"type": "simple", "ext": "mp4"},
    }
    payload.update(overrides)
    return DownloadRequest(**payload)


async def _connected():
    registry = SessionRegistry()
    websocket = FakeWebSocket()
    session_id = await registry.register(websocket)
    return registry, websocket, session_id


class TestValidation:

    @pytest.mark.asyncio
    async def test_unknown_session_is_rejected_without_spawning(self, downloads_dir):
        registry = SessionRegistry()
        runner = FakeRunner()
        orchestrator = _orchestrator(registry, runner, downloads_dir)

        with pytest.raises(ValidationError) as exc_info:
            orchestrator.submit(_request("ghost"))

        assert "ghost" in exc_info.value.message
        assert exc_info.value.invalid_fields == ["session_id"]
        assert orchestrator.active_jobs == 0
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_all_missing_fields_are_reported_together(self, downloads_dir):
        orchestrator = _orchestrator(SessionRegistry(), FakeRunner(), downloads_dir)

        with pytest.raises(ValidationError) as exc_info:
            orchestrator.validate(DownloadRequest())

        assert exc_info.value.invalid_fields == ["session_id", "url", "title", "options"]
        for field in ("session_id", "url", "title", "options"):
            assert field in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unknown_options_variant_is_rejected(self, downloads_dir):
        registry, _, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(), downloads_dir)

        with pytest.raises(ValidationError) as exc_info:
            orchestrator.validate(_request(session_id, options={"type": "turbo", "ext": "mp4"}))

        assert exc_info.value.invalid_fields == ["options"]
        await registry.close_all()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("options", [
        {"type": "simple", "ext": "x/../../../escaped"},
        {"type": "simple", "ext": "tar.gz"},
        {"type": "expert_audio", "acodec_id": "251", "ext": "..\\opus"},
    ])
    async def test_extension_with_path_characters_is_rejected(self, downloads_dir, options):
        registry, _, session_id = await _connected()
        runner = FakeRunner()
        orchestrator = _orchestrator(registry, runner, downloads_dir)

        with pytest.raises(ValidationError) as exc_info:
            orchestrator.submit(_request(session_id, options=options))

        assert exc_info.value.invalid_fields == ["options"]
        assert "ext" in exc_info.value.message
        assert runner.calls == []
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_client_id_alias_is_accepted(self, downloads_dir):
        registry, _, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(), downloads_dir)

        job = orchestrator.validate(DownloadRequest(
            clientId=session_id,
            url=URL,
            title="t",
            options={"type": "expert_video", "vcodec_id": "137", "acodec_id": "140"},
        ))

        assert job.session_id == session_id
        assert isinstance(job.options, ExpertVideoOptions)
        await registry.close_all()


class TestProcessDownload:

    @pytest.mark.asyncio
    async def test_successful_job_relays_status_progress_and_completion(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        runner = FakeRunner(
            lines=["[youtube] extracting", "[download]  10.0% of 5MiB", "[download] 100% of 5MiB"],
            create_output=True,
        )
        orchestrator = _orchestrator(registry, runner, downloads_dir)
        job = orchestrator.validate(_request(session_id))

        state = await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 5)

        assert state == JobState.COMPLETED
        assert [m["type"] for m in messages] == ["connection_ack", "status", "progress", "progress", "completed"]
        assert messages[1]["message"] == StatusMessages.PREPARING
        assert [m["progress"] for m in messages[2:4]] == [10.0, 100.0]
        assert messages[4]["data"] == {"downloadUrl": "/downloads/My_ Clip.mp4", "filename": "My_ Clip.mp4"}
        assert (downloads_dir / "My_ Clip.mp4").is_file()
        assert orchestrator.cleanup.pending() == 1

        await orchestrator.cleanup.shutdown()
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_existing_artifact_gets_counter_suffix(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        (downloads_dir / "song.mp3").write_bytes(b"old")
        runner = FakeRunner(create_output=True)
        orchestrator = _orchestrator(registry, runner, downloads_dir)
        job = orchestrator.validate(_request(session_id, title="song", options={"type": "simple", "ext": "mp3"}))

        await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 3)

        _, args = runner.calls[0]
        assert args[args.index('-o') + 1] == str(downloads_dir / "song (1).mp3")
        assert messages[-1]["data"]["filename"] == "song (1).mp3"
        assert (downloads_dir / "song.mp3").read_bytes() == b"old"

        await orchestrator.cleanup.shutdown()
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_size_limit_skip_reports_file_too_large(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        runner = FakeRunner(
            outcome=RunSuccess(""),
            lines=["[download] File is larger than max-filesize (3000 bytes > 2000 bytes). Aborting."],
        )
        orchestrator = _orchestrator(registry, runner, downloads_dir)
        job = orchestrator.validate(_request(session_id))

        state = await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 3)

        assert state == JobState.FAILED
        assert [m["type"] for m in messages] == ["connection_ack", "status", "failed"]
        assert messages[-1]["message"] == StatusMessages.FILE_TOO_LARGE
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_exit_zero_without_file_fails_with_artifact_missing(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(outcome=RunSuccess("")), downloads_dir)
        job = orchestrator.validate(_request(session_id))

        state = await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 3)

        assert state == JobState.FAILED
        assert [m["type"] for m in messages] == ["connection_ack", "status", "failed"]
        assert messages[-1]["message"] == StatusMessages.ARTIFACT_MISSING
        assert orchestrator.cleanup.pending() == 0
        await registry.close_all()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, expected", [
        (FailureKind.EXIT_NONZERO, "ERROR: Video unavailable"),
        (FailureKind.TIMEOUT, "timed out"),
        (FailureKind.SPAWN_ERROR, "Failed to start"),
    ])
    async def test_process_failures_send_one_failed_notification(self, downloads_dir, failure, kind, expected):
        registry, websocket, session_id = await _connected()
        outcome = failure(
            kind,
            "ERROR: Video unavailable",
            stderr="ERROR: Video unavailable",
            returncode=1 if kind == FailureKind.EXIT_NONZERO else None,
            timeout_seconds=900 if kind == FailureKind.TIMEOUT else None,
        )
        orchestrator = _orchestrator(registry, FakeRunner(outcome=outcome), downloads_dir)
        job = orchestrator.validate(_request(session_id))

        state = await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 3)

        assert state == JobState.FAILED
        terminal = [m for m in messages if m["type"] in ("completed", "failed")]
        assert len(terminal) == 1
        assert terminal[0]["type"] == "failed"
        assert expected in terminal[0]["message"]
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_unexpected_error_still_yields_single_failed(self, downloads_dir):
        registry, websocket, session_id = await _connected()

        class ExplodingRunner(FakeRunner):
            async def run(self, command, args, on_progress_line=None):
                raise RuntimeError("kaboom")

        orchestrator = _orchestrator(registry, ExplodingRunner(), downloads_dir)
        job = orchestrator.validate(_request(session_id))

        state = await orchestrator.process_download(job)
        messages = await wait_for_messages(websocket, 3)

        assert state == JobState.FAILED
        assert messages[-1]["type"] == "failed"
        assert "kaboom" in messages[-1]["message"]
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_submit_runs_job_in_background(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(create_output=True, delay=0.05), downloads_dir)

        job = orchestrator.submit(_request(session_id))
        assert orchestrator.active_jobs == 1

        messages = await wait_for_messages(websocket, 3)
        assert messages[-1]["type"] == "completed"
        await asyncio.sleep(0.01)
        assert job.job_id
        assert orchestrator.active_jobs == 0

        await orchestrator.cleanup.shutdown()
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_disconnected_session_does_not_break_the_job(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(create_output=True), downloads_dir)
        job = orchestrator.validate(_request(session_id))
        registry.unregister(session_id)

        state = await orchestrator.process_download(job)

        assert state == JobState.COMPLETED
        await orchestrator.cleanup.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_fails_running_jobs(self, downloads_dir):
        registry, websocket, session_id = await _connected()
        orchestrator = _orchestrator(registry, FakeRunner(create_output=True, delay=5), downloads_dir)

        orchestrator.submit(_request(session_id))
        await asyncio.sleep(0.05)
        await orchestrator.shutdown()
        messages = await wait_for_messages(websocket, 3)

        assert orchestrator.active_jobs == 0
        assert [m["type"] for m in messages] == ["connection_ack", "status", "failed"]
        assert "shutting down" in messages[-1]["message"]
        await registry.close_all()


class TestJobState:

    def test_linear_transitions(self):
        assert JobState.RECEIVED.can_transition_to(JobState.PREPARING)
        assert JobState.PREPARING.can_transition_to(JobState.RUNNING)
        assert JobState.RUNNING.can_transition_to(JobState.COMPLETED)
        assert JobState.RUNNING.can_transition_to(JobState.FAILED)

    def test_terminal_states_are_final(self):
        for state in (JobState.COMPLETED, JobState.FAILED):
            assert state.is_terminal()
            assert not state.can_transition_to(JobState.FAILED)
            assert not state.can_transition_to(JobState.COMPLETED)

    def test_no_skipping_or_going_back(self):
        assert not JobState.RECEIVED.can_transition_to(JobState.COMPLETED)
        assert not JobState.RUNNING.can_transition_to(JobState.PREPARING)
