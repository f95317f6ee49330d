from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
import logging
import sys

from api import downloads
from config.settings import Settings, load_settings
from constants import StatusMessages
from exceptions import ConfigurationError
from services.artifact_cleanup import ArtifactCleanupScheduler
from services.job_orchestrator import JobOrchestrator
from services.metadata_query import MetadataQuery
from services.websocket import SessionRegistry, websocket_endpoint
from workers.process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def configure_logging(log_dir: Path):
    """Attach rotating file + console handlers to the root logger (once)"""
    root_logger = logging.getLogger()
    if getattr(root_logger, '_media_relay_configured', False):
        return

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "backend.log"

    log_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler with rotation (10MB per file, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(log_formatter)
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(logging.INFO)

    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger._media_relay_configured = True

    logger.info(f"Logging initialized: {log_file}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared services on startup and tear them down on shutdown"""
    settings: Settings = app.state.settings

    logger.info("Starting services...")

    registry = SessionRegistry()
    runner = ProcessRunner(timeout_seconds=settings.process_timeout_seconds)
    cleanup = ArtifactCleanupScheduler(lifetime_seconds=settings.file_lifetime_seconds)

    app.state.registry = registry
    app.state.cleanup = cleanup
    app.state.orchestrator = JobOrchestrator(
        registry=registry,
        runner=runner,
        cleanup=cleanup,
        downloads_dir=settings.downloads_dir,
        ytdlp_binary=settings.ytdlp_binary,
        download_url_prefix=settings.download_url_prefix,
        max_file_size=settings.max_file_size,
    )
    app.state.metadata_query = MetadataQuery(runner, settings.ytdlp_binary)

    # Deletion timers do not survive a restart; pick up leftovers here
    cleanup.sweep_expired(settings.downloads_dir)

    logger.info(
        f"Application startup complete - downloads in {settings.downloads_dir}, "
        f"timeout {settings.process_timeout_seconds}s, lifetime {settings.file_lifetime_seconds}s"
    )

    yield

    logger.info("Stopping services...")
    await app.state.orchestrator.shutdown()
    await cleanup.shutdown()
    await registry.close_all()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Optional explicit settings (tests); defaults to the environment
    """
    settings = settings or load_settings()
    configure_logging(settings.log_dir)

    app = FastAPI(
        title="Media Relay API",
        description="Fetches remote media with yt-dlp and relays job progress over WebSocket",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(downloads.router, tags=["downloads"])

    # StaticFiles checks the directory at construction time
    try:
        settings.downloads_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Downloads directory {settings.downloads_dir} is not usable: {e}",
            missing_keys=["DOWNLOADS_DIR"]
        ) from e
    app.mount(
        settings.download_url_prefix,
        StaticFiles(directory=str(settings.downloads_dir)),
        name="downloads"
    )

    @app.get("/", response_class=PlainTextResponse)
    def health_check():
        """Health check endpoint"""
        return StatusMessages.HEALTH

    @app.websocket("/")
    @app.websocket("/ws")
    async def websocket_route(websocket: WebSocket):
        """WebSocket endpoint for job notifications"""
        await websocket_endpoint(websocket, websocket.app.state.registry)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    logger.info(f"🚀 Starting Media Relay on http://{settings.host}:{settings.port}...")
    uvicorn.run(app, host=settings.host, port=settings.port)
