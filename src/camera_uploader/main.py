"""Main application entry point."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from .config.settings import AppSettings, get_settings
from .core.agent import CameraUploadAgent, InvocationResult
from .media.filesystem import FileSystemMediaLibrary
from .remote.factory import RemoteClientFactory
from .scheduler.agent_scheduler import AgentScheduler
from .storage import (
    init_database,
    close_database,
    SettingsStore,
    ProgressStore,
    InvocationLogRepository
)
from .utils.logging import setup_logging, get_logger


class CameraUploaderApp:
    """Camera uploader process: storage, agent and scheduler."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger("CameraUploader")
        self.running = False
        self.agent: Optional[CameraUploadAgent] = None
        self.scheduler: Optional[AgentScheduler] = None

    def build_agent(self) -> CameraUploadAgent:
        """Wire the agent to the configured database, media directory and remote provider."""
        db_manager = init_database(self.settings.database.url, create_tables=True)
        settings_store = SettingsStore(db_manager)

        return CameraUploadAgent(
            client_factory=lambda: RemoteClientFactory.create_client(settings=self.settings),
            library=FileSystemMediaLibrary(
                self.settings.upload.media_directory,
                extensions=self.settings.upload.media_extensions,
                exif_utc_offset_minutes=self.settings.upload.exif_utc_offset_minutes
            ),
            settings_store=settings_store,
            progress_store=ProgressStore(settings_store, key=self.settings.upload.watermark_key),
            history=InvocationLogRepository(db_manager),
            settings=self.settings
        )

    async def startup(self):
        self.logger.info(
            "Starting Camera Uploader",
            version=self.settings.version,
            environment=self.settings.environment
        )

        Path(self.settings.upload.working_directory).mkdir(parents=True, exist_ok=True)

        self.agent = self.build_agent()
        self.scheduler = AgentScheduler(
            agent=self.agent,
            interval_minutes=self.settings.scheduling.interval_minutes,
            run_on_start=self.settings.scheduling.run_on_start
        )
        await self.scheduler.start()

        self.running = True
        self.logger.info("Camera Uploader started")

    async def shutdown(self):
        self.logger.info("Shutting down Camera Uploader")
        self.running = False

        if self.scheduler and self.scheduler.is_running:
            await self.scheduler.stop()

        close_database()
        self.logger.info("Camera Uploader stopped")

    async def run(self):
        """Run until a shutdown signal arrives."""
        await self.startup()

        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            await self.shutdown()

    async def run_once(self) -> InvocationResult:
        """Single invocation for use under an external scheduler (cron, systemd timer)."""
        self.agent = self.build_agent()
        try:
            return await self.agent.run_invocation()
        finally:
            close_database()


def setup_signal_handlers(app: CameraUploaderApp):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        app.logger.info("Received signal", signal=signum)
        app.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main() -> int:
    """Main entry point; returns the process exit code."""
    setup_logging()

    app = CameraUploaderApp()

    if not app.settings.scheduling.enabled:
        result = await app.run_once()
        return 0 if result.success else 1

    setup_signal_handlers(app)
    await app.run()
    return 0


def cli():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
