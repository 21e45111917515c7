"""Camera upload agent: one scheduler-triggered invocation."""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from .destination import DestinationResolver
from .session import SessionBootstrapper, SessionError
from .staging import WorkingDirectory
from .upload_driver import UploadDriver, UploadState
from ..config.settings import AppSettings, get_settings
from ..media.base import BaseMediaLibrary
from ..remote.base import BaseRemoteClient
from ..storage.models import InvocationLogCreate, InvocationOutcome
from ..storage.operations import InvocationLogRepository
from ..storage.progress import ProgressStore
from ..storage.settings_store import SettingsStore
from ..utils.logging import bind_invocation, get_logger, log_async_execution_time, unbind_invocation


_OUTCOME_BY_STATE = {
    UploadState.DONE: InvocationOutcome.DONE,
    UploadState.BUDGET_EXHAUSTED: InvocationOutcome.BUDGET_EXHAUSTED,
    UploadState.ABORTED: InvocationOutcome.ABORTED_UPLOAD,
}


@dataclass
class InvocationResult:
    """Result of one agent invocation."""

    outcome: InvocationOutcome
    started_at: datetime
    duration: float = 0.0
    items_uploaded: int = 0
    items_duplicate: int = 0
    items_failed: int = 0
    watermark_before: Optional[datetime] = None
    watermark_after: Optional[datetime] = None
    destination_id: Optional[str] = None
    error_message: Optional[str] = None
    invocation_id: Optional[str] = None

    @property
    def success(self) -> bool:
        """True when the invocation ended without an abort."""
        return self.outcome in (InvocationOutcome.DONE, InvocationOutcome.BUDGET_EXHAUSTED)


class CameraUploadAgent:
    """Runs bootstrap, destination resolution and the upload loop.

    :meth:`run_invocation` never raises; every failure becomes an
    :class:`InvocationResult` with a non-success outcome and the next
    scheduled invocation starts again from the persisted watermark.
    """

    def __init__(
        self,
        client_factory: Callable[[], BaseRemoteClient],
        library: BaseMediaLibrary,
        settings_store: SettingsStore,
        progress_store: Optional[ProgressStore] = None,
        history: Optional[InvocationLogRepository] = None,
        settings: Optional[AppSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.settings = settings or get_settings()
        self.client_factory = client_factory
        self.library = library
        self.settings_store = settings_store
        self.progress_store = progress_store or ProgressStore(
            settings_store, key=self.settings.upload.watermark_key
        )
        self.history = history
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)

        upload = self.settings.upload
        self.working_directory = WorkingDirectory(upload.working_directory)
        self.resolver = DestinationResolver(
            folder_name=upload.destination_folder_name,
            settle_interval=upload.settle_interval_seconds,
            settle_attempts=upload.settle_attempts,
            settle_backoff=upload.settle_backoff,
            sleep=sleep
        )
        self._invocation_lock: Optional[asyncio.Lock] = None

    @log_async_execution_time
    async def run_invocation(self) -> InvocationResult:
        """Run one invocation and report how it ended.

        Invocations of one agent never overlap: a call made while another is
        running waits for it to finish and then starts from the saved watermark.
        """
        if self._invocation_lock is None:
            self._invocation_lock = asyncio.Lock()

        if self._invocation_lock.locked():
            self.logger.info("Invocation already running, waiting for it to finish")

        async with self._invocation_lock:
            return await self._invoke()

    async def _invoke(self) -> InvocationResult:
        started_at = datetime.now(timezone.utc)
        start = self.clock()
        deadline = start + self.settings.upload.max_run_seconds
        result = InvocationResult(
            outcome=InvocationOutcome.ERROR,
            started_at=started_at,
            invocation_id=bind_invocation()
        )

        self.logger.info("Camera upload invocation started", max_run_seconds=self.settings.upload.max_run_seconds)

        try:
            result.watermark_before = self.progress_store.load()
            result.watermark_after = result.watermark_before

            self.working_directory.purge()
            self.working_directory.ensure()

            bootstrapper = SessionBootstrapper(
                client=self.client_factory(),
                settings_store=self.settings_store,
                credential_key=self.settings.remote.credential_key
            )

            try:
                session = await bootstrapper.bootstrap()
            except SessionError as e:
                result.outcome = InvocationOutcome.ABORTED_SESSION
                result.error_message = str(e)
                self.logger.error("Invocation aborted: no remote session", error=str(e))
                return result

            async with session:
                destination = await self.resolver.resolve(session)
                result.destination_id = destination.node_id if destination else None

                driver = UploadDriver(
                    session=session,
                    destination=destination,
                    library=self.library,
                    progress_store=self.progress_store,
                    working_directory=self.working_directory,
                    deadline=deadline,
                    clock=self.clock
                )
                driver_result = await driver.run()

            result.outcome = _OUTCOME_BY_STATE[driver_result.final_state]
            result.items_uploaded = driver_result.items_uploaded
            result.items_duplicate = driver_result.items_duplicate
            result.items_failed = driver_result.items_failed
            result.watermark_before = driver_result.watermark_before
            result.watermark_after = driver_result.watermark_after
            result.error_message = driver_result.error_message

        except Exception as e:
            result.outcome = InvocationOutcome.ERROR
            result.error_message = f"Unexpected error during invocation: {e}"
            self.logger.error("Invocation failed with unexpected error", error=str(e), exc_info=True)

        finally:
            result.duration = self.clock() - start
            self._record(result)
            self.logger.info(
                "Camera upload invocation finished",
                outcome=result.outcome.value,
                items_uploaded=result.items_uploaded,
                items_duplicate=result.items_duplicate,
                items_failed=result.items_failed,
                duration=f"{result.duration:.2f}s"
            )
            unbind_invocation()

        return result

    def _record(self, result: InvocationResult):
        """Write the invocation to the history table, if one is configured."""
        if self.history is None:
            return

        try:
            self.history.record(InvocationLogCreate(
                started_at=result.started_at,
                completed_at=datetime.now(timezone.utc),
                outcome=result.outcome,
                invocation_id=result.invocation_id,
                items_uploaded=result.items_uploaded,
                items_duplicate=result.items_duplicate,
                items_failed=result.items_failed,
                watermark_before=result.watermark_before.isoformat() if result.watermark_before else None,
                watermark_after=result.watermark_after.isoformat() if result.watermark_after else None,
                error_message=result.error_message,
                duration_seconds=int(result.duration)
            ))
        except Exception as e:
            self.logger.warning("Failed to record invocation", error=str(e))
