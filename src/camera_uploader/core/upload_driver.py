"""Sequential upload driver.

The driver is an explicit state machine::

    IDLE -> SELECTING -> STAGING -> UPLOADING -> FINALIZING -> SELECTING ...
                 |                                    |
                 +-> DONE / BUDGET_EXHAUSTED          +-> ABORTED

Exactly one item is in flight at a time: it is staged, checked against the
remote fingerprints, uploaded and finalized before the next one is selected.
The watermark is written only after a confirmed transfer.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, List, Optional

from .dedup import FingerprintDeduplicator
from .session import RemoteSession
from .staging import StagedFile, StagingError, WorkingDirectory
from ..media.base import BaseMediaLibrary, MediaItem
from ..remote.base import RemoteNode, TransferResult
from ..storage.progress import ProgressStore, to_utc
from ..utils.logging import get_logger


class UploadState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    STAGING = "staging"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"
    BUDGET_EXHAUSTED = "budget_exhausted"


TERMINAL_STATES = frozenset({UploadState.DONE, UploadState.ABORTED, UploadState.BUDGET_EXHAUSTED})


@dataclass
class DriverResult:
    """What one pass of the upload loop achieved."""

    final_state: UploadState
    watermark_before: datetime
    watermark_after: datetime
    items_uploaded: int = 0
    items_duplicate: int = 0
    items_failed: int = 0
    uploaded_names: List[str] = field(default_factory=list)
    error_message: Optional[str] = None


class UploadDriver:
    """Uploads pending media items one at a time into the destination folder."""

    def __init__(
        self,
        session: RemoteSession,
        destination: Optional[RemoteNode],
        library: BaseMediaLibrary,
        progress_store: ProgressStore,
        working_directory: WorkingDirectory,
        deduplicator: Optional[FingerprintDeduplicator] = None,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the driver.

        Args:
            session: Authenticated remote session
            destination: Destination folder, or None if it could not be resolved
            library: Source of local media items
            progress_store: Durable watermark
            working_directory: Where staged copies are written
            deduplicator: Fingerprint lookup; built from the session if omitted
            deadline: ``clock()`` value after which no new item is selected
            clock: Monotonic time source
        """
        self.session = session
        self.destination = destination
        self.library = library
        self.progress_store = progress_store
        self.working_directory = working_directory
        self.deduplicator = deduplicator or FingerprintDeduplicator(session)
        self.deadline = deadline
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)

        self.state = UploadState.IDLE
        self._candidates: Deque[MediaItem] = deque()
        self._item: Optional[MediaItem] = None
        self._staged: Optional[StagedFile] = None
        self._transfer: Optional[TransferResult] = None
        self._watermark_held = False
        self._pending_watermark: Optional[datetime] = None
        self._transfers_in_flight = 0
        self._result: Optional[DriverResult] = None

        self._handlers = {
            UploadState.IDLE: self._on_idle,
            UploadState.SELECTING: self._on_selecting,
            UploadState.STAGING: self._on_staging,
            UploadState.UPLOADING: self._on_uploading,
            UploadState.FINALIZING: self._on_finalizing,
        }

    async def run(self) -> DriverResult:
        """Drive the state machine until a terminal state is reached."""
        self.state = UploadState.IDLE

        try:
            while self.state not in TERMINAL_STATES:
                next_state = await self._handlers[self.state]()
                self.logger.debug("Upload state transition", from_state=self.state.value, to_state=next_state.value)
                self.state = next_state
        finally:
            # Never leave a staged file behind, even when a step raised
            self._discard_staged()

        self._result.final_state = self.state
        self.logger.info(
            "Upload loop finished",
            final_state=self.state.value,
            items_uploaded=self._result.items_uploaded,
            items_duplicate=self._result.items_duplicate,
            items_failed=self._result.items_failed,
            watermark=self._result.watermark_after.isoformat()
        )
        return self._result

    async def _on_idle(self) -> UploadState:
        watermark = self.progress_store.load()
        self._result = DriverResult(
            final_state=UploadState.IDLE,
            watermark_before=watermark,
            watermark_after=watermark
        )

        pending = [item for item in self.library.list_items() if to_utc(item.captured_at) > watermark]
        pending.sort(key=lambda item: (to_utc(item.captured_at), item.name))
        self._candidates = deque(pending)

        self.logger.info(
            "Pending media items selected",
            pending=len(pending),
            watermark=watermark.isoformat(),
            destination_id=self.destination.node_id if self.destination else None
        )
        return UploadState.SELECTING

    async def _on_selecting(self) -> UploadState:
        self._item = None

        if self.deadline is not None and self.clock() >= self.deadline:
            self.logger.info("Time budget exhausted", remaining_items=len(self._candidates))
            return UploadState.BUDGET_EXHAUSTED

        if not self._candidates:
            return UploadState.DONE

        self._item = self._candidates.popleft()
        return UploadState.STAGING

    async def _on_staging(self) -> UploadState:
        try:
            self._staged = self.working_directory.stage(self._item)
        except StagingError as e:
            self._skip_failed_item("Staging failed", str(e))
            return UploadState.SELECTING

        return UploadState.UPLOADING

    async def _on_uploading(self) -> UploadState:
        staged_path = str(self._staged.path)

        try:
            dedup = self.deduplicator.check(staged_path)
        except OSError as e:
            self._discard_staged()
            self._skip_failed_item("Fingerprinting failed", str(e))
            return UploadState.SELECTING

        if dedup.is_duplicate:
            self._discard_staged()
            self._result.items_duplicate += 1
            self._commit_watermark()
            return UploadState.SELECTING

        if self.destination is None:
            self._discard_staged()
            self._skip_failed_item("Destination folder not resolved", None)
            return UploadState.SELECTING

        self.logger.info(
            "Uploading media item",
            name=self._item.name,
            captured_at=to_utc(self._item.captured_at).isoformat(),
            fingerprint=dedup.fingerprint
        )

        if self._transfers_in_flight:
            raise RuntimeError("A transfer is already in flight")

        self._transfers_in_flight += 1
        try:
            self._transfer = await self.session.client.upload_file(staged_path, self.destination)
        except Exception as e:
            self._transfer = TransferResult(success=False, error_message=str(e))
        finally:
            self._transfers_in_flight -= 1

        return UploadState.FINALIZING

    async def _on_finalizing(self) -> UploadState:
        transfer, item = self._transfer, self._item
        self._transfer = None

        try:
            if not transfer.success:
                self._result.error_message = f"Upload of {item.name} failed: {transfer.error_message}"
                self.logger.error(
                    "Upload failed, stopping this invocation",
                    name=item.name,
                    error=transfer.error_message
                )
                return UploadState.ABORTED

            self._result.items_uploaded += 1
            self._result.uploaded_names.append(item.name)

            if self._watermark_held:
                self.logger.info("Watermark held after an earlier skipped item", name=item.name)
            else:
                self._pending_watermark = to_utc(item.captured_at)
                self._commit_watermark()

            return UploadState.SELECTING
        finally:
            self._discard_staged()

    def _commit_watermark(self):
        """Persist the pending watermark once no queued item shares its timestamp.

        Items captured in the same second are selected strictly after the
        watermark, so it may only reach that second when all of them are done.
        """
        pending = self._pending_watermark
        if pending is None or self._watermark_held:
            return

        if self._candidates and to_utc(self._candidates[0].captured_at) == pending:
            self.logger.debug("Watermark deferred until same-time items finish", watermark=pending.isoformat())
            return

        self._pending_watermark = None
        if self.progress_store.save(pending):
            self._result.watermark_after = pending

    def _skip_failed_item(self, reason: str, error: Optional[str]):
        self._result.items_failed += 1
        self._watermark_held = True
        self.logger.warning(reason, name=self._item.name, error=error)

    def _discard_staged(self):
        if self._staged is not None:
            self._staged.discard()
            self._staged = None
