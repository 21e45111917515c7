"""Camera upload synchronization core."""

from .session import RemoteSession, SessionBootstrapper, SessionError
from .destination import DestinationResolver
from .dedup import FingerprintDeduplicator, DedupResult
from .staging import WorkingDirectory, StagedFile, StagingError
from .upload_driver import UploadDriver, UploadState, DriverResult, TERMINAL_STATES
from .agent import CameraUploadAgent, InvocationResult

__all__ = [
    "RemoteSession",
    "SessionBootstrapper",
    "SessionError",
    "DestinationResolver",
    "FingerprintDeduplicator",
    "DedupResult",
    "WorkingDirectory",
    "StagedFile",
    "StagingError",
    "UploadDriver",
    "UploadState",
    "DriverResult",
    "TERMINAL_STATES",
    "CameraUploadAgent",
    "InvocationResult"
]
