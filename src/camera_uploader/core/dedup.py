"""Fingerprint-based detection of items already stored remotely."""

from dataclasses import dataclass
from typing import Optional

from .session import RemoteSession
from ..remote.base import RemoteNode
from ..utils.logging import get_logger


@dataclass
class DedupResult:
    fingerprint: str
    existing_node: Optional[RemoteNode] = None

    @property
    def is_duplicate(self) -> bool:
        return self.existing_node is not None


class FingerprintDeduplicator:
    """Looks staged files up by content fingerprint across the whole account."""

    def __init__(self, session: RemoteSession):
        self.session = session
        self.logger = get_logger(self.__class__.__name__)

    def check(self, local_path: str) -> DedupResult:
        client = self.session.client
        fingerprint = client.get_file_fingerprint(local_path)
        existing = client.get_node_by_fingerprint(fingerprint)

        if existing is not None:
            self.logger.info(
                "Content already stored remotely",
                local_path=local_path,
                node_id=existing.node_id,
                parent_id=existing.parent_id
            )

        return DedupResult(fingerprint=fingerprint, existing_node=existing)
