"""Resolution of the well-known upload folder under the remote root."""

import asyncio
from typing import Awaitable, Callable, Optional

from .session import RemoteSession
from ..remote.base import RemoteNode
from ..utils.logging import get_logger


class DestinationResolver:
    """Finds, or creates, the destination folder directly under the root.

    A freshly created folder may not show up in the cached tree straight away,
    so after a create request without a returned node the root is re-scanned
    with growing waits, a bounded number of times.
    """

    def __init__(
        self,
        folder_name: str,
        settle_interval: float = 5.0,
        settle_attempts: int = 3,
        settle_backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.folder_name = folder_name
        self.settle_interval = settle_interval
        self.settle_attempts = max(settle_attempts, 0)
        self.settle_backoff = settle_backoff
        self._sleep = sleep
        self.logger = get_logger(self.__class__.__name__)

    def find(self, session: RemoteSession) -> Optional[RemoteNode]:
        """First folder child of the root whose name matches, ignoring case."""
        wanted = self.folder_name.casefold()
        for node in session.get_children(session.root):
            if node.is_folder and node.name.casefold() == wanted:
                return node
        return None

    async def resolve(self, session: RemoteSession) -> Optional[RemoteNode]:
        """Return the destination folder, or None if it is not available yet."""
        destination = self.find(session)
        if destination is not None:
            self.logger.info("Destination folder found", node_id=destination.node_id)
            return destination

        self.logger.info("Destination folder missing, creating it", name=self.folder_name)
        try:
            created = await session.client.create_folder(self.folder_name, session.root)
        except Exception as e:
            self.logger.error("Create folder request failed", name=self.folder_name, error=str(e))
            return None

        if created is not None and created.is_folder:
            self.logger.info("Destination folder created", node_id=created.node_id)
            return created

        interval = self.settle_interval
        for attempt in range(1, self.settle_attempts + 1):
            await self._sleep(interval)

            destination = self.find(session)
            if destination is not None:
                self.logger.info(
                    "Destination folder visible after create",
                    node_id=destination.node_id,
                    attempt=attempt
                )
                return destination

            interval *= self.settle_backoff

        self.logger.warning(
            "Destination folder still not visible",
            name=self.folder_name,
            attempts=self.settle_attempts
        )
        return None
