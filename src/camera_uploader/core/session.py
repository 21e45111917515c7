"""Remote session bootstrap: authenticate, then fetch the remote tree."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from ..remote.base import BaseRemoteClient, RemoteNode
from ..storage.settings_store import SettingsStore
from ..utils.logging import get_logger


class SessionError(Exception):
    """Raised when no usable remote session could be established."""
    pass


@dataclass
class RemoteSession:
    """Authenticated connection owned by a single invocation."""

    client: BaseRemoteClient
    root: RemoteNode
    established_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: bool = False

    def get_children(self, node: RemoteNode) -> List[RemoteNode]:
        return self.client.get_children(node)

    async def close(self):
        if not self.closed:
            self.closed = True
            await self.client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class SessionBootstrapper:
    """Builds a :class:`RemoteSession` from the persisted credential token.

    Authentication and tree fetch run strictly in that order and are not
    retried; the next scheduled invocation is the retry.
    """

    def __init__(self, client: BaseRemoteClient, settings_store: SettingsStore, credential_key: str):
        self.client = client
        self.settings_store = settings_store
        self.credential_key = credential_key
        self.logger = get_logger(self.__class__.__name__)

    async def bootstrap(self) -> RemoteSession:
        """Authenticate and fetch nodes.

        Raises:
            SessionError: If the token is missing or either remote step fails
        """
        try:
            token: Optional[str] = self.settings_store.load_setting(self.credential_key)
        except Exception as e:
            raise SessionError(f"Could not read credential token: {e}") from e

        if not token:
            raise SessionError(f"No credential token stored under '{self.credential_key}'")

        try:
            authenticated = await self.client.authenticate(token)
            if not authenticated:
                raise SessionError("Authentication was rejected")

            self.logger.info("Remote session authenticated")

            root = await self.client.fetch_nodes()
            if root is None:
                raise SessionError("Remote tree has no root node")

        except SessionError:
            await self.client.close()
            raise
        except Exception as e:
            await self.client.close()
            self.logger.error("Session bootstrap failed", error=str(e))
            raise SessionError(f"Session bootstrap failed: {e}") from e

        self.logger.info("Remote tree fetched", root_id=root.node_id)
        return RemoteSession(client=self.client, root=root)
