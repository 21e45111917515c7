"""Base remote storage client interface and the cached node tree."""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional
from dataclasses import dataclass
from enum import Enum

from ..utils.logging import get_logger


class NodeType(str, Enum):
    """Kinds of remote nodes."""
    FOLDER = "folder"
    FILE = "file"


@dataclass
class RemoteNode:
    """A folder or file in the remote tree."""

    node_id: str
    name: str
    node_type: NodeType
    parent_id: Optional[str] = None
    fingerprint: Optional[str] = None  # files only
    size: Optional[int] = None

    @property
    def is_folder(self) -> bool:
        return self.node_type == NodeType.FOLDER


@dataclass
class TransferResult:
    """Outcome of one awaited upload."""

    success: bool
    node: Optional[RemoteNode] = None
    error_message: Optional[str] = None


class RemoteNodeTree:
    """Locally cached copy of the remote filesystem.

    Lookups by parent and by fingerprint are served from indexes so the
    upload loop never goes back to the network for them.
    """

    def __init__(self):
        self.root: Optional[RemoteNode] = None
        self._nodes: Dict[str, RemoteNode] = {}
        self._children: Dict[str, List[str]] = {}
        self._by_fingerprint: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def clear(self):
        self.root = None
        self._nodes.clear()
        self._children.clear()
        self._by_fingerprint.clear()

    def set_root(self, node: RemoteNode):
        self.root = node
        self.add(node)

    def add(self, node: RemoteNode):
        """Insert or replace a node."""
        if node.node_id in self._nodes:
            self.remove(node.node_id)

        self._nodes[node.node_id] = node
        if node.parent_id is not None:
            self._children.setdefault(node.parent_id, []).append(node.node_id)
        if node.fingerprint:
            # First node with a given fingerprint wins
            self._by_fingerprint.setdefault(node.fingerprint, node.node_id)

    def remove(self, node_id: str):
        node = self._nodes.pop(node_id, None)
        if node is None:
            return
        if node.parent_id is not None:
            siblings = self._children.get(node.parent_id, [])
            if node_id in siblings:
                siblings.remove(node_id)
        if node.fingerprint and self._by_fingerprint.get(node.fingerprint) == node_id:
            del self._by_fingerprint[node.fingerprint]

    def get(self, node_id: str) -> Optional[RemoteNode]:
        return self._nodes.get(node_id)

    def children(self, node: RemoteNode) -> List[RemoteNode]:
        return [self._nodes[child_id] for child_id in self._children.get(node.node_id, [])]

    def find_by_fingerprint(self, fingerprint: str) -> Optional[RemoteNode]:
        node_id = self._by_fingerprint.get(fingerprint)
        return self._nodes.get(node_id) if node_id else None


class BaseRemoteClient(ABC):
    """Abstract base class for remote storage clients.

    Network operations are coroutines. Tree lookups (root, children,
    fingerprint) are answered from the tree cached by :meth:`fetch_nodes`.
    """

    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)
        self.tree = RemoteNodeTree()
        self._authenticated = False

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @abstractmethod
    async def authenticate(self, token: str) -> bool:
        """Establish an authenticated session from a persisted credential token.

        Returns:
            True if authentication succeeded

        Raises:
            AuthenticationError: If the token is rejected or unusable
        """
        pass

    @abstractmethod
    async def fetch_nodes(self) -> RemoteNode:
        """Download the remote tree into :attr:`tree`.

        Returns:
            The root node
        """
        pass

    @abstractmethod
    async def create_folder(self, name: str, parent: RemoteNode) -> Optional[RemoteNode]:
        """Create a folder under ``parent``.

        Returns:
            The created node if the backend reports it, otherwise None
        """
        pass

    @abstractmethod
    def get_file_fingerprint(self, local_path: str) -> str:
        """Compute the content fingerprint of a local file."""
        pass

    @abstractmethod
    async def upload_file(self, local_path: str, parent: RemoteNode) -> TransferResult:
        """Upload one local file into ``parent`` and wait for it to finish."""
        pass

    def get_root_node(self) -> Optional[RemoteNode]:
        return self.tree.root

    def get_children(self, node: RemoteNode) -> List[RemoteNode]:
        return self.tree.children(node)

    def get_node_by_fingerprint(self, fingerprint: str) -> Optional[RemoteNode]:
        """Search the whole account, not a single folder."""
        return self.tree.find_by_fingerprint(fingerprint)

    async def close(self):
        """Release the session."""
        self._authenticated = False
        self.tree.clear()


class RemoteClientError(Exception):
    """Base class for remote client failures."""
    pass


class AuthenticationError(RemoteClientError):
    """Raised when the credential token is rejected."""
    pass


class RemoteConnectionError(RemoteClientError):
    """Raised when the remote service cannot be reached or answers with an error."""
    pass


class RateLimitError(RemoteClientError):
    """Raised when the remote rate limit is exceeded."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after
