"""Shared fakes for camera uploader tests."""

import asyncio
import hashlib
import io
import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

from camera_uploader.media.base import BaseMediaLibrary, MediaItem
from camera_uploader.remote.base import (
    BaseRemoteClient,
    RemoteNode,
    NodeType,
    TransferResult,
    AuthenticationError,
    RemoteConnectionError
)
from camera_uploader.remote.google_drive import build_fingerprint


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
VALID_TOKEN = "valid-token"


def at(seconds: int) -> datetime:
    """T0 shifted by ``seconds``."""
    return T0 + timedelta(seconds=seconds)


def fingerprint_of(content: bytes) -> str:
    return build_fingerprint(hashlib.md5(content).hexdigest(), len(content))


class FakeRemoteServer:
    """Remote account state that outlives any single client session."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.root = RemoteNode(node_id="root", name="My Drive", node_type=NodeType.FOLDER)
        self.nodes: Dict[str, RemoteNode] = {"root": self.root}
        self.contents: Dict[str, bytes] = {}
        self.active_sessions = 0
        self.peak_sessions = 0

    def _next_id(self) -> str:
        return f"node-{next(self._ids)}"

    def add_folder(self, name: str, parent_id: str = "root") -> RemoteNode:
        node = RemoteNode(node_id=self._next_id(), name=name, node_type=NodeType.FOLDER, parent_id=parent_id)
        self.nodes[node.node_id] = node
        return node

    def add_file(self, name: str, content: bytes, parent_id: str = "root") -> RemoteNode:
        node = RemoteNode(
            node_id=self._next_id(),
            name=name,
            node_type=NodeType.FILE,
            parent_id=parent_id,
            fingerprint=fingerprint_of(content),
            size=len(content)
        )
        self.nodes[node.node_id] = node
        self.contents[node.node_id] = content
        return node

    def files_in(self, parent: RemoteNode) -> List[RemoteNode]:
        return [
            node for node in self.nodes.values()
            if node.parent_id == parent.node_id and node.node_type == NodeType.FILE
        ]

    def folders_named(self, name: str) -> List[RemoteNode]:
        return [node for node in self.nodes.values() if node.is_folder and node.name == name]


class FakeRemoteClient(BaseRemoteClient):
    """In-memory remote client backed by a :class:`FakeRemoteServer`."""

    def __init__(
        self,
        server: FakeRemoteServer,
        fail_fetch: bool = False,
        create_returns_node: bool = True,
        create_visible: bool = True,
        fail_uploads: Optional[Set[str]] = None,
        auth_delay: float = 0.0,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.server = server
        self.fail_fetch = fail_fetch
        self.create_returns_node = create_returns_node
        self.create_visible = create_visible
        self.fail_uploads = fail_uploads or set()
        self.auth_delay = auth_delay

        self.calls: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def authenticate(self, token: str) -> bool:
        self.calls.append(("authenticate", token))
        if token != VALID_TOKEN:
            raise AuthenticationError("token rejected")
        if self.auth_delay:
            await asyncio.sleep(self.auth_delay)

        self._authenticated = True
        self.server.active_sessions += 1
        self.server.peak_sessions = max(self.server.peak_sessions, self.server.active_sessions)
        return True

    async def fetch_nodes(self) -> RemoteNode:
        self.calls.append(("fetch_nodes", ""))
        if not self._authenticated:
            raise AuthenticationError("not authenticated")
        if self.fail_fetch:
            raise RemoteConnectionError("server error")

        self.tree.clear()
        self.tree.set_root(RemoteNode(**vars(self.server.root)))
        for node in self.server.nodes.values():
            if node.node_id != "root":
                self.tree.add(RemoteNode(**vars(node)))
        return self.tree.root

    async def create_folder(self, name: str, parent: RemoteNode) -> Optional[RemoteNode]:
        self.calls.append(("create_folder", name))
        node = self.server.add_folder(name, parent.node_id)
        if self.create_visible:
            self.tree.add(RemoteNode(**vars(node)))
        return node if self.create_returns_node else None

    def get_file_fingerprint(self, local_path: str) -> str:
        with open(local_path, "rb") as f:
            return fingerprint_of(f.read())

    async def upload_file(self, local_path: str, parent: RemoteNode) -> TransferResult:
        name = os.path.basename(local_path)
        self.calls.append(("upload_file", name))

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)

            if name in self.fail_uploads:
                return TransferResult(success=False, error_message="transfer interrupted")

            with open(local_path, "rb") as f:
                content = f.read()
            node = self.server.add_file(name, content, parent.node_id)
            self.tree.add(RemoteNode(**vars(node)))
            self.uploads.append((name, parent.node_id))
            return TransferResult(success=True, node=node)
        finally:
            self.in_flight -= 1

    async def close(self):
        if self._authenticated and not self.closed:
            self.server.active_sessions -= 1
        self.closed = True
        await super().close()


class InMemoryMediaLibrary(BaseMediaLibrary):
    """Media library over (name, captured_at, content) tuples."""

    def __init__(self, items=None, **kwargs):
        super().__init__(**kwargs)
        self.items: List[Tuple[str, datetime, bytes]] = list(items or [])
        self.unreadable: Set[str] = set()

    def add(self, name: str, captured_at: datetime, content: bytes):
        self.items.append((name, captured_at, content))

    def list_items(self) -> List[MediaItem]:
        return [
            MediaItem(name=name, captured_at=captured_at, opener=self._opener(name, content))
            for name, captured_at, content in self.items
        ]

    def _opener(self, name: str, content: bytes):
        def open_stream():
            if name in self.unreadable:
                raise OSError(f"cannot read {name}")
            return io.BytesIO(content)
        return open_stream
