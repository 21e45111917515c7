"""Pytest fixtures for camera uploader tests."""

import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from camera_uploader.config.settings import AppSettings, RemoteSettings, UploadSettings
from camera_uploader.core.session import RemoteSession
from camera_uploader.core.staging import WorkingDirectory
from camera_uploader.storage import (
    init_database,
    close_database,
    SettingsStore,
    ProgressStore,
    InvocationLogRepository
)

from helpers import FakeRemoteServer, FakeRemoteClient, InMemoryMediaLibrary, VALID_TOKEN


@pytest.fixture
def db_manager(tmp_path: Path):
    """Fresh SQLite database per test."""
    manager = init_database(f"sqlite:///{tmp_path / 'state' / 'test.db'}")
    yield manager
    close_database()


@pytest.fixture
def settings_store(db_manager) -> SettingsStore:
    store = SettingsStore(db_manager)
    store.save_setting("remote_credential_token", VALID_TOKEN)
    return store


@pytest.fixture
def progress_store(settings_store) -> ProgressStore:
    return ProgressStore(settings_store, key="LastUploadDate")


@pytest.fixture
def history(db_manager) -> InvocationLogRepository:
    return InvocationLogRepository(db_manager)


@pytest.fixture
def app_settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        remote=RemoteSettings(provider="fake", credential_key="remote_credential_token"),
        upload=UploadSettings(
            destination_folder_name="Camera Uploads",
            working_directory=str(tmp_path / "uploads"),
            media_directory=str(tmp_path / "media"),
            watermark_key="LastUploadDate",
            settle_interval_seconds=1.0,
            settle_attempts=2,
            settle_backoff=2.0,
            max_run_seconds=600.0
        )
    )


@pytest.fixture
def remote_server() -> FakeRemoteServer:
    return FakeRemoteServer()


@pytest.fixture
def remote_client(remote_server) -> FakeRemoteClient:
    return FakeRemoteClient(remote_server)


@pytest_asyncio.fixture
async def remote_session(remote_client) -> RemoteSession:
    """Authenticated session over the fake server."""
    await remote_client.authenticate(VALID_TOKEN)
    root = await remote_client.fetch_nodes()
    return RemoteSession(client=remote_client, root=root)


@pytest.fixture
def media_library() -> InMemoryMediaLibrary:
    return InMemoryMediaLibrary()


@pytest.fixture
def working_directory(tmp_path: Path) -> WorkingDirectory:
    directory = WorkingDirectory(str(tmp_path / "uploads"))
    directory.ensure()
    return directory
