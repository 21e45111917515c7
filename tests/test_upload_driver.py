"""Tests for the sequential upload state machine."""

import itertools

import pytest

from camera_uploader.core import RemoteSession, UploadDriver, UploadState
from camera_uploader.storage import MIN_WATERMARK

from helpers import FakeRemoteClient, VALID_TOKEN, at


async def open_session(client) -> RemoteSession:
    await client.authenticate(VALID_TOKEN)
    return RemoteSession(client=client, root=await client.fetch_nodes())


@pytest.fixture
def destination(remote_server):
    return remote_server.add_folder("Camera Uploads")


def make_driver(session, destination, library, progress_store, working_directory, **kwargs):
    return UploadDriver(
        session=session,
        destination=destination,
        library=library,
        progress_store=progress_store,
        working_directory=working_directory,
        **kwargs
    )


class TestUploadDriver:

    @pytest.mark.asyncio
    async def test_uploads_pending_items_in_capture_order(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_3.jpg", at(3), b"three")
        media_library.add("IMG_1.jpg", at(1), b"one")
        media_library.add("IMG_2.jpg", at(2), b"two")
        client = FakeRemoteClient(remote_server)
        session = await open_session(client)

        result = await make_driver(session, destination, media_library, progress_store, working_directory).run()

        assert result.final_state == UploadState.DONE
        assert result.uploaded_names == ["IMG_1.jpg", "IMG_2.jpg", "IMG_3.jpg"]
        assert [name for name, _ in client.uploads] == ["IMG_1.jpg", "IMG_2.jpg", "IMG_3.jpg"]
        assert all(parent == destination.node_id for _, parent in client.uploads)
        assert result.watermark_before == MIN_WATERMARK
        assert result.watermark_after == at(3)
        assert progress_store.load() == at(3)
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_equal_timestamps_are_ordered_by_name(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_b.jpg", at(1), b"b")
        media_library.add("IMG_a.jpg", at(1), b"a")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.uploaded_names == ["IMG_a.jpg", "IMG_b.jpg"]

    @pytest.mark.asyncio
    async def test_items_at_or_before_watermark_are_ignored(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        progress_store.save(at(5))
        media_library.add("IMG_old.jpg", at(4), b"old")
        media_library.add("IMG_same.jpg", at(5), b"same")
        media_library.add("IMG_new.jpg", at(6), b"new")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.uploaded_names == ["IMG_new.jpg"]
        assert progress_store.load() == at(6)

    @pytest.mark.asyncio
    async def test_nothing_pending(self, remote_session, destination, media_library, progress_store, working_directory):
        result = await make_driver(remote_session, destination, media_library, progress_store, working_directory).run()

        assert result.final_state == UploadState.DONE
        assert result.items_uploaded == 0
        assert progress_store.load() == MIN_WATERMARK

    @pytest.mark.asyncio
    async def test_duplicate_is_skipped_without_touching_watermark(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        elsewhere = remote_server.add_folder("Backup")
        remote_server.add_file("copy.jpg", b"already there", parent_id=elsewhere.node_id)
        media_library.add("IMG_1.jpg", at(1), b"already there")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.DONE
        assert result.items_duplicate == 1
        assert result.items_uploaded == 0
        assert client.uploads == []
        assert progress_store.load() == MIN_WATERMARK
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_failed_transfer_aborts_the_loop(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_1.jpg", at(1), b"one")
        media_library.add("IMG_2.jpg", at(2), b"two")
        media_library.add("IMG_3.jpg", at(3), b"three")
        client = FakeRemoteClient(remote_server, fail_uploads={"IMG_2.jpg"})

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.ABORTED
        assert result.uploaded_names == ["IMG_1.jpg"]
        assert "IMG_2.jpg" in result.error_message
        assert ("upload_file", "IMG_3.jpg") not in client.calls
        assert progress_store.load() == at(1)
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_raising_transfer_is_treated_as_failure(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_1.jpg", at(1), b"one")
        client = FakeRemoteClient(remote_server)
        session = await open_session(client)

        async def broken_upload(local_path, parent):
            raise ConnectionResetError("socket closed")

        client.upload_file = broken_upload

        result = await make_driver(session, destination, media_library, progress_store, working_directory).run()

        assert result.final_state == UploadState.ABORTED
        assert "socket closed" in result.error_message
        assert progress_store.load() == MIN_WATERMARK
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_unresolved_destination_skips_new_items(
        self, remote_server, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_1.jpg", at(1), b"one")
        media_library.add("IMG_2.jpg", at(2), b"two")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client), None, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.DONE
        assert result.items_failed == 2
        assert client.uploads == []
        assert progress_store.load() == MIN_WATERMARK
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_staging_failure_holds_the_watermark(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_1.jpg", at(1), b"one")
        media_library.add("IMG_2.jpg", at(2), b"two")
        media_library.add("IMG_3.jpg", at(3), b"three")
        media_library.unreadable.add("IMG_2.jpg")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.DONE
        assert result.uploaded_names == ["IMG_1.jpg", "IMG_3.jpg"]
        assert result.items_failed == 1
        assert result.watermark_after == at(1)
        assert progress_store.load() == at(1)

    @pytest.mark.asyncio
    async def test_time_budget_stops_between_items(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        for second in range(1, 6):
            media_library.add(f"IMG_{second}.jpg", at(second), f"photo {second}".encode())
        client = FakeRemoteClient(remote_server)
        clock = itertools.count(0, 4).__next__

        result = await make_driver(
            await open_session(client),
            destination,
            media_library,
            progress_store,
            working_directory,
            deadline=10,
            clock=clock
        ).run()

        assert result.final_state == UploadState.BUDGET_EXHAUSTED
        assert result.items_uploaded == 3
        assert progress_store.load() == at(3)
        assert working_directory.is_empty()

    @pytest.mark.asyncio
    async def test_one_transfer_in_flight(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        for second in range(1, 5):
            media_library.add(f"IMG_{second}.jpg", at(second), f"photo {second}".encode())
        client = FakeRemoteClient(remote_server)

        await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert len(client.uploads) == 4
        assert client.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_staged_file_removed_when_a_step_raises(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_1.jpg", at(1), b"one")
        client = FakeRemoteClient(remote_server)
        session = await open_session(client)

        def exploding_save(captured_at):
            raise RuntimeError("database is locked")

        progress_store.save = exploding_save

        with pytest.raises(RuntimeError):
            await make_driver(session, destination, media_library, progress_store, working_directory).run()

        assert working_directory.is_empty()
        assert len(client.uploads) == 1

    @pytest.mark.asyncio
    async def test_failure_within_one_capture_second_keeps_watermark_below_it(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_a.jpg", at(1), b"a")
        media_library.add("IMG_b.jpg", at(1), b"b")
        client = FakeRemoteClient(remote_server, fail_uploads={"IMG_b.jpg"})

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.ABORTED
        assert result.uploaded_names == ["IMG_a.jpg"]
        assert result.watermark_after == MIN_WATERMARK
        assert progress_store.load() == MIN_WATERMARK

        retry_client = FakeRemoteClient(remote_server)
        retry = await make_driver(
            await open_session(retry_client), destination, media_library, progress_store, working_directory
        ).run()

        assert retry.final_state == UploadState.DONE
        assert retry.items_duplicate == 1
        assert retry.uploaded_names == ["IMG_b.jpg"]
        assert progress_store.load() == at(1)
        assert sorted(node.name for node in remote_server.files_in(destination)) == ["IMG_a.jpg", "IMG_b.jpg"]

    @pytest.mark.asyncio
    async def test_budget_stop_within_one_capture_second_keeps_watermark_below_it(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_a.jpg", at(1), b"a")
        media_library.add("IMG_b.jpg", at(1), b"b")
        media_library.add("IMG_c.jpg", at(2), b"c")
        client = FakeRemoteClient(remote_server)

        result = await make_driver(
            await open_session(client),
            destination,
            media_library,
            progress_store,
            working_directory,
            deadline=3,
            clock=itertools.count(0, 4).__next__
        ).run()

        assert result.final_state == UploadState.BUDGET_EXHAUSTED
        assert result.uploaded_names == ["IMG_a.jpg"]
        assert progress_store.load() == MIN_WATERMARK

        retry = await make_driver(
            await open_session(FakeRemoteClient(remote_server)),
            destination,
            media_library,
            progress_store,
            working_directory
        ).run()

        assert retry.items_duplicate == 1
        assert retry.uploaded_names == ["IMG_b.jpg", "IMG_c.jpg"]
        assert progress_store.load() == at(2)

    @pytest.mark.asyncio
    async def test_watermark_reaches_shared_second_once_all_items_are_stored(
        self, remote_server, destination, media_library, progress_store, working_directory
    ):
        media_library.add("IMG_a.jpg", at(1), b"a")
        media_library.add("IMG_b.jpg", at(1), b"b")
        media_library.add("IMG_c.jpg", at(2), b"c")
        client = FakeRemoteClient(remote_server, fail_uploads={"IMG_c.jpg"})

        result = await make_driver(
            await open_session(client), destination, media_library, progress_store, working_directory
        ).run()

        assert result.final_state == UploadState.ABORTED
        assert result.uploaded_names == ["IMG_a.jpg", "IMG_b.jpg"]
        assert result.watermark_after == at(1)
        assert progress_store.load() == at(1)
