"""
End-to-end tests: lifecycle controller and scheduler talking to the real
HTTP handlers through an in-process ASGI transport.
"""

import httpx
import pytest
import pytest_asyncio

from gridsync.client.lifecycle import LifecycleState, SessionLifecycleController
from gridsync.client.local_state_store import LocalStateStore
from gridsync.client.remote_client import RemoteSessionClient
from gridsync.errors import InvalidInputError
from gridsync.in_memory_session_store import InMemorySessionStore
from gridsync.server import SessionAPI, create_app


@pytest.fixture
def server_store(clock):
    return InMemorySessionStore(clock=clock)


@pytest_asyncio.fixture
async def remote(server_store):
    app = create_app(SessionAPI(server_store))
    client = RemoteSessionClient(
        "http://testserver", transport=httpx.ASGITransport(app=app)
    )
    yield client
    await client.aclose()


def _controller(store, remote, clock):
    return SessionLifecycleController(
        store,
        remote,
        debounce_seconds=0.5,
        poll_interval_seconds=30.0,
        timer_factory=clock.timer,
    )


class TestSessionRoundTrip:
    @pytest.mark.asyncio
    async def test_edit_push_and_eviction_recovery(
        self, local_store, remote, server_store, clock
    ):
        controller = _controller(local_store, remote, clock)
        first_id = await controller.bootstrap()

        controller.update({"activeTab": "table", "gridData": [["a", "b"], ["1", "2"]]})
        await clock.advance(0.5)

        record = server_store.peek(first_id)
        assert record.ui_state["activeTab"] == "table"
        assert record.workspace_data["gridData"] == [["a", "b"], ["1", "2"]]

        # Idle long enough to be evicted by a zero-age sweep
        clock.tick(1)
        assert server_store.sweep_expired(max_age=0) == [first_id]

        await clock.advance(30)

        assert controller.state is LifecycleState.ACTIVE
        second_id = controller.session_id
        assert second_id != first_id
        assert server_store.has_session(second_id)
        assert local_store.remembered_session_id() == second_id
        state = controller.read()
        assert state["sessionId"] == second_id
        assert state["activeTab"] == "grid"
        assert state["gridData"] == []
        controller.close()

    @pytest.mark.asyncio
    async def test_resume_after_restart(self, temp_dir, remote, clock):
        directory = f"{temp_dir}/editor"
        with LocalStateStore(directory) as store:
            controller = _controller(store, remote, clock)
            session_id = await controller.bootstrap()
            controller.update({"activeTab": "pq-query"})
            assert await controller.flush()
            controller.close()

        with LocalStateStore(directory) as store:
            controller = _controller(store, remote, clock)
            assert await controller.bootstrap() == session_id
            assert controller.read()["activeTab"] == "pq-query"
            controller.close()

    @pytest.mark.asyncio
    async def test_upload_and_reset_over_http(
        self, local_store, remote, server_store, clock, sample_csv_bytes
    ):
        controller = _controller(local_store, remote, clock)
        session_id = await controller.bootstrap()

        info = await controller.upload("people.csv", sample_csv_bytes, "text/csv")
        assert info["summary"]["columns"] == ["name", "age", "city"]
        assert "data" not in info
        assert len(server_store.peek(session_id).workspace_data["uploads"]) == 1

        controller.update({"excelToggle": True})
        state = await controller.reset()
        await clock.advance(1)

        assert state["excelToggle"] is False
        assert state["uploads"] == []
        record = server_store.peek(session_id)
        assert record.ui_state["excelToggle"] is False
        assert record.workspace_data["uploads"] == []
        controller.close()

    @pytest.mark.asyncio
    async def test_bad_local_value_does_not_break_sync(
        self, local_store, remote, server_store, clock
    ):
        controller = _controller(local_store, remote, clock)
        session_id = await controller.bootstrap()

        with pytest.raises(InvalidInputError):
            controller.update({"activeTab": "bogus"})
        # Same kind of value, but already on disk
        local_store.write({"docProps": "oops"})

        controller.update({"gridData": [["a"]], "excelToggle": True})
        assert await controller.flush() is True

        record = server_store.peek(session_id)
        assert record.workspace_data["gridData"] == [["a"]]
        assert record.ui_state["excelToggle"] is True
        assert record.ui_state["activeTab"] == "grid"
        assert isinstance(record.ui_state["docProps"], dict)
        controller.close()

    @pytest.mark.asyncio
    async def test_health(self, remote, server_store):
        server_store.create()

        body = await remote.health()

        assert body["activeSessions"] == 1
