"""Unit tests for EditorSession wiring (confirmation, notifications, export)."""

import pytest

from gridsync.client.editor_session import RESET_PROMPT, EditorSession
from gridsync.client.lifecycle import LifecycleState, SessionLifecycleController
from gridsync.config import ClientConfig
from gridsync.errors import SessionBootstrapError


class Notifications:
    def __init__(self):
        self.messages = []

    def __call__(self, message, level):
        self.messages.append((level, message))

    def levels(self):
        return [level for level, _ in self.messages]


@pytest.fixture
def notify():
    return Notifications()


@pytest.fixture
def make_session(local_store, fake_remote, clock, notify):
    created = []

    def _make(confirm=None, exporter=None, remote=True):
        controller = SessionLifecycleController(
            local_store,
            fake_remote if remote else None,
            timer_factory=clock.timer,
        )
        session = EditorSession(controller, confirm=confirm, notify=notify, exporter=exporter)
        created.append(session)
        return session

    yield _make
    for session in created:
        session.controller.close()


class TestReset:
    @pytest.mark.asyncio
    async def test_declined_confirmation_changes_nothing(self, make_session, fake_remote):
        prompts = []

        def confirm(message):
            prompts.append(message)
            return False

        session = make_session(confirm=confirm)
        await session.start()
        session.edit(activeTab="table")

        assert await session.request_reset() is False
        assert prompts == [RESET_PROMPT]
        assert session.state()["activeTab"] == "table"
        assert fake_remote.count("reset") == 0

    @pytest.mark.asyncio
    async def test_without_confirm_provider_reset_is_declined(self, make_session):
        session = make_session()
        await session.start()

        assert await session.request_reset() is False

    @pytest.mark.asyncio
    async def test_confirmed_reset_notifies_success(self, make_session, notify):
        session = make_session(confirm=lambda message: True)
        await session.start()
        session.edit(activeTab="table")

        assert await session.request_reset() is True
        assert session.state()["activeTab"] == "grid"
        assert notify.levels() == ["success"]

    @pytest.mark.asyncio
    async def test_failed_reset_notifies_error(self, make_session, fake_remote, notify):
        session = make_session(confirm=lambda message: True)
        await session.start()
        fake_remote.offline = True

        assert await session.request_reset() is False
        assert notify.levels() == ["error"]


class TestStartAndUpload:
    @pytest.mark.asyncio
    async def test_start_failure_is_notified_and_raised(
        self, make_session, fake_remote, notify
    ):
        fake_remote.fail_create = True
        session = make_session()

        with pytest.raises(SessionBootstrapError):
            await session.start()
        assert notify.levels() == ["error"]

    @pytest.mark.asyncio
    async def test_upload_success(self, make_session, notify, sample_csv_bytes):
        session = make_session()
        await session.start()

        info = await session.upload("people.csv", sample_csv_bytes, "text/csv")

        assert info["summary"]["rows"] == 3
        assert notify.levels() == ["success"]

    @pytest.mark.asyncio
    async def test_rejected_upload_returns_none(self, make_session, notify, sample_csv_bytes):
        session = make_session(remote=False)
        await session.start()

        assert await session.upload("people.csv", sample_csv_bytes, "text/csv") is None
        assert notify.levels() == ["error"]


class TestExport:
    @pytest.mark.asyncio
    async def test_exporter_receives_snapshot(self, make_session):
        received = []
        session = make_session(exporter=received.append, remote=False)
        await session.start()
        session.edit(gridData=[["a", "1"]])

        session.export()
        received[0]["gridData"].append(["mutated"])

        assert received[0]["activeTab"] == "grid"
        assert session.state()["gridData"] == [["a", "1"]]

    def test_export_without_exporter(self, make_session):
        with pytest.raises(RuntimeError):
            make_session().export()


class TestFromConfig:
    @pytest.mark.asyncio
    async def test_empty_server_url_means_local_only(self, temp_dir):
        config = ClientConfig(server_url="", local_dir=f"{temp_dir}/editor")

        session = EditorSession.from_config(config)
        try:
            assert session.controller.local_only
            assert (await session.start()).startswith("local_")
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_server_url_builds_remote_client(self, temp_dir):
        config = ClientConfig(
            server_url="http://127.0.0.1:1", local_dir=f"{temp_dir}/editor"
        )

        session = EditorSession.from_config(config)
        try:
            assert not session.controller.local_only
        finally:
            await session.close()


class TestSessionLoss:
    @pytest.mark.asyncio
    async def test_failed_restart_after_session_loss_is_notified(
        self, make_session, fake_remote, notify, clock
    ):
        session = make_session()
        session_id = await session.start()
        fake_remote.store.remove_session(session_id)
        fake_remote.fail_create = True

        await clock.advance(30)

        assert session.controller.state is LifecycleState.FAILED
        assert notify.levels() == ["error"]
        assert "could not be restarted" in notify.messages[0][1]

    @pytest.mark.asyncio
    async def test_successful_restart_is_silent(
        self, make_session, fake_remote, notify, clock
    ):
        session = make_session()
        session_id = await session.start()
        fake_remote.store.remove_session(session_id)

        await clock.advance(30)

        assert session.controller.state is LifecycleState.ACTIVE
        assert notify.messages == []
