"""Unit tests for the app store and event bus."""

import json

import pytest

from deployer.core.events import Event, EventBus
from deployer.core.store import AppStore
from deployer.models.app import AppUpsert
from deployer.models.deployment import StagingDeploymentResult


class TestAppStore:
    """Tests for AppStore."""

    @pytest.fixture
    def empty_store(self) -> AppStore:
        return AppStore()

    async def test_upsert_creates(self, empty_store: AppStore, sample_spec: dict):
        app = await empty_store.upsert_app("app_1", AppUpsert(name="Intake", spec=sample_spec))

        assert app.id == "app_1"
        assert app.has_spec
        assert await empty_store.get_app("app_1") is app

    async def test_upsert_replaces_spec(self, empty_store: AppStore, sample_spec: dict):
        created = await empty_store.upsert_app("app_1", AppUpsert(name="Intake"))
        assert not created.has_spec

        updated = await empty_store.upsert_app("app_1", AppUpsert(name="Intake v2", spec=sample_spec))

        assert updated.name == "Intake v2"
        assert updated.has_spec
        assert updated.created_at == created.created_at

    async def test_list_and_delete(self, empty_store: AppStore):
        for i in range(3):
            await empty_store.upsert_app(f"app_{i}", AppUpsert(name=f"App {i}"))

        apps, total = await empty_store.list_apps(limit=2)
        assert total == 3
        assert len(apps) == 2

        assert await empty_store.delete_app("app_0")
        assert not await empty_store.delete_app("app_0")
        assert (await empty_store.list_apps())[1] == 2

    async def test_record_staging(self, store: AppStore, app_id: str):
        result = StagingDeploymentResult(
            staging_url="https://s.vercel.app",
            deployment_id="dpl_1",
            github_commit_sha="abc",
            repo_url="https://github.com/getfastform/repo",
        )

        await store.record_staging(app_id, result)

        assert (await store.get_app(app_id)).last_staging == result

    async def test_record_for_unknown_app_is_ignored(self, empty_store: AppStore):
        result = StagingDeploymentResult(
            staging_url="https://s.vercel.app",
            deployment_id="dpl_1",
            github_commit_sha="abc",
            repo_url="https://github.com/getfastform/repo",
        )

        await empty_store.record_staging("missing", result)

        assert await empty_store.get_app("missing") is None


class TestEventBus:
    """Tests for EventBus."""

    async def test_publish_to_subscriber(self):
        bus = EventBus()
        queue = bus.subscribe("app_1")

        await bus.publish_phase_started("app_1", "generate_code")
        await bus.publish_deployment_ready("app_1", "https://p.vercel.app", "production")

        first = queue.get_nowait()
        second = queue.get_nowait()
        assert first.event_type == "phase_started"
        assert not first.is_terminal
        assert second.event_type == "promotion_ready"
        assert second.is_terminal

    async def test_publish_without_subscriber_is_dropped(self):
        bus = EventBus()

        await bus.publish_error("app_1", {"error": "boom"}, "commit_code")

        assert bus.subscribe("app_1").empty()

    def test_event_json(self):
        event = Event(event_type="phase_completed", data={"phase": "commit_code", "duration_ms": 12})

        data = json.loads(event.to_json())

        assert data["phase"] == "commit_code"
        assert data["duration_ms"] == 12
        assert "timestamp" in data
