"""In-memory app store.

Note: the product keeps apps in Postgres; this store backs the standalone
service and the tests.
"""

from datetime import datetime

from deployer.models.app import App, AppUpsert
from deployer.models.deployment import ProductionPromotionResult, StagingDeploymentResult


class AppStore:
    """Holds apps, their AppSpecs and their last deployment results."""

    def __init__(self):
        self._apps: dict[str, App] = {}

    async def upsert_app(self, app_id: str, data: AppUpsert) -> App:
        """Create an app or replace its name, owner and spec."""
        existing = self._apps.get(app_id)
        if existing:
            existing.name = data.name
            existing.user_id = data.user_id
            existing.spec = data.spec
            existing.updated_at = datetime.utcnow()
            return existing

        app = App(id=app_id, name=data.name, user_id=data.user_id, spec=data.spec)
        self._apps[app_id] = app
        return app

    async def get_app(self, app_id: str) -> App | None:
        return self._apps.get(app_id)

    async def delete_app(self, app_id: str) -> bool:
        return self._apps.pop(app_id, None) is not None

    async def list_apps(self, limit: int = 10, offset: int = 0) -> tuple[list[App], int]:
        """List apps, newest first."""
        apps = sorted(self._apps.values(), key=lambda a: a.created_at, reverse=True)
        return apps[offset : offset + limit], len(apps)

    async def record_staging(self, app_id: str, result: StagingDeploymentResult) -> None:
        app = self._apps.get(app_id)
        if app:
            app.last_staging = result
            app.updated_at = datetime.utcnow()

    async def record_production(
        self, app_id: str, result: ProductionPromotionResult
    ) -> None:
        app = self._apps.get(app_id)
        if app:
            app.last_production = result
            app.updated_at = datetime.utcnow()

    def clear(self) -> None:
        self._apps.clear()


# Singleton instance
_app_store: AppStore | None = None


def get_app_store() -> AppStore:
    """Get the app store singleton."""
    global _app_store
    if _app_store is None:
        _app_store = AppStore()
    return _app_store
