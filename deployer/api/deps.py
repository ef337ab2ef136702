"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from deployer.core.events import EventBus, get_event_bus
from deployer.core.orchestrator import Orchestrators, get_orchestrators
from deployer.core.store import AppStore, get_app_store
from deployer.models.app import App


async def get_store() -> AppStore:
    """Get the app store."""
    return get_app_store()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


async def get_pipeline() -> Orchestrators:
    """Get the deployment orchestrators."""
    return get_orchestrators()


async def get_app_by_id(
    app_id: str,
    store: Annotated[AppStore, Depends(get_store)],
) -> App:
    """Get an app by ID or raise 404."""
    app = await store.get_app(app_id)
    if not app:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"App not found: {app_id}",
        )
    return app


# Type aliases for cleaner signatures
StoreDep = Annotated[AppStore, Depends(get_store)]
EventsDep = Annotated[EventBus, Depends(get_events)]
PipelineDep = Annotated[Orchestrators, Depends(get_pipeline)]
AppDep = Annotated[App, Depends(get_app_by_id)]
