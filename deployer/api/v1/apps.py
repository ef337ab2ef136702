"""App registration endpoints.

The chat side of the product owns AppSpecs; these endpoints let it hand a
confirmed AppSpec to the deployer.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from deployer.api.deps import AppDep, StoreDep
from deployer.models.app import App, AppUpsert
from deployer.models.deployment import ProductionPromotionResult, StagingDeploymentResult

router = APIRouter()


class AppResponse(BaseModel):
    """API response model for an app."""

    app_id: str
    name: str
    user_id: str | None = None
    has_spec: bool
    created_at: datetime
    updated_at: datetime
    last_staging: StagingDeploymentResult | None = None
    last_production: ProductionPromotionResult | None = None

    @classmethod
    def from_app(cls, app: App) -> "AppResponse":
        return cls(
            app_id=app.id,
            name=app.name,
            user_id=app.user_id,
            has_spec=app.has_spec,
            created_at=app.created_at,
            updated_at=app.updated_at,
            last_staging=app.last_staging,
            last_production=app.last_production,
        )


class AppListResponse(BaseModel):
    """Response for listing apps."""

    apps: list[AppResponse]
    total: int
    limit: int
    offset: int


@router.put(
    "/{app_id}",
    response_model=AppResponse,
    summary="Register an app and its AppSpec",
)
async def upsert_app(app_id: str, data: AppUpsert, store: StoreDep) -> AppResponse:
    """Create the app, or replace its AppSpec if it already exists."""
    app = await store.upsert_app(app_id, data)
    return AppResponse.from_app(app)


@router.get("", response_model=AppListResponse, summary="List apps")
async def list_apps(
    store: StoreDep,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> AppListResponse:
    apps, total = await store.list_apps(limit=limit, offset=offset)
    return AppListResponse(
        apps=[AppResponse.from_app(a) for a in apps],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{app_id}", response_model=AppResponse, summary="Get an app")
async def get_app(app: AppDep) -> AppResponse:
    return AppResponse.from_app(app)


@router.get("/{app_id}/appspec", summary="Get an app's AppSpec")
async def get_appspec(app: AppDep) -> dict[str, Any]:
    return {"app_id": app.id, "spec": app.spec}


@router.delete(
    "/{app_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an app from the deployer",
)
async def delete_app(app: AppDep, store: StoreDep) -> None:
    await store.delete_app(app.id)
