"""Main router for API v1."""

from fastapi import APIRouter

from deployer.api.v1 import apps, deployments, health

router = APIRouter(prefix="/v1")

# Include sub-routers
router.include_router(health.router, tags=["health"])
router.include_router(apps.router, prefix="/apps", tags=["apps"])
router.include_router(deployments.router, prefix="/apps", tags=["deployments"])
