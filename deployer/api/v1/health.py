"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from deployer import __version__
from deployer.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    timestamp: datetime
    credentials: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health and which deployment credentials are configured."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.utcnow(),
        credentials={
            "github": bool(settings.github_token),
            "vercel": bool(settings.vercel_token),
            "v0": bool(settings.v0_api_key),
        },
    )
