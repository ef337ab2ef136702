"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deployer import __version__
from deployer.api.middleware import RequestLoggingMiddleware
from deployer.api.v1.router import router as v1_router
from deployer.config import settings
from deployer.core.exceptions import ConfigurationError, DeployerError
from deployer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        github_org=settings.github_org,
        vercel_team_id=settings.vercel_team_id,
    )

    yield

    logger.info("application.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Fastform Deployer API",
        description="Deploys generated apps to staging and promotes them to production",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(DeployerError)
    async def deployer_error_handler(
        request: Request, exc: DeployerError
    ) -> JSONResponse:
        """Handle pipeline errors that escape a route."""
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if isinstance(exc, ConfigurationError)
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(
            status_code=code,
            content={
                "error": {
                    "code": type(exc).__name__.upper(),
                    **exc.to_dict(),
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

        message = str(exc) if settings.is_development else "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": message}},
        )

    app.include_router(v1_router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deployer.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
