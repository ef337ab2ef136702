"""Staging deployment and production promotion endpoints."""

import asyncio
import json

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from deployer.api.deps import AppDep, EventsDep, PipelineDep
from deployer.core.events import Event
from deployer.core.exceptions import (
    CodeGenerationError,
    DeployerError,
    DeploymentPhaseError,
    GitCommitError,
    PromotionError,
)
from deployer.models.app import App
from deployer.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

NO_SPEC_RESPONSE = {
    "error": "App has no AppSpec",
    "details": "You must confirm an AppSpec before deploying",
}


def _missing_spec(app: App) -> JSONResponse | None:
    if not app.has_spec:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=NO_SPEC_RESPONSE)
    return None


def staging_error_body(error: Exception) -> dict:
    """Map a staging failure onto the response body operators see."""
    if isinstance(error, CodeGenerationError):
        return {
            "error": "Code generation failed",
            "phase": error.phase,
            "details": error.message,
            "appId": error.app_id,
        }
    if isinstance(error, GitCommitError):
        return {
            "error": "GitHub commit failed",
            "phase": error.phase,
            "details": error.message,
            "repoName": error.repo_name,
        }
    if isinstance(error, DeploymentPhaseError):
        body = {"error": "Deployment failed", "phase": error.phase, "details": error.message}
        if error.timed_out:
            body["timedOut"] = True
        return body
    if isinstance(error, DeployerError):
        return {"error": "Deployment failed", "kind": error.kind.value, "details": error.message}
    return {"error": "Deployment failed", "details": str(error) or "Unknown error"}


def promotion_error_body(error: PromotionError) -> dict:
    body = {
        "error": "Promotion failed",
        "phase": error.phase,
        "details": error.message,
        "appId": error.app_id,
    }
    if error.conflict:
        body["conflict"] = True
    if error.timed_out:
        body["timedOut"] = True
    if error.rollback_info is not None:
        body["rollbackInfo"] = error.rollback_info.model_dump(by_alias=True)
    return body


@router.post(
    "/{app_id}/deploy/staging",
    summary="Deploy an app to staging",
    description="Generates code from the app's AppSpec, commits it to the staging branch and waits for Vercel.",
)
async def deploy_staging(app: AppDep, pipeline: PipelineDep) -> JSONResponse:
    if (response := _missing_spec(app)) is not None:
        return response

    try:
        result = await pipeline.staging.deploy(app.id)
    except Exception as e:
        logger.error("api.deploy_staging.failed", app_id=app.id, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=staging_error_body(e),
        )

    return JSONResponse(
        content={
            "success": True,
            "deployment": {
                **result.model_dump(by_alias=True, mode="json"),
                "message": "Deployment completed successfully",
            },
        }
    )


@router.get("/{app_id}/deploy/staging", summary="Get the latest staging deployment")
async def get_staging_status(app: AppDep) -> dict:
    if app.last_staging is None:
        return {
            "success": True,
            "deployment": {
                "status": "no_deployment",
                "stagingUrl": None,
                "deploymentId": None,
                "message": "No deployment found. Trigger a deployment to get started.",
            },
        }

    return {
        "success": True,
        "deployment": {
            **app.last_staging.model_dump(by_alias=True, mode="json"),
            "message": "Staging deployment is live",
        },
    }


@router.post(
    "/{app_id}/deploy/production",
    summary="Promote the staging deployment to production",
)
async def promote_production(app: AppDep, pipeline: PipelineDep) -> JSONResponse:
    if (response := _missing_spec(app)) is not None:
        return response

    try:
        result = await pipeline.promotion.promote(app.id)
    except PromotionError as e:
        logger.error("api.promote.failed", app_id=app.id, phase=e.phase, error=e.message)
        code = (
            status.HTTP_409_CONFLICT
            if e.in_progress or e.conflict
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(status_code=code, content=promotion_error_body(e))
    except Exception as e:
        logger.error("api.promote.failed", app_id=app.id, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=staging_error_body(e) | {"error": "Promotion failed"},
        )

    return JSONResponse(
        content={
            "success": True,
            "deployment": {
                **result.model_dump(by_alias=True, mode="json"),
                "message": "Promotion completed successfully",
            },
        }
    )


@router.get("/{app_id}/deploy/production", summary="Get the latest production deployment")
async def get_production_status(app: AppDep) -> dict:
    if app.last_production is None:
        return {
            "success": True,
            "deployment": {
                "status": "no_deployment",
                "productionUrl": None,
                "deploymentId": None,
                "message": "App has not been promoted to production yet.",
            },
        }

    return {
        "success": True,
        "deployment": app.last_production.model_dump(by_alias=True, mode="json"),
    }


@router.get("/{app_id}/deploy/events", summary="Stream deployment events (SSE)")
async def stream_deploy_events(app: AppDep, events: EventsDep) -> EventSourceResponse:
    """Stream pipeline phase events for an app using Server-Sent Events."""

    async def event_generator():
        queue = events.subscribe(app.id)

        try:
            yield {"event": "connected", "data": json.dumps({"app_id": app.id})}

            while True:
                try:
                    event: Event = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield {"event": event.event_type, "data": event.to_json()}

                    if event.is_terminal:
                        break

                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}

        finally:
            events.unsubscribe(app.id)

    return EventSourceResponse(event_generator())
