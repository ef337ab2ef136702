"""App and AppSpec models.

The AppSpec is owned by the chat/spec side of the product; the deployer
only needs a handful of fields from it and carries the rest through
untouched.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deployer.models.deployment import ProductionPromotionResult, StagingDeploymentResult


class AppSpecMeta(BaseModel):
    """Identity of the app being generated."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9-]+$")
    org_id: str = Field(..., min_length=1, alias="orgId")
    description: str | None = None


class AppSpec(BaseModel):
    """Structured description of the app to generate."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    version: str | None = None
    meta: AppSpecMeta
    pages: list[dict[str, Any]]


class App(BaseModel):
    """A stored app with its confirmed AppSpec and last deployment results."""

    id: str
    user_id: str | None = None
    name: str
    spec: dict[str, Any] | None = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    last_staging: StagingDeploymentResult | None = None
    last_production: ProductionPromotionResult | None = None

    @property
    def has_spec(self) -> bool:
        return bool(self.spec)


class AppUpsert(BaseModel):
    """Request model for registering an app and its AppSpec."""

    name: str = Field(..., min_length=1, max_length=100)
    user_id: str | None = None
    spec: dict[str, Any] | None = None


class RepositoryInfo(BaseModel):
    """A GitHub repository that backs one app."""

    repo_name: str
    repo_url: str
    owner: str
