"""Collaborator interfaces consumed by the orchestrators."""

from typing import Any, Protocol

from deployer.models.app import App, AppSpec, RepositoryInfo
from deployer.models.generation import GenerationResult, InjectionResult


class SpecificationStore(Protocol):
    async def get_app(self, app_id: str) -> App | None: ...

    async def record_staging(self, app_id: str, result: Any) -> None: ...

    async def record_production(self, app_id: str, result: Any) -> None: ...


class PromptCompiler(Protocol):
    def __call__(self, spec: AppSpec) -> str: ...


class CodeGenerator(Protocol):
    async def generate(self, prompt: str, app_id: str) -> GenerationResult: ...


class InvariantInjector(Protocol):
    async def inject(self, code: str, spec: AppSpec) -> InjectionResult: ...


class RepositoryManager(Protocol):
    async def repository_exists(self, repo_name: str) -> bool: ...

    async def ensure_repository(self, owner_id: str, app_slug: str) -> RepositoryInfo: ...

    def repo_url(self, repo_name: str, owner: str | None = None) -> str: ...
