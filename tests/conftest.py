"""Pytest configuration and fixtures."""

from typing import Any, Callable

import pytest
from httpx import ASGITransport, AsyncClient

from deployer.api.deps import get_events, get_pipeline, get_store
from deployer.config import Settings
from deployer.core.events import EventBus
from deployer.core.exceptions import GitHubAPIError
from deployer.core.invariants import DefaultInvariantInjector
from deployer.core.orchestrator import Orchestrators
from deployer.core.poller import DeploymentPoller
from deployer.core.promotion import ProductionPromotionOrchestrator
from deployer.core.prompt import compile_prompt
from deployer.core.staging import StagingDeployOrchestrator
from deployer.core.store import AppStore
from deployer.main import app
from deployer.models.app import AppUpsert
from deployer.models.deployment import HostedDeployment
from deployer.models.generation import GeneratedFile, GenerationResult
from deployer.services.git_commit import GitCommitService
from deployer.services.repository import GitHubRepositoryManager


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeVercel:
    """Serves scripted deployment lists; the last entry repeats forever."""

    def __init__(self):
        self.responses: list[Any] = []
        self.calls = 0

    async def list_deployments(self, limit: int = 20) -> list[HostedDeployment]:
        self.calls += 1
        if not self.responses:
            return []
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return list(item)


class FakeGitHub:
    """In-memory stand-in for GitHubClient covering one repository."""

    def __init__(self, org: str = "getfastform"):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.errors: dict[str, Exception] = {}
        self.repos: set[tuple[str, str]] = set()
        self.refs = {"heads/main": "main_sha_0", "heads/staging": "staging_sha_0"}
        self.blobs: dict[str, str] = {}
        self.compare_result: dict[str, Any] = {"status": "ahead", "ahead_by": 1}
        self.merge_sha = "merge_sha_1"
        self.new_commit_sha = "new_commit_sha"
        self.login = "deploy-bot"
        self.org = org

    def _record(self, _call: str, **kwargs: Any) -> None:
        self.calls.append((_call, kwargs))
        if _call in self.errors:
            raise self.errors[_call]

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        self._record("get_repo", owner=owner, repo=repo)
        if (owner, repo) not in self.repos:
            raise GitHubAPIError(404, "Not Found")
        return {"name": repo, "html_url": f"https://github.com/{owner}/{repo}"}

    async def create_repo_in_org(self, org: str, name: str, **options: Any) -> dict[str, Any]:
        self._record("create_repo_in_org", org=org, name=name, **options)
        self.repos.add((org, name))
        return {"name": name, "html_url": f"https://github.com/{org}/{name}"}

    async def create_repo_for_authenticated_user(self, name: str, **options: Any) -> dict[str, Any]:
        self._record("create_repo_for_authenticated_user", name=name, **options)
        self.repos.add((self.login, name))
        return {"name": name, "html_url": f"https://github.com/{self.login}/{name}"}

    async def get_authenticated_user(self) -> dict[str, Any]:
        self._record("get_authenticated_user")
        return {"login": self.login}

    async def get_ref(self, owner: str, repo: str, ref: str) -> dict[str, Any]:
        self._record("get_ref", owner=owner, repo=repo, ref=ref)
        if ref not in self.refs:
            raise GitHubAPIError(404, "Not Found")
        return {"ref": f"refs/{ref}", "object": {"sha": self.refs[ref]}}

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> dict[str, Any]:
        self._record("create_ref", owner=owner, repo=repo, ref=ref, sha=sha)
        self.refs[ref.removeprefix("refs/")] = sha
        return {"ref": ref, "object": {"sha": sha}}

    async def update_ref(
        self, owner: str, repo: str, ref: str, sha: str, force: bool = False
    ) -> dict[str, Any]:
        self._record("update_ref", owner=owner, repo=repo, ref=ref, sha=sha, force=force)
        self.refs[ref] = sha
        return {"ref": f"refs/{ref}", "object": {"sha": sha}}

    async def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict[str, Any]:
        self._record("get_commit", owner=owner, repo=repo, commit_sha=commit_sha)
        return {"sha": commit_sha, "tree": {"sha": f"tree_of_{commit_sha}"}}

    async def create_blob(
        self, owner: str, repo: str, content: str, encoding: str = "base64"
    ) -> dict[str, Any]:
        self._record("create_blob", owner=owner, repo=repo, content=content, encoding=encoding)
        sha = f"blob_{len(self.blobs) + 1}"
        self.blobs[sha] = content
        return {"sha": sha}

    async def create_tree(
        self,
        owner: str,
        repo: str,
        tree: list[dict[str, Any]],
        base_tree: str | None = None,
    ) -> dict[str, Any]:
        self._record("create_tree", owner=owner, repo=repo, tree=tree, base_tree=base_tree)
        return {"sha": "new_tree_sha"}

    async def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> dict[str, Any]:
        self._record(
            "create_commit", owner=owner, repo=repo, message=message, tree=tree, parents=parents
        )
        return {"sha": self.new_commit_sha}

    async def compare_commits(self, owner: str, repo: str, base: str, head: str) -> dict[str, Any]:
        self._record("compare_commits", owner=owner, repo=repo, base=base, head=head)
        return self.compare_result

    async def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str = ""
    ) -> dict[str, Any]:
        self._record(
            "create_pull_request", owner=owner, repo=repo, title=title, head=head, base=base
        )
        return {"number": 7}

    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        merge_method: str = "merge",
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> dict[str, Any]:
        self._record(
            "merge_pull_request",
            owner=owner,
            repo=repo,
            pull_number=pull_number,
            merge_method=merge_method,
        )
        self.refs["heads/main"] = self.merge_sha
        self.compare_result = {"status": "identical", "ahead_by": 0}
        return {"sha": self.merge_sha, "merged": True, "message": "Pull Request successfully merged"}


class FakeGenerator:
    """Code generator returning a canned result."""

    def __init__(self):
        self.result = GenerationResult(
            files=[
                GeneratedFile(path="app/page.tsx", content="export default function Page() {}\n"),
                GeneratedFile(path="package.json", content='{"name": "psych-intake"}\n'),
            ],
            chat_id="chat_123",
        )
        self.error: Exception | None = None
        self.prompts: list[str] = []

    async def generate(self, prompt: str, app_id: str) -> GenerationResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings() -> Settings:
    """Settings with every credential present."""
    return Settings(
        _env_file=None,
        github_token="ghp_test",
        github_org="getfastform",
        vercel_token="vercel_test",
        vercel_team_id="team_123",
        v0_api_key="v0_test",
        deployment_poll_interval_ms=5000,
        staging_timeout_ms=60000,
        production_timeout_ms=120000,
    )


@pytest.fixture
def app_id() -> str:
    return "app_psych_intake"


@pytest.fixture
def repo_name() -> str:
    return "a1b2c3d4-psych-intake"


@pytest.fixture
def sample_spec(app_id: str) -> dict[str, Any]:
    """A confirmed AppSpec for a small intake app."""
    return {
        "id": app_id,
        "version": "0.3",
        "meta": {
            "name": "Psych Intake",
            "slug": "psych-intake",
            "orgId": "a1b2c3d4-e5f6-7890-abcd-ef0123456789",
            "description": "Patient intake for a psychiatry practice",
        },
        "pages": [
            {
                "id": "intake",
                "route": "/intake",
                "role": "PATIENT",
                "type": "form",
                "title": "Intake Form",
                "fields": [
                    {"id": "full_name", "type": "text", "required": True},
                    {"id": "reason", "type": "textarea"},
                ],
            },
            {"id": "inbox", "route": "/staff/inbox", "role": "STAFF", "type": "list", "title": "Inbox"},
        ],
        "workflow": {"states": ["SUBMITTED", "REVIEWED"], "initialState": "SUBMITTED"},
        "environments": {
            "staging": {"domain": "psych-intake-staging.getfastform.com", "apiUrl": "https://api-staging.getfastform.com"},
            "production": {"domain": "psych-intake.getfastform.com", "apiUrl": "https://api.getfastform.com"},
        },
    }


@pytest.fixture
def make_deployment(repo_name: str) -> Callable[..., HostedDeployment]:
    """Build a HostedDeployment from a Vercel-shaped payload."""

    def factory(
        uid: str = "dpl_1",
        state: str = "READY",
        sha: str | None = "new_commit_sha",
        branch: str = "staging",
        created: int = 1_700_000_000_000,
        name: str | None = None,
    ) -> HostedDeployment:
        name = name or repo_name
        meta: dict[str, Any] = {"githubCommitRef": branch, "githubRepo": name}
        if sha is not None:
            meta["githubCommitSha"] = sha
        return HostedDeployment.model_validate(
            {
                "uid": uid,
                "name": name,
                "url": f"{name}-{uid}.vercel.app",
                "state": state,
                "created": created,
                "meta": meta,
            }
        )

    return factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_vercel() -> FakeVercel:
    return FakeVercel()


@pytest.fixture
def fake_github(repo_name: str) -> FakeGitHub:
    github = FakeGitHub()
    github.repos.add((github.org, repo_name))
    return github


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
async def store(app_id: str, sample_spec: dict[str, Any]) -> AppStore:
    """App store holding one app with a confirmed AppSpec."""
    store = AppStore()
    await store.upsert_app(app_id, AppUpsert(name="Psych Intake", user_id="user_1", spec=sample_spec))
    return store


@pytest.fixture
def poller(fake_vercel: FakeVercel, clock: FakeClock) -> DeploymentPoller:
    return DeploymentPoller(fake_vercel, interval_ms=5000, clock=clock, sleep=clock.sleep)


@pytest.fixture
def staging_orchestrator(
    store: AppStore,
    fake_github: FakeGitHub,
    fake_generator: FakeGenerator,
    poller: DeploymentPoller,
    settings: Settings,
    events: EventBus,
) -> StagingDeployOrchestrator:
    return StagingDeployOrchestrator(
        store=store,
        compile_prompt=compile_prompt,
        generator=fake_generator,
        injector=DefaultInvariantInjector(),
        repositories=GitHubRepositoryManager(fake_github, settings, init_delay_seconds=0),
        committer=GitCommitService(fake_github, settings),
        poller=poller,
        settings=settings,
        events=events,
    )


@pytest.fixture
def promotion_orchestrator(
    store: AppStore,
    fake_github: FakeGitHub,
    poller: DeploymentPoller,
    settings: Settings,
    events: EventBus,
) -> ProductionPromotionOrchestrator:
    return ProductionPromotionOrchestrator(
        store=store,
        github=fake_github,
        poller=poller,
        settings=settings,
        events=events,
    )


@pytest.fixture
async def client(
    store: AppStore,
    events: EventBus,
    staging_orchestrator: StagingDeployOrchestrator,
    promotion_orchestrator: ProductionPromotionOrchestrator,
) -> AsyncClient:
    """Async test client wired to fake collaborators."""
    pipeline = Orchestrators(staging=staging_orchestrator, promotion=promotion_orchestrator)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_events] = lambda: events
    app.dependency_overrides[get_pipeline] = lambda: pipeline

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
