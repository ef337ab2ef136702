"""Unit tests for the git commit service."""

import asyncio
import base64

import pytest

from deployer.config import Settings
from deployer.core.exceptions import ConfigurationError, GitCommitError, GitHubAPIError
from deployer.models.generation import GeneratedFile
from deployer.services.git_commit import GitCommitService
from deployer.services.github import GitHubClient


class TestGitCommitService:
    """Tests for GitCommitService."""

    @pytest.fixture
    def service(self, fake_github, settings) -> GitCommitService:
        return GitCommitService(fake_github, settings)

    @pytest.fixture
    def files(self) -> list[GeneratedFile]:
        return [
            GeneratedFile(path="app/page.tsx", content="export default function Page() {}\n"),
            GeneratedFile(path="lib/fastform/env.ts", content="export const APP_ID = 'é'\n"),
            GeneratedFile(path="package.json", content="{}\n"),
        ]

    async def test_commit_returns_new_sha(self, service, fake_github, files, repo_name):
        sha = await service.commit(repo_name, "staging", files)

        assert sha == "new_commit_sha"
        assert fake_github.refs["heads/staging"] == "new_commit_sha"

    async def test_one_blob_per_file(self, service, fake_github, files, repo_name):
        await service.commit(repo_name, "staging", files)

        tree_call = fake_github.calls_to("create_tree")[0]
        contents = {
            entry["path"]: base64.b64decode(fake_github.blobs[entry["sha"]]).decode("utf-8")
            for entry in tree_call["tree"]
        }

        assert len(fake_github.calls_to("create_blob")) == len(files)
        assert contents == {f.path: f.content for f in files}
        assert all(entry["mode"] == "100644" for entry in tree_call["tree"])
        assert all(entry["type"] == "blob" for entry in tree_call["tree"])

    async def test_tree_and_commit_build_on_branch_tip(self, service, fake_github, files, repo_name):
        await service.commit(repo_name, "staging", files)

        tree_call = fake_github.calls_to("create_tree")[0]
        commit_call = fake_github.calls_to("create_commit")[0]

        assert tree_call["base_tree"] == "tree_of_staging_sha_0"
        assert commit_call["parents"] == ["staging_sha_0"]
        assert commit_call["tree"] == "new_tree_sha"
        assert commit_call["message"].startswith("Deploy to staging - ")
        assert tree_call["owner"] == "getfastform"

    async def test_ref_update_is_last(self, service, fake_github, files, repo_name):
        await service.commit(repo_name, "staging", files)

        names = fake_github.call_names()
        assert names[0] == "get_ref"
        assert names[-1] == "update_ref"
        assert names.count("update_ref") == 1
        assert fake_github.calls_to("update_ref")[0]["ref"] == "heads/staging"

    async def test_custom_message(self, service, fake_github, files, repo_name):
        await service.commit(repo_name, "staging", files, message="Initial commit")

        assert fake_github.calls_to("create_commit")[0]["message"] == "Initial commit"

    @pytest.mark.parametrize("failing_call", ["get_ref", "create_blob", "create_tree", "create_commit"])
    async def test_failure_leaves_branch_untouched(
        self, service, fake_github, files, repo_name, failing_call
    ):
        fake_github.errors[failing_call] = GitHubAPIError(500, "Server Error")

        with pytest.raises(GitCommitError) as exc_info:
            await service.commit(repo_name, "staging", files)

        assert exc_info.value.repo_name == repo_name
        assert exc_info.value.phase == "commit_code"
        assert exc_info.value.message.startswith("Failed to commit files to GitHub: ")
        assert "update_ref" not in fake_github.call_names()
        assert fake_github.refs["heads/staging"] == "staging_sha_0"

    async def test_blob_failure_cancels_pending_blobs(
        self, service, fake_github, files, repo_name, monkeypatch
    ):
        cancelled: list[str] = []
        started: list[str] = []

        async def create_blob(owner, repo, content, encoding="base64"):
            started.append(content)
            if len(started) == 1:
                await asyncio.sleep(0)
                raise GitHubAPIError(500, "Server Error")
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.append(content)
                raise
            return {"sha": "never"}

        monkeypatch.setattr(fake_github, "create_blob", create_blob)

        with pytest.raises(GitCommitError) as exc_info:
            await service.commit(repo_name, "staging", files)

        assert len(started) == len(files)
        assert len(cancelled) == len(files) - 1
        assert "Server Error" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, GitHubAPIError)
        assert "create_tree" not in fake_github.call_names()

    async def test_missing_token_is_configuration_error(self, files, repo_name):
        client = GitHubClient(Settings(_env_file=None, github_token=""))
        service = GitCommitService(client, Settings(_env_file=None, github_token=""))

        with pytest.raises(ConfigurationError):
            await service.commit(repo_name, "staging", files)
