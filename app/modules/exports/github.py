import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import CredentialsMissing, RepoAlreadyExists, UpstreamRequestFailed, json_body, upstream_message
from app.modules.exports.schemas import ExportResult
from app.modules.exports.templates import TemplateFiller, build_export_tree
from app.modules.generation.schemas import GeneratedFile

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
FILE_MODE = "100644"

_REPO_URL = re.compile(r"github\.com/([^/]+)/([^/?#]+)")


def parse_repo_url(repo_url: str) -> Optional[str]:
    """``https://github.com/owner/repo`` -> ``owner/repo``."""
    match = _REPO_URL.search(repo_url or "")
    if not match:
        return None
    owner, repo = match.groups()
    if repo.endswith(".git"):
        repo = repo[:-4]
    return f"{owner}/{repo}"


class GitHubExporter:
    """Creates a repository and commits a generated file set as one tree/commit."""

    def __init__(
        self,
        token: Optional[str] = None,
        filler: Optional[TemplateFiller] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.github_token
        self.filler = filler
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def require_token(self):
        if not self.token:
            raise CredentialsMissing("GitHub", "GITHUB_TOKEN")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=settings.http_timeout_seconds,
            transport=self.transport,
        )

    async def _call(self, client: httpx.AsyncClient, method: str, url: str, step: str, **kwargs) -> Dict[str, Any]:
        response = await client.request(method, url, **kwargs)
        if not response.is_success:
            message = upstream_message(json_body(response))
            logger.error(f"GitHub {step} failed ({response.status_code}): {message}")
            raise UpstreamRequestFailed("GitHub", f"{step} failed: {message}", response.status_code)
        return json_body(response) or {}

    async def create_repository(self, client: httpx.AsyncClient, repo_name: str, is_private: bool, description: str) -> Dict[str, Any]:
        response = await client.post(
            "/user/repos",
            json={
                "name": repo_name,
                "description": description,
                "private": is_private,
                "auto_init": True,
            },
        )
        if response.status_code == 422:
            logger.warning(f"GitHub repository name conflict: {repo_name}")
            raise RepoAlreadyExists(repo_name)
        if not response.is_success:
            message = upstream_message(json_body(response))
            logger.error(f"GitHub repo creation failed: {message}")
            raise UpstreamRequestFailed("GitHub", message, response.status_code)
        return response.json()

    async def export_files(
        self,
        files: List[GeneratedFile],
        repo_name: str,
        is_private: bool = True,
        description: Optional[str] = None,
        commit_message: Optional[str] = None,
    ) -> ExportResult:
        """Create ``repo_name`` and commit ``files`` (plus filler output) to its default branch.

        The repository is not removed when a later step fails.
        """
        self.require_token()
        async with self._client() as client:
            repo = await self.create_repository(client, repo_name, is_private, description or "Generated site")
            full_name = repo["full_name"]
            branch = repo.get("default_branch") or "main"
            logger.info(f"GitHub repo created: {repo.get('html_url')}")

            ref = await self._call(client, "GET", f"/repos/{full_name}/git/refs/heads/{branch}", "read branch ref")
            parent_sha = ref["object"]["sha"]
            parent = await self._call(client, "GET", f"/repos/{full_name}/git/commits/{parent_sha}", "read base commit")
            base_tree_sha = parent["tree"]["sha"]

            tree_files = await build_export_tree(files, self.filler)
            tree = [
                {"path": path, "mode": FILE_MODE, "type": "blob", "content": content}
                for path, content in tree_files.items()
            ]
            logger.info(f"Committing {len(tree)} files to {full_name}")

            new_tree = await self._call(
                client, "POST", f"/repos/{full_name}/git/trees", "create tree",
                json={"base_tree": base_tree_sha, "tree": tree},
            )
            commit = await self._call(
                client, "POST", f"/repos/{full_name}/git/commits", "create commit",
                json={
                    "message": commit_message or "Add generated files",
                    "tree": new_tree["sha"],
                    "parents": [parent_sha],
                },
            )
            await self._call(
                client, "PATCH", f"/repos/{full_name}/git/refs/heads/{branch}", "update branch ref",
                json={"sha": commit["sha"]},
            )

        logger.info(f"Successfully committed {len(tree)} files to {full_name}")
        return ExportResult(
            name=repo.get("name") or repo_name,
            full_name=full_name,
            owner=(repo.get("owner") or {}).get("login"),
            url=repo.get("html_url") or f"https://github.com/{full_name}",
            clone_url=repo.get("clone_url"),
            default_branch=branch,
            commit_sha=commit["sha"],
            files=list(tree_files),
        )

    async def delete_repository(self, repo_url: str) -> bool:
        """Delete the repository at ``repo_url``. True when deleted or already gone."""
        self.require_token()
        full_name = parse_repo_url(repo_url)
        if not full_name:
            logger.warning(f"Not a GitHub repository URL: {repo_url}")
            return False
        async with self._client() as client:
            response = await client.delete(f"/repos/{full_name}")
        if response.is_success or response.status_code == 404:
            logger.info(f"GitHub repository deleted: {full_name}")
            return True
        logger.warning(f"Failed to delete GitHub repository {full_name}: {response.text}")
        return False
