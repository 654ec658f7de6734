import asyncio
import logging
from typing import List, Optional

import httpx

from app.config import settings
from app.core.errors import CredentialsMissing, RepoAlreadyExists, UpstreamRequestFailed, json_body, upstream_message
from app.modules.exports.schemas import ExportResult
from app.modules.exports.templates import TemplateFiller, build_export_tree
from app.modules.generation.schemas import GeneratedFile

logger = logging.getLogger(__name__)


class BitbucketExporter:
    """
    Alternate export path: one commit per file through the Bitbucket ``src`` endpoint.

    File commits are independent and are dispatched concurrently; a failed file
    is logged and left out of the result instead of failing the export.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        app_password: Optional[str] = None,
        filler: Optional[TemplateFiller] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username if username is not None else settings.bitbucket_username
        self.app_password = app_password if app_password is not None else settings.bitbucket_app_password
        self.filler = filler
        self.base_url = (base_url or settings.bitbucket_api_url).rstrip("/")
        self.transport = transport

    def require_credentials(self):
        if not (self.username and self.app_password):
            raise CredentialsMissing("Bitbucket", "BITBUCKET_USERNAME and BITBUCKET_APP_PASSWORD")

    async def _commit_file(self, client: httpx.AsyncClient, repo_path: str, path: str, content: str, branch: str) -> Optional[str]:
        try:
            response = await client.post(
                f"{repo_path}/src",
                data={path: content, "message": f"Add {path}", "branch": branch},
            )
        except httpx.HTTPError as e:
            logger.error(f"Error committing {path}: {e}")
            return None
        if not response.is_success:
            logger.warning(f"Failed to commit {path}: {response.text}")
            return None
        logger.debug(f"Committed: {path}")
        return path

    async def export_files(
        self,
        files: List[GeneratedFile],
        repo_name: str,
        workspace: str,
        description: Optional[str] = None,
        branch: str = "main",
    ) -> ExportResult:
        self.require_credentials()

        repo_path = f"/repositories/{workspace}/{repo_name}"
        async with httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.username, self.app_password),
            timeout=settings.http_timeout_seconds,
            transport=self.transport,
        ) as client:
            response = await client.post(
                repo_path,
                json={"scm": "git", "is_private": True, "description": description or "Generated site"},
            )
            if response.status_code == 400:
                raise RepoAlreadyExists(repo_name)
            if not response.is_success:
                message = upstream_message(json_body(response))
                logger.error(f"Bitbucket repo creation failed: {message}")
                raise UpstreamRequestFailed("Bitbucket", message, response.status_code)
            repo = response.json()
            links = repo.get("links") or {}
            html_url = (links.get("html") or {}).get("href") or f"https://bitbucket.org/{workspace}/{repo_name}"
            clone_url = next((c.get("href") for c in links.get("clone") or [] if c.get("name") == "https"), None)
            logger.info(f"Bitbucket repo created: {html_url}")

            tree = await build_export_tree(files, self.filler)
            committed = await asyncio.gather(
                *(self._commit_file(client, repo_path, path, content, branch) for path, content in tree.items())
            )

        created = [path for path in committed if path]
        logger.info(f"Created {len(created)} of {len(tree)} files in Bitbucket repo {workspace}/{repo_name}")
        return ExportResult(
            name=repo_name,
            full_name=f"{workspace}/{repo_name}",
            owner=workspace,
            url=html_url,
            clone_url=clone_url,
            default_branch=branch,
            files=created,
        )
