import logging
import re
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.core.errors import CredentialsMissing, UpstreamRequestFailed, json_body, upstream_message
from app.modules.hosting.schemas import HostingProject

logger = logging.getLogger(__name__)

# Build settings for each supported framework preset
FRAMEWORK_PRESETS: Dict[str, Dict[str, str]] = {
    "nextjs": {
        "buildCommand": "npm run build",
        "devCommand": "npm run dev",
        "installCommand": "npm install",
        "outputDirectory": ".next",
    },
}

PROJECT_NAME_MAX_LENGTH = 100


def sanitize_project_name(name: str) -> str:
    """Lowercase, ``[a-z0-9._-]`` only, no ``---``, no leading/trailing ``-._``, max 100 chars."""
    name = re.sub(r"\s+", "-", name.lower())
    name = re.sub(r"[^a-z0-9._-]", "", name)
    name = re.sub(r"---+", "--", name)
    name = re.sub(r"^[-._]+|[-._]+$", "", name)
    return name[:PROJECT_NAME_MAX_LENGTH]


def dashboard_url(account: Optional[str], project_name: str) -> str:
    return f"https://vercel.com/{account}/{project_name}"


def production_url(project_name: str) -> str:
    return f"https://{project_name}.vercel.app"


class VercelClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        team_slug: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.vercel_token
        self.base_url = (base_url or settings.vercel_api_url).rstrip("/")
        self.team_slug = team_slug if team_slug is not None else settings.vercel_team_slug
        self.transport = transport

    def require_token(self):
        if not self.token:
            raise CredentialsMissing("Vercel", "VERCEL_TOKEN")

    def client(self) -> httpx.AsyncClient:
        self.require_token()
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=settings.http_timeout_seconds,
            transport=self.transport,
        )

    def _to_project(self, data: Dict[str, Any]) -> HostingProject:
        account = self.team_slug or data.get("accountId")
        return HostingProject(
            id=data["id"],
            name=data["name"],
            account_id=data.get("accountId"),
            dashboard_url=dashboard_url(account, data["name"]),
            link=data.get("link"),
        )

    async def provision_project(
        self,
        name: str,
        repo_full_name: str,
        framework: Optional[str] = None,
        public_source: bool = False,
    ) -> HostingProject:
        """Create a hosting project bound to ``repo_full_name``.

        The returned ``link`` may not be populated yet; reread with get_project
        after the settle delay.
        """
        framework = framework or settings.hosting_framework
        preset = FRAMEWORK_PRESETS.get(framework)
        if preset is None:
            raise ValueError(f"Unsupported framework preset: {framework}")
        project_name = sanitize_project_name(name)
        async with self.client() as client:
            response = await client.post(
                "/v9/projects",
                json={
                    "name": project_name,
                    "gitRepository": {"type": "github", "repo": repo_full_name},
                    "framework": framework,
                    "publicSource": public_source,
                    **preset,
                },
            )
        if not response.is_success:
            message = upstream_message(json_body(response))
            logger.error(f"Vercel project creation failed: {message}")
            raise UpstreamRequestFailed("Vercel", message, response.status_code)
        project = self._to_project(response.json())
        logger.info(f"Vercel project created: {project.name} ({project.id})")
        return project

    async def get_project(self, project_id: str) -> Optional[HostingProject]:
        """Reread a project; None when the read fails."""
        try:
            async with self.client() as client:
                response = await client.get(f"/v9/projects/{project_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch updated project info: {e}")
            return None
        if not response.is_success:
            logger.warning(f"Could not fetch updated project info ({response.status_code})")
            return None
        try:
            project = self._to_project(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Could not parse updated project info: {e}")
            return None
        link = project.link or {}
        logger.info(f"Updated project info: has_link={bool(link)} link_type={link.get('type')} repo_id={link.get('repoId')}")
        return project

    async def delete_project(self, project_id: str) -> bool:
        """True when deleted or already gone."""
        async with self.client() as client:
            response = await client.delete(f"/v9/projects/{project_id}")
        if response.is_success or response.status_code == 404:
            logger.info(f"Vercel project deleted: {project_id}")
            return True
        logger.warning(f"Failed to delete Vercel project {project_id}: {response.text}")
        return False
