"""
Deployment trigger fallback chain.

Each strategy is one way of asking the hosting platform to start a production
build for a freshly provisioned project. Strategies are tried in order and the
first 2xx response wins. Exhausting the chain is an expected outcome: the
project exists, nothing is building yet.
"""

import logging
from typing import Any, List, Optional, Sequence

import httpx

from app.core.errors import json_body, upstream_message
from app.modules.hosting.schemas import HostingProject, TriggeredDeployment
from app.modules.hosting.vercel import VercelClient

logger = logging.getLogger(__name__)


class TriggerAttempt:
    def __init__(self, strategy: str, ok: bool, payload: Any = None, error: Optional[str] = None):
        self.strategy = strategy
        self.ok = ok
        self.payload = payload
        self.error = error


class TriggerStrategy:
    name = "base"

    async def send(self, client: httpx.AsyncClient, project: HostingProject, repo_full_name: str, branch: str) -> httpx.Response:
        raise NotImplementedError

    async def attempt(self, client: httpx.AsyncClient, project: HostingProject, repo_full_name: str, branch: str) -> TriggerAttempt:
        try:
            response = await self.send(client, project, repo_full_name, branch)
        except httpx.HTTPError as e:
            return TriggerAttempt(self.name, ok=False, error=str(e) or e.__class__.__name__)
        payload = json_body(response)
        if response.is_success:
            return TriggerAttempt(self.name, ok=True, payload=payload or {})
        return TriggerAttempt(self.name, ok=False, error=upstream_message(payload, f"HTTP {response.status_code}"))


class GitSourceStrategy(TriggerStrategy):
    """Create a production deployment from the repository branch."""
    name = "git-source"

    async def send(self, client, project, repo_full_name, branch):
        git_source = {"type": "github", "repo": repo_full_name, "ref": branch}
        if project.linked_repo_id:
            git_source["repoId"] = project.linked_repo_id
            logger.info(f"Using repoId from project: {project.linked_repo_id}")
        return await client.post(
            "/v13/deployments",
            json={
                "name": project.name,
                "project": project.id,
                "gitSource": git_source,
                "target": "production",
            },
        )


class DeployHookStrategy(TriggerStrategy):
    name = "deploy-hook"

    async def send(self, client, project, repo_full_name, branch):
        return await client.post(f"/v1/integrations/deploy/{project.id}/{branch}")


class RedeployStrategy(TriggerStrategy):
    name = "redeploy"

    async def send(self, client, project, repo_full_name, branch):
        return await client.post(f"/v9/projects/{project.id}/redeploy", json={"target": "production"})


DEFAULT_STRATEGIES: Sequence[TriggerStrategy] = (GitSourceStrategy(), DeployHookStrategy(), RedeployStrategy())


class DeploymentTrigger:
    def __init__(self, vercel: VercelClient, strategies: Optional[Sequence[TriggerStrategy]] = None):
        self.vercel = vercel
        self.strategies = list(strategies or DEFAULT_STRATEGIES)
        self.attempts: List[TriggerAttempt] = []
        self.last_error: Optional[str] = None

    async def trigger_deployment(self, project: HostingProject, repo_full_name: str, branch: str) -> Optional[TriggeredDeployment]:
        """First successful strategy's deployment, or None when every strategy failed."""
        self.attempts = []
        self.last_error = None
        async with self.vercel.client() as client:
            for strategy in self.strategies:
                logger.info(f"Attempting {strategy.name} deployment for {project.name}")
                attempt = await strategy.attempt(client, project, repo_full_name, branch)
                self.attempts.append(attempt)
                if attempt.ok:
                    deployment = TriggeredDeployment.from_payload(attempt.payload, strategy.name)
                    logger.info(f"Deployment triggered via {strategy.name}: {deployment.url}")
                    return deployment
                self.last_error = attempt.error
                logger.warning(f"{strategy.name} deployment failed: {attempt.error}")
        logger.warning(f"All deployment strategies failed for {project.name}")
        return None
