import httpx
import pytest

from app.modules.hosting.schemas import HostingProject, TriggeredDeployment
from app.modules.hosting.triggers import DeploymentTrigger, GitSourceStrategy, TriggerStrategy
from app.modules.hosting.vercel import VercelClient
from app.tests.fakes import VERCEL_API, FakeUpstream

PROJECT = HostingProject(
    id="prj_1",
    name="site-1",
    dashboard_url="https://vercel.com/acme/site-1",
    link={"type": "github", "repoId": 4242},
)


def trigger_for(upstream, strategies=None):
    vercel = VercelClient(token="vercel-token", base_url=VERCEL_API, transport=upstream.transport())
    return DeploymentTrigger(vercel, strategies)


@pytest.mark.asyncio
async def test_first_strategy_success_stops_the_chain():
    upstream = FakeUpstream()
    trigger = trigger_for(upstream)

    deployment = await trigger.trigger_deployment(PROJECT, "octo/site-1", "main")

    assert deployment.strategy == "git-source"
    assert deployment.deployment_url == "https://site-1-abc123.vercel.app"
    assert upstream.paths() == ["POST /v13/deployments"]
    assert upstream.deployment_request["gitSource"] == {"type": "github", "repo": "octo/site-1", "ref": "main", "repoId": 4242}
    assert upstream.deployment_request["target"] == "production"


@pytest.mark.asyncio
async def test_falls_back_in_order_until_redeploy_succeeds():
    upstream = FakeUpstream(failing_strategies={"git-source", "deploy-hook"})
    trigger = trigger_for(upstream)

    deployment = await trigger.trigger_deployment(PROJECT, "octo/site-1", "main")

    assert deployment.strategy == "redeploy"
    assert upstream.paths() == [
        "POST /v13/deployments",
        "POST /v1/integrations/deploy/prj_1/main",
        "POST /v9/projects/prj_1/redeploy",
    ]
    assert [a.ok for a in trigger.attempts] == [False, False, True]


@pytest.mark.asyncio
async def test_exhausted_chain_returns_none_with_last_error():
    upstream = FakeUpstream(failing_strategies={"git-source", "deploy-hook", "redeploy"})
    trigger = trigger_for(upstream)

    assert await trigger.trigger_deployment(PROJECT, "octo/site-1", "main") is None
    assert trigger.last_error == "redeploy rejected"
    assert len(trigger.attempts) == 3


class ExplodingStrategy(TriggerStrategy):
    name = "exploding"

    async def send(self, client, project, repo_full_name, branch):
        raise httpx.ReadTimeout("timed out")


class NeverCalledStrategy(TriggerStrategy):
    name = "never"

    async def send(self, client, project, repo_full_name, branch):
        raise AssertionError("strategy after a success must not run")


@pytest.mark.asyncio
async def test_transport_error_counts_as_failed_attempt():
    upstream = FakeUpstream()
    trigger = trigger_for(upstream, [ExplodingStrategy(), GitSourceStrategy(), NeverCalledStrategy()])

    deployment = await trigger.trigger_deployment(PROJECT, "octo/site-1", "main")

    assert deployment.strategy == "git-source"
    assert trigger.attempts[0].error == "timed out"


def test_deployment_payload_shapes():
    aliased = TriggeredDeployment.from_payload({"uid": "dpl_2", "alias": ["site.vercel.app"], "state": "READY"}, "redeploy")
    assert (aliased.id, aliased.url, aliased.state) == ("dpl_2", "site.vercel.app", "READY")
    assert aliased.deployment_url == "https://site.vercel.app"

    hook = TriggeredDeployment.from_payload({"job": {"id": "job_1", "state": "PENDING"}}, "deploy-hook")
    assert hook.id == "job_1"
    assert hook.url is None
    assert hook.deployment_url is None
    assert hook.state == "BUILDING"
