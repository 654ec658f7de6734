import asyncio
import threading

import pytest

from app.core.errors import LedgerOrderingError
from app.modules.sessions.schemas import DeploymentStatus


def test_get_record_returns_none_when_missing(ledger):
    assert ledger.get_record("nope") is None


def test_duplicate_insert_is_a_silent_no_op(ledger, supabase):
    first = ledger.ensure_record("chat-1", owner_id="user-alice", website_name="Bakery")
    second = ledger.ensure_record("chat-1", owner_id="user-bob", website_name="Other")

    assert len(supabase.rows()) == 1
    assert first.owner_id == second.owner_id == "user-alice"
    assert second.website_name == "Bakery"
    assert second.deployment_status == DeploymentStatus.UNSET


@pytest.mark.asyncio
async def test_concurrent_inserts_leave_one_row(ledger, supabase):
    start = threading.Barrier(2)

    def claim(owner_id):
        start.wait(timeout=5)
        return ledger.ensure_record("chat-1", owner_id=owner_id)

    first, second = await asyncio.gather(
        asyncio.to_thread(claim, "user-alice"),
        asyncio.to_thread(claim, "user-bob"),
    )

    assert len(supabase.rows()) == 1
    assert first.owner_id == second.owner_id == supabase.rows()[0]["owner_id"]


def test_partial_updates_never_clear_omitted_fields(ledger):
    ledger.ensure_record("chat-1", owner_id="user-alice")
    ledger.update_deployment("chat-1", repository_url="https://github.com/octo/site-1", repository_name="site-1")
    record = ledger.update_deployment("chat-1", hosting_project_id="prj_1", deployment_url=None)

    assert record.repository_url == "https://github.com/octo/site-1"
    assert record.repository_name == "site-1"
    assert record.hosting_project_id == "prj_1"
    assert record.deployment_url is None


def test_every_update_stamps_deployed_at(ledger, supabase):
    ledger.ensure_record("chat-1")
    ledger.update_deployment("chat-1", deployment_status=DeploymentStatus.FAILED)
    first = supabase.rows()[0]["deployed_at"]
    assert first
    supabase.rows()[0]["deployed_at"] = "2000-01-01T00:00:00+00:00"
    ledger.update_deployment("chat-1", repository_name="site-1")
    assert supabase.rows()[0]["deployed_at"] != "2000-01-01T00:00:00+00:00"
    assert supabase.rows()[0]["deployment_status"] == "failed"


def test_hosting_project_requires_repository_url(ledger):
    ledger.ensure_record("chat-1")
    with pytest.raises(LedgerOrderingError):
        ledger.update_deployment("chat-1", hosting_project_id="prj_1")

    record = ledger.update_deployment("chat-1", repository_url="https://github.com/octo/a", hosting_project_id="prj_1")
    assert record.hosting_project_id == "prj_1"


def test_deployed_requires_deployment_url(ledger):
    ledger.ensure_record("chat-1")
    with pytest.raises(LedgerOrderingError):
        ledger.update_deployment("chat-1", deployment_status="deployed")

    ledger.update_deployment("chat-1", deployment_url="https://site-1.vercel.app")
    record = ledger.update_deployment("chat-1", deployment_status="deployed")
    assert record.deployment_status == DeploymentStatus.DEPLOYED


def test_unknown_fields_are_rejected(ledger):
    ledger.ensure_record("chat-1")
    with pytest.raises(ValueError):
        ledger.update_deployment("chat-1", owner_id="user-bob")


def test_list_records_filters_by_owner_newest_first(ledger):
    ledger.ensure_record("chat-1", owner_id="user-alice")
    ledger.ensure_record("chat-2", owner_id="user-bob")
    ledger.ensure_record("chat-3", owner_id="user-alice")

    assert [r.session_id for r in ledger.list_records("user-alice")] == ["chat-3", "chat-1"]
    assert len(ledger.list_records()) == 3


def test_delete_record(ledger, supabase):
    ledger.ensure_record("chat-1")
    ledger.delete_record("chat-1")
    assert supabase.rows() == []
    assert ledger.get_record("chat-1") is None


def test_repair_hosting_urls(ledger):
    ledger.ensure_record("chat-1")
    ledger.update_deployment(
        "chat-1",
        repository_name="site-1",
        repository_url="https://github.com/octo/site-1",
        hosting_project_id="prj_1",
        hosting_project_url="https://vercel.com/team_abc/site-1",
        deployment_url="https://site-1-abc123-octo.vercel.app",
    )
    ledger.ensure_record("chat-2")
    ledger.update_deployment("chat-2", repository_name="plain")

    changes = ledger.repair_hosting_urls("acme")

    assert changes == [{
        "sessionId": "chat-1",
        "oldUrls": {"deployment": "https://site-1-abc123-octo.vercel.app", "project": "https://vercel.com/team_abc/site-1"},
        "newUrls": {"deployment": "https://site-1.vercel.app", "project": "https://vercel.com/acme/site-1"},
    }]
    record = ledger.get_record("chat-1")
    assert record.deployment_url == "https://site-1.vercel.app"
    assert ledger.repair_hosting_urls("acme") == []


@pytest.mark.asyncio
async def test_mutations_are_published_on_the_session_channel(ledger, events):
    queue = events.subscribe("chat-1")
    other = events.subscribe("chat-2")
    ledger.ensure_record("chat-1")
    ledger.update_deployment("chat-1", repository_name="site-1")
    ledger.delete_record("chat-1")

    updated = await asyncio.wait_for(queue.get(), timeout=1)
    deleted = await asyncio.wait_for(queue.get(), timeout=1)
    assert updated["type"] == "deployment.updated"
    assert updated["deployment"]["repositoryName"] == "site-1"
    assert deleted == {"type": "deployment.deleted", "sessionId": "chat-1"}
    assert other.empty()
