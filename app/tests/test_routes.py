from app.config.settings import Settings
from app.core.dependencies import get_settings
from app.main import app
from app.tests.conftest import ALICE, BOB, ROOT


def seed_deployment(supabase, session_id="chat-1", owner_id="user-alice"):
    supabase.tables.setdefault("deployment_records", []).append({
        "session_id": session_id,
        "owner_id": owner_id,
        "repository_name": "site-1",
        "repository_url": "https://github.com/octo/site-1",
        "hosting_project_id": "prj_1",
        "hosting_project_url": "https://vercel.com/acme/site-1",
        "deployment_url": "https://site-1.vercel.app",
        "deployment_status": "deployed",
        "created_at": "2024-01-01T00:00:00+00:00",
    })


def test_probes(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/ready").json() == {"status": "ready"}
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_export_route_claims_the_session(client, supabase):
    response = client.post("/api/v1/deploy/export", json={"sessionId": "chat-1", "repoName": "site-1"}, headers=ALICE)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["repository"]["url"] == "https://github.com/octo/site-1"
    assert body["filesCreated"] == 2
    assert supabase.rows()[0]["owner_id"] == "user-alice"


def test_anonymous_export_is_allowed(client, supabase):
    response = client.post("/api/v1/deploy/export", json={"sessionId": "chat-1", "repoName": "site-1"})

    assert response.status_code == 200
    assert supabase.rows()[0]["owner_id"] is None


def test_export_of_someone_elses_session_is_forbidden(client, supabase, upstream):
    seed_deployment(supabase, owner_id="user-bob")

    response = client.post("/api/v1/deploy/export", json={"sessionId": "chat-1", "repoName": "site-2"}, headers=ALICE)

    assert response.status_code == 403
    assert response.json()["error"]
    assert upstream.calls == []


def test_repo_name_conflict_is_a_400(client, upstream):
    upstream.existing_repos = {"site-1"}

    response = client.post("/api/v1/deploy/export", json={"sessionId": "chat-1", "repoName": "site-1"}, headers=ALICE)

    assert response.status_code == 400
    assert response.json()["error"] == "Repository already exists"
    assert not any("/git/" in path for path in upstream.paths())


def test_invalid_token_is_rejected(client):
    response = client.post(
        "/api/v1/deploy/export",
        json={"sessionId": "chat-1", "repoName": "site-1"},
        headers={"Authorization": "Bearer forged"},
    )
    assert response.status_code == 401


def test_provision_partial_success_is_200(client, upstream):
    upstream.failing_strategies = {"git-source", "deploy-hook", "redeploy"}

    response = client.post("/api/v1/deploy/provision-and-trigger", json={"sessionId": "chat-1", "repoName": "site-1"}, headers=ALICE)

    assert response.status_code == 200
    body = response.json()
    assert body["partialSuccess"] is True
    assert body["hostingProject"]["dashboardUrl"] == "https://vercel.com/acme/site-1"


def test_provisioning_failure_is_502_with_repository(client, upstream):
    upstream.project_error = "Repository not accessible"

    response = client.post("/api/v1/deploy/provision-and-trigger", json={"sessionId": "chat-1", "repoName": "site-1"}, headers=ALICE)

    assert response.status_code == 502
    assert response.json()["repository"]["name"] == "site-1"


def test_get_session_deployment(client, supabase):
    seed_deployment(supabase)

    response = client.get("/api/v1/deploy/session/chat-1", headers=ALICE)

    assert response.status_code == 200
    assert response.json()["deploymentStatus"] == "deployed"
    assert client.get("/api/v1/deploy/session/chat-1", headers=BOB).status_code == 403
    assert client.get("/api/v1/deploy/session/unknown", headers=ALICE).status_code == 404


def test_delete_requires_authentication(client, supabase):
    seed_deployment(supabase)
    assert client.delete("/api/v1/deploy/session/chat-1").status_code == 401


def test_delete_unknown_session_is_404(client):
    response = client.delete("/api/v1/deploy/session/unknown", headers=ALICE)
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_delete_by_non_owner_is_403_in_strict_mode(client, supabase, upstream):
    seed_deployment(supabase)

    response = client.delete("/api/v1/deploy/session/chat-1", headers=BOB)

    assert response.status_code == 403
    assert upstream.calls == []
    assert len(supabase.rows()) == 1


def test_delete_by_owner(client, supabase, upstream):
    seed_deployment(supabase)

    response = client.delete("/api/v1/deploy/session/chat-1", headers=ALICE)

    assert response.status_code == 200
    assert response.json() == {"success": True, "deletedRepository": True, "deletedHostingProject": True}
    assert supabase.rows() == []
    assert "DELETE /v9/projects/prj_1" in upstream.paths()


def test_shared_mode_lets_any_authenticated_actor_delete(client, supabase):
    app.dependency_overrides[get_settings] = lambda: Settings(authorization_mode="shared")
    seed_deployment(supabase)

    assert client.delete("/api/v1/deploy/session/chat-1", headers=BOB).status_code == 200


def test_super_user_bypasses_ownership(client, supabase):
    seed_deployment(supabase)
    assert client.get("/api/v1/deploy/session/chat-1", headers=ROOT).status_code == 200


def test_repair_urls(client, supabase):
    seed_deployment(supabase)
    supabase.rows()[0]["hosting_project_url"] = "https://vercel.com/team_abc/site-1"

    assert client.post("/api/v1/deploy/repair-urls").status_code == 401
    response = client.post("/api/v1/deploy/repair-urls", json={"teamSlug": "acme"}, headers=ALICE)

    assert response.status_code == 200
    assert response.json()["updated"] == 1
    assert supabase.rows()[0]["hosting_project_url"] == "https://vercel.com/acme/site-1"


def test_register_and_list_sessions(client):
    created = client.post("/api/v1/sessions", json={"sessionId": "chat-1", "websiteName": "Bakery"}, headers=ALICE)
    assert created.status_code == 201
    assert created.json()["websiteName"] == "Bakery"
    client.post("/api/v1/sessions", json={"sessionId": "chat-2"}, headers=BOB)

    mine = client.get("/api/v1/sessions", headers=ALICE).json()
    assert [s["sessionId"] for s in mine] == ["chat-1"]
    everything = client.get("/api/v1/sessions", headers=ROOT).json()
    assert {s["sessionId"] for s in everything} == {"chat-1", "chat-2"}
    assert client.post("/api/v1/sessions", json={"sessionId": "chat-1"}, headers=BOB).status_code == 403


def test_auth_me(client):
    response = client.get("/api/v1/auth/me", headers=ALICE)

    assert response.status_code == 200
    assert response.json() == {
        "id": "user-alice",
        "email": "alice@example.com",
        "user_metadata": {},
        "authorizationMode": "strict-owner",
        "isSuperUser": False,
    }
    assert client.get("/api/v1/auth/me").status_code == 401


def test_token_verification_is_cached(client, supabase):
    client.get("/api/v1/auth/me", headers=ALICE)
    client.get("/api/v1/auth/me", headers=ALICE)
    assert supabase.auth.calls == 1
