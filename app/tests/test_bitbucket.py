import pytest

from app.core.errors import CredentialsMissing, RepoAlreadyExists
from app.main import app
from app.modules.exports.bitbucket import BitbucketExporter
from app.modules.exports.routes import get_bitbucket_exporter, get_generation_client
from app.modules.generation.client import GenerationClient
from app.modules.generation.schemas import GeneratedFile
from app.tests.conftest import ALICE
from app.tests.fakes import BITBUCKET_API, V0_API, FakeUpstream

FILES = [
    GeneratedFile(path="app/page.tsx", content="export default function Page() {}"),
    GeneratedFile(path="components/ui/ui/button.tsx", content="export const Button = 1"),
    GeneratedFile(path="lib/data.ts", content="export const data = []"),
]


def exporter_for(upstream, username="builder", app_password="secret"):
    return BitbucketExporter(username=username, app_password=app_password, base_url=BITBUCKET_API, transport=upstream.transport())


@pytest.mark.asyncio
async def test_each_file_is_committed_with_normalized_path():
    upstream = FakeUpstream()

    result = await exporter_for(upstream).export_files(FILES, "site-1", "acme")

    assert set(result.files) == {"app/page.tsx", "components/ui/button.tsx", "lib/data.ts"}
    assert upstream.bitbucket_files["components/ui/button.tsx"] == "export const Button = 1"
    assert result.url == "https://bitbucket.org/acme/site-1"
    assert result.clone_url == "https://bitbucket.org/acme/site-1.git"
    assert result.full_name == "acme/site-1"
    assert upstream.paths()[0] == "POST /2.0/repositories/acme/site-1"


@pytest.mark.asyncio
async def test_failed_file_is_left_out():
    upstream = FakeUpstream(failing_bitbucket_files={"lib/data.ts"})

    result = await exporter_for(upstream).export_files(FILES, "site-1", "acme")

    assert "lib/data.ts" not in result.files
    assert len(result.files) == 2


@pytest.mark.asyncio
async def test_existing_repository():
    upstream = FakeUpstream(existing_repos={"site-1"})

    with pytest.raises(RepoAlreadyExists):
        await exporter_for(upstream).export_files(FILES, "site-1", "acme")
    assert len(upstream.calls) == 1


@pytest.mark.asyncio
async def test_missing_credentials():
    upstream = FakeUpstream()
    with pytest.raises(CredentialsMissing):
        await exporter_for(upstream, app_password="").export_files(FILES, "site-1", "acme")
    assert upstream.calls == []


def test_bitbucket_route(client, supabase, upstream):
    app.dependency_overrides[get_bitbucket_exporter] = lambda: exporter_for(upstream)
    app.dependency_overrides[get_generation_client] = lambda: GenerationClient(api_key="v0-key", base_url=V0_API, transport=upstream.transport())

    response = client.post("/api/v1/export/bitbucket", json={"sessionId": "chat-1", "repoName": "site-1", "workspace": "acme"}, headers=ALICE)

    assert response.status_code == 200
    assert response.json()["filesCreated"] == 2
    assert supabase.rows()[0]["repository_url"] == "https://bitbucket.org/acme/site-1"
