import os
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ["PROJECT_SETTLE_SECONDS"] = "0"
os.environ["AUTHORIZATION_MODE"] = "strict-owner"
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.config.settings import Settings
from app.core.dependencies import get_settings
from app.database.supabase_client import get_supabase
from app.modules.auth.service import clear_auth_cache
from app.modules.deployments.routes import get_deployment_pipeline
from app.modules.deployments.service import DeploymentPipeline
from app.modules.exports.github import GitHubExporter
from app.modules.generation.client import GenerationClient
from app.modules.hosting.vercel import VercelClient
from app.modules.sessions.events import DeploymentEventBus, get_event_bus
from app.modules.sessions.service import LedgerService
from app.tests.fakes import FakeSupabase, FakeUpstream, GITHUB_API, V0_API, VERCEL_API

USERS = {
    "alice-token": {"id": "user-alice", "email": "alice@example.com"},
    "bob-token": {"id": "user-bob", "email": "bob@example.com"},
    "root-token": {"id": "user-root", "email": "root@example.com", "app_metadata": {"type": "super_user"}},
}

ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}
ROOT = {"Authorization": "Bearer root-token"}

LAYOUT_WITH_GEIST = """import type { Metadata } from 'next'
import { GeistSans } from 'geist/font/sans'
import { GeistMono } from 'geist/font/mono'
import './globals.css'

export const metadata: Metadata = { title: 'Site' }

export default function RootLayout({ children }: { children: React.ReactNode }) {
  return (
    <html lang="en">
      <body className={`${GeistSans.variable} ${GeistMono.variable}`}>{children}</body>
    </html>
  )
}
"""

PAGE = """export default function Page() {
  return <main>Hello</main>
}
"""


@pytest.fixture(autouse=True)
def reset_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def supabase():
    return FakeSupabase(users=USERS)


@pytest.fixture
def events():
    return DeploymentEventBus()


@pytest.fixture
def ledger(supabase, events):
    return LedgerService(supabase, events)


@pytest.fixture
def upstream():
    return FakeUpstream(sessions={
        "chat-1": [
            {"path": "app/layout.tsx", "content": LAYOUT_WITH_GEIST},
            {"path": "app/page.tsx", "content": PAGE},
        ],
        "chat-empty": [],
    })


def make_pipeline(ledger, upstream, **overrides):
    transport = upstream.transport()
    vercel = VercelClient(token="vercel-token", base_url=VERCEL_API, team_slug="acme", transport=transport)
    options = {
        "generation": GenerationClient(api_key="v0-key", base_url=V0_API, transport=transport),
        "exporter": GitHubExporter(token="gh-token", base_url=GITHUB_API, transport=transport),
        "vercel": vercel,
        "settle_seconds": 0,
    }
    options.update(overrides)
    return DeploymentPipeline(ledger, **options)


@pytest.fixture
def pipeline(ledger, upstream):
    return make_pipeline(ledger, upstream)


@pytest.fixture
def app_settings():
    return Settings(authorization_mode="strict-owner", vercel_team_slug="acme")


@pytest.fixture
def client(supabase, events, upstream, app_settings):
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_event_bus] = lambda: events
    app.dependency_overrides[get_settings] = lambda: app_settings
    app.dependency_overrides[get_deployment_pipeline] = lambda: make_pipeline(LedgerService(supabase, events), upstream)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
