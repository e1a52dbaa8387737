"""Shared fixtures: in-memory Supabase, scripted Graph API and wired services."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.dependencies import (
    get_conversation_ledger,
    get_ingestor,
    get_onboarding,
    get_settings,
    get_tenant_directory,
)
from app.routers import onboarding as onboarding_router
from app.routers import tenants as tenants_router
from app.routers import webhook as webhook_router
from app.services.conversation_ledger import ConversationLedger
from app.services.message_router import MessageRouter
from app.services.onboarding_service import OnboardingOrchestrator
from app.services.onboarding_store import OnboardingSessionStore
from app.services.onboarding_strategies import build_credential_source, build_page_filter
from app.services.tenant_directory import TenantDirectory
from app.services.webhook_ingestor import WebhookIngestor
from fakes import FakeGraphAPI, FakeSupabase, RecordingResponder


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings():
    return Settings(
        facebook_app_id="app-id",
        facebook_app_secret="app-secret",
        server_url="https://api.example.com",
        frontend_url="https://inbox.example.com",
        meta_verify_token="verify-me",
        ai_service_base_url="https://ai.example.com/api",
        ai_service_api_key="internal-key",
        onboarding_session_ttl_minutes=45,
        default_sheet_id="sheet-default",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime.now(timezone.utc))


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def graph():
    return FakeGraphAPI()


@pytest.fixture
def tenants(db):
    return TenantDirectory(db)


@pytest.fixture
def conversations(db):
    return ConversationLedger(db)


@pytest.fixture
def sessions(db, clock, settings):
    return OnboardingSessionStore(db, ttl_minutes=settings.onboarding_session_ttl_minutes, clock=clock)


@pytest.fixture
def orchestrator(settings, graph, sessions, tenants, clock):
    return OnboardingOrchestrator(
        settings=settings,
        graph=graph,
        sessions=sessions,
        tenants=tenants,
        page_filter=build_page_filter(settings),
        webhook_credential=build_credential_source(settings),
        clock=clock,
    )


@pytest.fixture
def responder():
    return RecordingResponder()


@pytest.fixture
def message_router(tenants, conversations, graph, responder):
    return MessageRouter(tenants=tenants, conversations=conversations, graph=graph, responder=responder)


@pytest.fixture
def ingestor(message_router, settings):
    return WebhookIngestor(message_router, verify_token=settings.meta_verify_token)


@pytest.fixture
def make_tenant(tenants, clock):
    """Creates a tenant the way finalize does and returns it."""
    def _make(email="a@b.com", page_id="p1", token="long-short1", name="A"):
        return tenants.upsert_onboarded(
            email=email,
            name=name,
            avatar_url=None,
            facebook_user_id="u-" + email,
            page_id=page_id,
            page_access_token=token,
            business_name="Shop " + page_id,
            default_sheet_id="sheet-default",
            terms_version="1.0.0",
            now=clock(),
        )
    return _make


@pytest.fixture
def client(settings, orchestrator, ingestor, tenants, conversations):
    app = FastAPI()
    app.include_router(onboarding_router.router)
    app.include_router(webhook_router.router)
    app.include_router(tenants_router.router)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_onboarding] = lambda: orchestrator
    app.dependency_overrides[get_ingestor] = lambda: ingestor
    app.dependency_overrides[get_tenant_directory] = lambda: tenants
    app.dependency_overrides[get_conversation_ledger] = lambda: conversations

    with TestClient(app) as test_client:
        yield test_client
