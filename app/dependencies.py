from functools import lru_cache

from app.config import Settings
from app.services.ai_responder import AIResponderClient
from app.services.conversation_ledger import ConversationLedger
from app.services.graph_api import GraphAPIClient
from app.services.message_router import MessageRouter
from app.services.onboarding_service import OnboardingOrchestrator
from app.services.onboarding_store import OnboardingSessionStore
from app.services.onboarding_strategies import build_credential_source, build_page_filter
from app.services.supabase_client import get_supabase
from app.services.tenant_directory import TenantDirectory
from app.services.webhook_ingestor import WebhookIngestor

# Singletons are built on first use so importing the routers needs no env.
# Routes depend on the get_* providers; tests swap them via dependency_overrides.


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=None)
def get_graph_api() -> GraphAPIClient:
    return GraphAPIClient(get_settings())


@lru_cache(maxsize=None)
def get_tenant_directory() -> TenantDirectory:
    return TenantDirectory(get_supabase(get_settings()))


@lru_cache(maxsize=None)
def get_conversation_ledger() -> ConversationLedger:
    return ConversationLedger(get_supabase(get_settings()))


@lru_cache(maxsize=None)
def get_session_store() -> OnboardingSessionStore:
    settings = get_settings()
    return OnboardingSessionStore(get_supabase(settings), ttl_minutes=settings.onboarding_session_ttl_minutes)


@lru_cache(maxsize=None)
def get_onboarding() -> OnboardingOrchestrator:
    settings = get_settings()
    return OnboardingOrchestrator(
        settings=settings,
        graph=get_graph_api(),
        sessions=get_session_store(),
        tenants=get_tenant_directory(),
        page_filter=build_page_filter(settings),
        webhook_credential=build_credential_source(settings),
    )


@lru_cache(maxsize=None)
def get_ingestor() -> WebhookIngestor:
    settings = get_settings()
    router = MessageRouter(
        tenants=get_tenant_directory(),
        conversations=get_conversation_ledger(),
        graph=get_graph_api(),
        responder=AIResponderClient(settings),
    )
    return WebhookIngestor(router, verify_token=settings.meta_verify_token)
