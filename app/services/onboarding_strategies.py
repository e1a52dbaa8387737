"""
Pluggable pieces of the onboarding flow, chosen by configuration:

- page eligibility: which of the user's pages can be linked
    linked_account  -> the page has a linked Instagram business account
    business_owned  -> additionally, the page's owner business can be resolved
- webhook credential: which token subscribes the page to message webhooks
    page_token      -> the tenant's own durable page token
    system_user     -> a platform-wide system user token
"""

import logging
from typing import Callable, Dict, List

from app.config import Settings
from app.models.schemas import CandidatePage
from app.services.graph_api import GraphAPIClient, GraphAPIError

logger = logging.getLogger(__name__)


class LinkedAccountFilter:
    """Keeps pages that have a messaging-capable Instagram account attached."""

    def __call__(self, graph: GraphAPIClient, pages: List[dict], user_token: str) -> List[CandidatePage]:
        return [to_candidate(page) for page in pages if page.get("instagram_business_account")]


class BusinessOwnedFilter(LinkedAccountFilter):
    """Like LinkedAccountFilter, but also requires a resolvable owner business."""

    def __call__(self, graph: GraphAPIClient, pages: List[dict], user_token: str) -> List[CandidatePage]:
        eligible = []
        for page in pages:
            if not page.get("instagram_business_account"):
                continue
            try:
                business_id = graph.get_owner_business_id(page["id"], user_token)
            except GraphAPIError:
                logger.warning("Could not fetch owner for page %s, skipping", page.get("id"))
                continue
            if not business_id:
                logger.info("Page %s has no owner business, skipping", page.get("id"))
                continue
            candidate = to_candidate(page)
            candidate.business_id = business_id
            eligible.append(candidate)
        return eligible


def to_candidate(page: dict) -> CandidatePage:
    """The linked Instagram account becomes the candidate; the page supplies the token."""
    account = page["instagram_business_account"]
    return CandidatePage(
        id=account["id"],
        name=account.get("username") or page.get("name") or "",
        access_token=page.get("access_token") or "",
        avatar=account.get("profile_picture_url"),
    )


PAGE_FILTERS: Dict[str, Callable] = {
    "linked_account": LinkedAccountFilter,
    "business_owned": BusinessOwnedFilter,
}


def page_token_credential(settings: Settings) -> Callable[[str], str]:
    return lambda page_token: page_token


def system_user_credential(settings: Settings) -> Callable[[str], str]:
    token = settings.meta_system_user_token
    if not token:
        logger.warning("META_SYSTEM_USER_TOKEN not found in env")
    return lambda page_token: token


CREDENTIAL_SOURCES: Dict[str, Callable] = {
    "page_token": page_token_credential,
    "system_user": system_user_credential,
}


def build_page_filter(settings: Settings):
    name = settings.page_eligibility_filter
    if name not in PAGE_FILTERS:
        raise ValueError(f"Unknown PAGE_ELIGIBILITY_FILTER '{name}'")
    return PAGE_FILTERS[name]()


def build_credential_source(settings: Settings) -> Callable[[str], str]:
    name = settings.webhook_credential_source
    if name not in CREDENTIAL_SOURCES:
        raise ValueError(f"Unknown WEBHOOK_CREDENTIAL_SOURCE '{name}'")
    return CREDENTIAL_SOURCES[name](settings)
