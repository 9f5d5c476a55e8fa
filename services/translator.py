"""
Request translation.
Turns user-entered text into provider resolve and submit calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.schemas import (
    MALFORMED_RESPONSE_MESSAGE,
    ItemSupport,
    JobHandle,
    JobRequest,
    is_success,
)
from services.getstocks import AsyncGetStocksClient
from utils.logging_config import get_logger
from utils.validators import extract_links

logger = get_logger(__name__)


class TranslationKind(str, Enum):
    """What the delivery channel should do next."""
    TOO_MANY_LINKS = "too_many_links"
    NO_LINKS = "no_links"
    RESOLVE_FAILED = "resolve_failed"
    CHOOSE_TYPE = "choose_type"
    SUBMIT = "submit"
    BATCH = "batch"


@dataclass
class Translation:
    """Result of translating one user message."""
    kind: TranslationKind
    links: List[str] = field(default_factory=list)
    requests: List[JobRequest] = field(default_factory=list)
    support: Optional[ItemSupport] = None
    message: Optional[str] = None


@dataclass
class Submission:
    """Result of submitting one job request."""
    request: JobRequest
    handle: Optional[JobHandle] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.handle is not None


class RequestTranslator:
    """
    Validates user input and maps it onto provider calls.

    Holds no per-request state: identical input produces identical calls.
    """

    def __init__(self, client: AsyncGetStocksClient, max_links: int = 5):
        self.client = client
        self.max_links = max_links

    async def translate(self, text: Optional[str]) -> Translation:
        """
        Translate a user message.

        Too many or zero valid links are rejected before any remote call.
        One link is resolved; several links become a batch of default-type
        requests.
        """
        links = extract_links(text)

        if len(links) > self.max_links:
            logger.info("translate_too_many_links", count=len(links), limit=self.max_links)
            return Translation(kind=TranslationKind.TOO_MANY_LINKS, links=links)

        if not links:
            return Translation(kind=TranslationKind.NO_LINKS)

        if len(links) > 1:
            return Translation(
                kind=TranslationKind.BATCH,
                links=links,
                requests=[JobRequest(source_link=link) for link in links],
            )

        link = links[0]
        response = await self.client.get_info(link)
        if not is_success(response):
            return Translation(
                kind=TranslationKind.RESOLVE_FAILED,
                links=links,
                message=response.get("message"),
            )

        support = ItemSupport.from_result(response["result"])
        if support is None:
            logger.warning("translate_missing_support", link=link)
            return Translation(
                kind=TranslationKind.RESOLVE_FAILED,
                links=links,
                message=MALFORMED_RESPONSE_MESSAGE,
            )

        if support.requires_type:
            return Translation(kind=TranslationKind.CHOOSE_TYPE, links=links, support=support)

        return Translation(
            kind=TranslationKind.SUBMIT,
            links=links,
            support=support,
            requests=[JobRequest(source_link=link, is_premium=support.is_premium)],
        )

    async def submit(self, request: JobRequest) -> Submission:
        """Submit one download job and extract its handle."""
        response = await self.client.get_link(
            request.source_link,
            is_premium=request.is_premium,
            item_type=request.selected_type,
        )
        if not is_success(response):
            return Submission(request=request, message=response.get("message"))

        handle = JobHandle.from_result(response["result"])
        if handle is None:
            logger.warning("submit_missing_handle", link=request.source_link)
            return Submission(request=request, message=MALFORMED_RESPONSE_MESSAGE)

        logger.info(
            "job_submitted",
            slug=handle.provider_slug,
            item_id=handle.item_id,
            item_type=handle.item_type,
        )
        return Submission(request=request, handle=handle)
