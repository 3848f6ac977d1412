from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import httpx

from doctor_reputation.models.records import ProfileRecord, ReviewRecord

T = TypeVar("T")

PageToken = int | str

SEARCH = "search"
SPECIALITY = "speciality"
REVIEWS = "reviews"


@dataclass(frozen=True, slots=True)
class PagePolicy:
    max_pages: int = 1
    min_items_per_page: int = 1
    pacing_delay: float = 0.0
    # False lets a walk continue past a page with no items while a next page exists.
    stop_on_empty: bool = True


@dataclass(slots=True)
class Batch(Generic[T]):
    """One upstream page.

    ``raw_count`` is the number of items the upstream returned before
    filtering; an empty page is judged on it, not on accepted ``records``.
    """

    records: list[T] = field(default_factory=list)
    raw_count: int = 0
    next_page_token: PageToken | None = None
    total_available: int | None = None


class Feed(ABC, Generic[T]):
    """Per-request cursor over one source operation.

    A feed owns the request's ``seen_keys`` set, so it must never be shared
    between requests.
    """

    operation: str = ""

    def __init__(self, source_id: str, policy: PagePolicy):
        self.source_id = source_id
        self.policy = policy
        self.seen_keys: set[str] = set()

    @property
    def first_page_token(self) -> PageToken | None:
        return 1

    @abstractmethod
    async def fetch_batch(self, page_token: PageToken | None) -> Batch[T]:
        """Fetch and extract one page. Raises SourceUnavailable / SourceMalformed."""


class SourceAdapter(ABC):
    """Uniform capability over one external provider of doctor data."""

    source_id: str = ""
    name: str = ""
    capabilities: frozenset[str] = frozenset()
    # Reviews carry a fractional raw score (finer than whole stars).
    fine_grained_scores: bool = False

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self.http_client = http_client

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def search_feed(self, query: str) -> Feed[ProfileRecord]:
        raise NotImplementedError(f"{self.source_id} does not support search")

    def speciality_feed(self, speciality: str) -> Feed[ProfileRecord]:
        raise NotImplementedError(f"{self.source_id} does not support speciality lookups")

    def review_feed(self, identifier: str) -> Feed[ReviewRecord]:
        raise NotImplementedError(f"{self.source_id} does not provide reviews")
