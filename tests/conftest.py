from __future__ import annotations

from datetime import datetime, timezone

import pytest

from doctor_reputation.models.records import Location, ProfileRecord, ReviewRecord
from doctor_reputation.sources.base import (
    REVIEWS,
    SEARCH,
    SPECIALITY,
    Batch,
    Feed,
    PagePolicy,
    SourceAdapter,
)
from doctor_reputation.sources.registry import SourceEntry, SourceRegistry


def make_profile(source_id: str, n: int, *, review_count: int = 5) -> ProfileRecord:
    return ProfileRecord(
        source_id=source_id,
        external_id=str(n),
        name=f"Dr. Smith {n}",
        specialties=["Cardiologist"],
        location=Location(city="Toronto", state="Ontario"),
        rating=4.5,
        review_count=review_count,
        profile_url=f"https://{source_id}.example.com/doctor/{n}",
    )


def make_review(rating: int, year: int | None, text: str = "", *, raw_score: float | None = None) -> ReviewRecord:
    return ReviewRecord(
        comment_text=text or f"{rating} star review from {year}",
        rating=rating,
        created_at=datetime(year, 6, 1, tzinfo=timezone.utc) if year else None,
        raw_score=raw_score,
    )


class ListFeed(Feed):
    """Serves pre-built batches keyed by page number (1-based)."""

    def __init__(self, batches: list[Batch | Exception], *, policy: PagePolicy | None = None, source_id: str = "fake"):
        super().__init__(source_id, policy or PagePolicy(max_pages=10))
        self.operation = "test"
        self.batches = batches
        self.requested: list = []

    async def fetch_batch(self, page_token):
        self.requested.append(page_token)
        item = self.batches[int(page_token) - 1]
        if isinstance(item, Exception):
            raise item
        return item


class FakeAdapter(SourceAdapter):
    """Adapter whose every operation returns one fixed page of records."""

    capabilities = frozenset({SEARCH, SPECIALITY, REVIEWS})

    def __init__(self, source_id: str, records: list | None = None, *, error: Exception | None = None):
        super().__init__()
        self.source_id = source_id
        self.name = source_id.upper()
        self.records = records or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def _feed(self, operation: str, value: str) -> ListFeed:
        self.calls.append((operation, value))
        page = self.error or Batch(records=list(self.records), raw_count=len(self.records))
        return ListFeed([page], policy=PagePolicy(max_pages=1), source_id=self.source_id)

    def search_feed(self, query: str) -> ListFeed:
        return self._feed(SEARCH, query)

    def speciality_feed(self, speciality: str) -> ListFeed:
        return self._feed(SPECIALITY, speciality)

    def review_feed(self, identifier: str) -> ListFeed:
        return self._feed(REVIEWS, identifier)


def make_registry(*adapters: FakeAdapter, inactive: tuple[str, ...] = ()) -> SourceRegistry:
    return SourceRegistry(
        [
            SourceEntry(
                identifier=adapter.source_id,
                name=adapter.name,
                priority=index + 1,
                active=adapter.source_id not in inactive,
                adapter=adapter,
            )
            for index, adapter in enumerate(adapters)
        ]
    )


class FakeStore:
    """In-memory stand-in for the Redis client used by CacheGateway."""

    def __init__(self, *, fail: bool = False):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = fail
        self.set_calls = 0

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.set_calls += 1
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def ping(self):
        if self.fail:
            raise ConnectionError("redis down")
        return True


class FakeSummarizer:
    def __init__(self, reply: str = "", *, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


SUMMARY_REPLY = """KEY INSIGHTS:
1. Patients praise the bedside manner.
2. Appointments often run late.
3. Clear explanations of treatment.
4. An extra line that should be ignored.

PROFESSIONAL SUMMARY:
A well-regarded cardiologist.
Most patients would return."""


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
