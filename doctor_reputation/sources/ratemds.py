"""RateMDs: page-numbered JSON API (``?json=true&page=N``)."""
from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from doctor_reputation.config import settings
from doctor_reputation.errors import SourceMalformed
from doctor_reputation.extract.profiles import admit_profiles, ratemds_profile
from doctor_reputation.extract.reviews import ratemds_reviews
from doctor_reputation.models.records import ProfileRecord, ReviewRecord
from doctor_reputation.sources.base import (
    REVIEWS,
    SEARCH,
    SPECIALITY,
    Batch,
    Feed,
    PagePolicy,
    PageToken,
    SourceAdapter,
)
from doctor_reputation.tools import fetcher

SOURCE_ID = "rms"


def _page_results(payload: dict[str, Any]) -> list[Any]:
    results = payload.get("results")
    if not isinstance(results, list):
        raise SourceMalformed(SOURCE_ID, "response has no 'results' list")
    return results


def _next_page(payload: dict[str, Any], page: int) -> int | None:
    total_pages = payload.get("total_pages")
    if not isinstance(total_pages, int) or isinstance(total_pages, bool):
        total_pages = 1
    return page + 1 if page < total_pages else None


def _total(payload: dict[str, Any]) -> int | None:
    count = payload.get("count")
    if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
        return count
    return None


class RateMDsProfileFeed(Feed[ProfileRecord]):
    def __init__(
        self,
        params: dict[str, str],
        *,
        operation: str,
        policy: PagePolicy,
        base_url: str,
        min_review_count: int,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(SOURCE_ID, policy)
        self.operation = operation
        self.params = params
        self.base_url = base_url
        self.min_review_count = min_review_count
        self.http_client = http_client

    async def fetch_batch(self, page_token: PageToken | None) -> Batch[ProfileRecord]:
        page = int(page_token or 1)
        payload = await fetcher.fetch_json(
            SOURCE_ID,
            f"{self.base_url}/best-doctors/",
            params={"json": "true", **self.params, "page": page},
            http_client=self.http_client,
        )
        results = _page_results(payload)
        candidates = (
            ratemds_profile(item, source_id=SOURCE_ID, base_url=self.base_url) for item in results
        )
        return Batch(
            records=admit_profiles(candidates, self.seen_keys, self.min_review_count),
            raw_count=len(results),
            next_page_token=_next_page(payload, page),
            total_available=_total(payload),
        )


class RateMDsReviewFeed(Feed[ReviewRecord]):
    operation = REVIEWS

    def __init__(
        self,
        slug: str,
        *,
        policy: PagePolicy,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(SOURCE_ID, policy)
        self.slug = slug
        self.base_url = base_url
        self.http_client = http_client

    async def fetch_batch(self, page_token: PageToken | None) -> Batch[ReviewRecord]:
        page = int(page_token or 1)
        payload = await fetcher.fetch_json(
            SOURCE_ID,
            f"{self.base_url}/doctor-ratings/{quote(self.slug, safe='')}/",
            params={"json": "true", "page": page},
            http_client=self.http_client,
        )
        results = _page_results(payload)
        return Batch(
            records=ratemds_reviews(results),
            raw_count=len(results),
            next_page_token=_next_page(payload, page),
            total_available=_total(payload),
        )


class RateMDsAdapter(SourceAdapter):
    source_id = SOURCE_ID
    name = "RateMDs"
    capabilities = frozenset({SEARCH, SPECIALITY, REVIEWS})
    fine_grained_scores = True

    def _profile_feed(self, params: dict[str, str], operation: str, max_pages: int) -> RateMDsProfileFeed:
        return RateMDsProfileFeed(
            params,
            operation=operation,
            policy=PagePolicy(max_pages=max_pages, pacing_delay=settings.rms_pacing_seconds),
            base_url=settings.rms_base_url.rstrip("/"),
            min_review_count=settings.rms_min_review_count,
            http_client=self.http_client,
        )

    def search_feed(self, query: str) -> RateMDsProfileFeed:
        return self._profile_feed({"text": query}, SEARCH, settings.rms_search_max_pages)

    def speciality_feed(self, speciality: str) -> RateMDsProfileFeed:
        return self._profile_feed({"specialty": speciality}, SPECIALITY, settings.rms_speciality_max_pages)

    def review_feed(self, identifier: str) -> RateMDsReviewFeed:
        return RateMDsReviewFeed(
            identifier,
            policy=PagePolicy(
                max_pages=settings.rms_review_max_pages,
                pacing_delay=settings.rms_pacing_seconds,
            ),
            base_url=settings.rms_base_url.rstrip("/"),
            http_client=self.http_client,
        )
