"""RealSelf: a single JSON site-search call, no pagination."""
from __future__ import annotations

import httpx

from doctor_reputation.config import settings
from doctor_reputation.errors import SourceMalformed
from doctor_reputation.extract.profiles import admit_profiles, realself_profile
from doctor_reputation.models.records import ProfileRecord
from doctor_reputation.sources.base import SEARCH, SPECIALITY, Batch, Feed, PagePolicy, PageToken, SourceAdapter
from doctor_reputation.tools import fetcher

SOURCE_ID = "rs"


class RealSelfSearchFeed(Feed[ProfileRecord]):
    def __init__(self, query: str, *, operation: str, http_client: httpx.AsyncClient | None = None):
        super().__init__(SOURCE_ID, PagePolicy(max_pages=1))
        self.operation = operation
        self.query = query
        self.http_client = http_client

    async def fetch_batch(self, page_token: PageToken | None) -> Batch[ProfileRecord]:
        payload = await fetcher.fetch_json(
            SOURCE_ID,
            settings.rs_search_url,
            params={"query": self.query},
            http_client=self.http_client,
        )
        contents = payload.get("contents")
        if not isinstance(contents, list):
            raise SourceMalformed(SOURCE_ID, "response has no 'contents' list")
        candidates = (
            realself_profile(item, source_id=SOURCE_ID, site_url=settings.rs_site_url) for item in contents
        )
        return Batch(
            records=admit_profiles(candidates, self.seen_keys, settings.rs_min_review_count),
            raw_count=len(contents),
        )


class RealSelfAdapter(SourceAdapter):
    source_id = SOURCE_ID
    name = "RealSelf"
    capabilities = frozenset({SEARCH, SPECIALITY})

    def search_feed(self, query: str) -> RealSelfSearchFeed:
        return RealSelfSearchFeed(query, operation=SEARCH, http_client=self.http_client)

    def speciality_feed(self, speciality: str) -> RealSelfSearchFeed:
        return RealSelfSearchFeed(speciality, operation=SPECIALITY, http_client=self.http_client)
