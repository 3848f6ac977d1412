"""IWantGreatCare: HTML pages scraped with CSS selectors.

Search walks the results page and then each "show all" expansion page it
links to, all sharing one ``seen_keys`` set, so a doctor listed on both is
returned once. An expansion page with no doctors does not end the walk
while further links remain. Reviews walk numbered profile pages (``?page=N``).
"""
from __future__ import annotations

import httpx

from doctor_reputation.config import settings
from doctor_reputation.extract.profiles import IWGC_ENTITY, iwgc_profiles, iwgc_show_all_links, parse_count
from doctor_reputation.extract.reviews import IWGC_NEXT_PAGE, IWGC_REVIEW, IWGC_REVIEW_TOTAL, iwgc_reviews
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
from doctor_reputation.tools.html_document import HtmlDocument

SOURCE_ID = "iwgc"


class IWGCSearchFeed(Feed[ProfileRecord]):
    """Page 1 is the search page; page N > 1 is the (N-1)th "show all" link."""

    def __init__(self, query: str, *, operation: str, http_client: httpx.AsyncClient | None = None):
        super().__init__(
            SOURCE_ID,
            PagePolicy(
                max_pages=1 + max(settings.iwgc_show_all_max_pages, 0),
                min_items_per_page=0,
                stop_on_empty=False,
            ),
        )
        self.operation = operation
        self.query = query
        self.http_client = http_client
        self.base_url = settings.iwgc_base_url.rstrip("/")
        self.show_all_links: list[str] = []

    async def _load(self, url: str, params: dict[str, str] | None = None) -> HtmlDocument:
        document = await fetcher.fetch(SOURCE_ID, url, params=params, http_client=self.http_client)
        return HtmlDocument.parse(document.body, base_url=document.url or url)

    async def fetch_batch(self, page_token: PageToken | None) -> Batch[ProfileRecord]:
        page = int(page_token or 1)
        if page == 1:
            document = await self._load(f"{self.base_url}/search", {"search": self.query, "jsno": "true"})
            self.show_all_links = iwgc_show_all_links(document)
        else:
            document = await self._load(self.show_all_links[page - 2])

        records = iwgc_profiles(
            document,
            self.seen_keys,
            source_id=SOURCE_ID,
            min_review_count=settings.iwgc_min_review_count,
        )
        has_next = page - 1 < len(self.show_all_links)
        return Batch(
            records=records,
            raw_count=document.count(IWGC_ENTITY),
            next_page_token=page + 1 if has_next else None,
        )


class IWGCReviewFeed(Feed[ReviewRecord]):
    operation = REVIEWS

    def __init__(self, slug: str, *, http_client: httpx.AsyncClient | None = None):
        super().__init__(SOURCE_ID, PagePolicy(max_pages=settings.iwgc_review_max_pages))
        self.slug = slug.strip("/")
        self.http_client = http_client
        self.base_url = settings.iwgc_base_url.rstrip("/")

    async def fetch_batch(self, page_token: PageToken | None) -> Batch[ReviewRecord]:
        page = int(page_token or 1)
        url = f"{self.base_url}/{self.slug}"
        fetched = await fetcher.fetch(SOURCE_ID, url, params={"page": str(page)}, http_client=self.http_client)
        document = HtmlDocument.parse(fetched.body, base_url=fetched.url or url)

        total_text = document.text(IWGC_REVIEW_TOTAL)
        return Batch(
            records=iwgc_reviews(document),
            raw_count=document.count(IWGC_REVIEW),
            next_page_token=page + 1 if document.select_one(IWGC_NEXT_PAGE) else None,
            total_available=parse_count(total_text) if total_text else None,
        )


class IWGCAdapter(SourceAdapter):
    source_id = SOURCE_ID
    name = "IWantGreatCare"
    capabilities = frozenset({SEARCH, SPECIALITY, REVIEWS})

    def search_feed(self, query: str) -> IWGCSearchFeed:
        return IWGCSearchFeed(query, operation=SEARCH, http_client=self.http_client)

    def speciality_feed(self, speciality: str) -> IWGCSearchFeed:
        return IWGCSearchFeed(speciality, operation=SPECIALITY, http_client=self.http_client)

    def review_feed(self, identifier: str) -> IWGCReviewFeed:
        return IWGCReviewFeed(identifier, http_client=self.http_client)
