from __future__ import annotations

import asyncio

from loguru import logger

from doctor_reputation.errors import (
    InvalidSource,
    NoResultsFound,
    ReportCollectionFailed,
    SourceError,
    SourceInactive,
)
from doctor_reputation.models.records import AggregationResult, ReviewRecord
from doctor_reputation.services import paginator
from doctor_reputation.services.paginator import Sleeper
from doctor_reputation.sources.base import REVIEWS, SEARCH, SPECIALITY
from doctor_reputation.sources.registry import SourceEntry, SourceRegistry


def dedupe_reviews(reviews: list[ReviewRecord]) -> list[ReviewRecord]:
    """Drop reviews repeated across overlapping pages, keeping first-seen order."""
    seen: set[tuple[str, str]] = set()
    unique: list[ReviewRecord] = []
    for review in reviews:
        key = (
            review.created_at.isoformat() if review.created_at else (review.raw_date_text or ""),
            " ".join(review.comment_text.split()).lower(),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(review)
    return unique


class Aggregator:
    """Routes lookups to source adapters.

    Search mode walks active sources in priority order and stops at the first
    non-empty result. Selection mode calls exactly the named source.
    """

    def __init__(self, registry: SourceRegistry, *, sleep: Sleeper = asyncio.sleep):
        self.registry = registry
        self._sleep = sleep

    def resolve(self, source_id: str, capability: str) -> SourceEntry:
        entry = self.registry.get(source_id)
        if entry is None:
            raise InvalidSource(f"Invalid source specified: {source_id}")
        if not entry.active:
            raise SourceInactive(f"{source_id} is currently inactive")
        if not entry.adapter.supports(capability):
            raise InvalidSource(f"{source_id} does not support {capability}")
        return entry

    async def search(self, query: str) -> AggregationResult:
        for entry in self.registry.active():
            if not entry.adapter.supports(SEARCH):
                continue
            try:
                outcome = await paginator.collect(entry.adapter.search_feed(query), sleep=self._sleep)
            except Exception:
                logger.exception(f"Unexpected failure searching {entry.identifier}; trying next source")
                continue

            if outcome.records:
                logger.info(f"Search '{query}' answered by {entry.identifier} ({len(outcome.records)} doctors)")
                return AggregationResult(source_id=entry.identifier, records=outcome.records)
            logger.info(f"No results from {entry.identifier} for '{query}', falling back")

        raise NoResultsFound("No doctors found")

    async def speciality(self, source_id: str, speciality: str) -> AggregationResult:
        entry = self.resolve(source_id, SPECIALITY)
        outcome = await paginator.collect(entry.adapter.speciality_feed(speciality), sleep=self._sleep)
        if not outcome.records:
            raise NoResultsFound(f"No doctors found for speciality '{speciality}' on {source_id}")
        return AggregationResult(source_id=entry.identifier, records=outcome.records)

    async def reviews(self, source_id: str, identifier: str) -> tuple[SourceEntry, list[ReviewRecord]]:
        """Collect every review page; any page failure aborts the collection."""
        entry = self.resolve(source_id, REVIEWS)
        try:
            outcome = await paginator.collect(
                entry.adapter.review_feed(identifier),
                strict=True,
                sleep=self._sleep,
            )
        except SourceError as exc:
            raise ReportCollectionFailed(f"Failed to collect reviews from {source_id}: {exc.message}") from exc
        return entry, dedupe_reviews(outcome.records)
