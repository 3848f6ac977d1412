"""Sequential page walker for source feeds.

The walk is a small state machine::

    FETCHING -> EVALUATING -> FETCHING ... -> DONE

Termination predicates, checked in order after each page:

* ``EMPTY_PAGE``    the upstream returned no items (unless ``stop_on_empty`` is off)
* ``SHORT_PAGE``    fewer items than ``min_items_per_page``
* ``TOTAL_REACHED`` items seen so far >= the total the upstream reported
* ``PAGE_CAP``      ``max_pages`` pages fetched
* ``EXHAUSTED``     the upstream offered no next page

A failing page ends the walk with ``FAILED`` (keeping earlier pages) unless
``strict`` is set, in which case the source error propagates.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

from doctor_reputation.errors import SourceError
from doctor_reputation.services import logger as log_service
from doctor_reputation.sources.base import Batch, Feed, PagePolicy

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class PaginationState(str, Enum):
    FETCHING = "fetching"
    EVALUATING = "evaluating"
    DONE = "done"


class StopReason(str, Enum):
    EMPTY_PAGE = "empty_page"
    SHORT_PAGE = "short_page"
    TOTAL_REACHED = "total_reached"
    PAGE_CAP = "page_cap"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass
class PaginationOutcome(Generic[T]):
    records: list[T] = field(default_factory=list)
    pages: int = 0
    items_seen: int = 0
    stop_reason: StopReason | None = None
    error: SourceError | None = None


def evaluate_page(
    batch: Batch,
    *,
    pages: int,
    items_seen: int,
    policy: PagePolicy,
) -> StopReason | None:
    """Return why the walk should stop after this page, or None to continue."""
    if batch.raw_count <= 0 and policy.stop_on_empty:
        return StopReason.EMPTY_PAGE
    if batch.raw_count < policy.min_items_per_page:
        return StopReason.SHORT_PAGE
    if batch.total_available is not None and items_seen >= batch.total_available:
        return StopReason.TOTAL_REACHED
    if pages >= max(policy.max_pages, 1):
        return StopReason.PAGE_CAP
    if batch.next_page_token is None:
        return StopReason.EXHAUSTED
    return None


async def collect(
    feed: Feed[T],
    policy: PagePolicy | None = None,
    *,
    strict: bool = False,
    sleep: Sleeper = asyncio.sleep,
) -> PaginationOutcome[T]:
    """Walk ``feed`` page by page, never issuing two requests concurrently."""
    policy = policy or feed.policy
    outcome: PaginationOutcome[T] = PaginationOutcome()
    state = PaginationState.FETCHING
    page_token = feed.first_page_token
    batch: Batch[T] | None = None

    while state is not PaginationState.DONE:
        if state is PaginationState.FETCHING:
            if outcome.pages > 0 and policy.pacing_delay > 0:
                await sleep(policy.pacing_delay)
            try:
                batch = await feed.fetch_batch(page_token)
            except SourceError as exc:
                outcome.stop_reason = StopReason.FAILED
                outcome.error = exc
                log_service.log_source_call(
                    feed.source_id,
                    feed.operation,
                    status="failed",
                    records=len(outcome.records),
                    pages=outcome.pages,
                    stop_reason=outcome.stop_reason.value,
                    error=str(exc),
                )
                if strict:
                    raise
                state = PaginationState.DONE
                continue
            outcome.pages += 1
            state = PaginationState.EVALUATING

        elif state is PaginationState.EVALUATING:
            assert batch is not None
            outcome.records.extend(batch.records)
            outcome.items_seen += max(batch.raw_count, 0)
            reason = evaluate_page(
                batch,
                pages=outcome.pages,
                items_seen=outcome.items_seen,
                policy=policy,
            )
            if reason is None:
                page_token = batch.next_page_token
                state = PaginationState.FETCHING
            else:
                outcome.stop_reason = reason
                state = PaginationState.DONE

    if outcome.error is None:
        log_service.log_source_call(
            feed.source_id,
            feed.operation,
            status="success",
            records=len(outcome.records),
            pages=outcome.pages,
            stop_reason=outcome.stop_reason.value if outcome.stop_reason else None,
        )
    return outcome
