from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from loguru import logger

from doctor_reputation import llm_client
from doctor_reputation.config import settings
from doctor_reputation.errors import DoctorLookupError, InvalidRequest, NoResultsFound, SummarizationFailed
from doctor_reputation.models.schemas import LookupMode, LookupRequest, LookupResponse
from doctor_reputation.services import logger as log_service
from doctor_reputation.services.aggregator import Aggregator
from doctor_reputation.services.cache import CacheGateway, cache_key, canonical_payload, get_redis_client
from doctor_reputation.services.report_synthesizer import ReportSynthesizer
from doctor_reputation.sources.base import REVIEWS, SPECIALITY
from doctor_reputation.sources.registry import SourceRegistry, build_default_registry

Computation = Callable[[], Awaitable[dict[str, Any]]]

CACHED_SHAPES = (
    frozenset({"source", "results"}),
    frozenset({"source", "report"}),
)


def _cached_payload(text: str) -> dict[str, Any] | None:
    """Decode a stored payload; anything but a known result shape is a miss."""
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict) or frozenset(payload) not in CACHED_SHAPES:
        return None
    if not isinstance(payload["source"], str):
        return None
    results = payload.get("results", [])
    if not isinstance(results, list) or not all(isinstance(item, dict) for item in results):
        return None
    if "report" in payload and not isinstance(payload["report"], dict):
        return None
    return payload


def _required(value: str | None, name: str) -> str:
    cleaned = " ".join((value or "").split())
    if not cleaned:
        raise InvalidRequest(f"{name} parameter is required")
    return cleaned


class LookupService:
    """Entry point for search, speciality and report lookups.

    Cache-aside: every lookup tries the cache first; a freshly computed,
    non-empty result is stored once it is complete. Errors are never cached.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        cache: CacheGateway,
        *,
        synthesizer: ReportSynthesizer | None = None,
        highlight_max_chars: int | None = None,
    ):
        self.aggregator = aggregator
        self.cache = cache
        self._synthesizer = synthesizer
        self.highlight_max_chars = (
            settings.report_highlight_max_chars if highlight_max_chars is None else highlight_max_chars
        )

    @property
    def synthesizer(self) -> ReportSynthesizer:
        if self._synthesizer is None:
            self._synthesizer = ReportSynthesizer(llm_client.summarizer())
        return self._synthesizer

    def _plan(self, request: LookupRequest) -> tuple[str, Computation]:
        """Validate the request and return (cache key, computation)."""
        if request.mode is LookupMode.SEARCH:
            query = _required(request.query, "Query")
            return cache_key("search", query=query), lambda: self._search(query)

        source = _required(request.source, "Source")
        if request.mode is LookupMode.SPECIALITY:
            speciality = _required(request.query or request.identifier, "Speciality")
            self.aggregator.resolve(source, SPECIALITY)
            return (
                cache_key("speciality", source=source, speciality=speciality),
                lambda: self._speciality(source, speciality),
            )

        identifier = _required(request.identifier, "Identifier")
        self.aggregator.resolve(source, REVIEWS)
        return (
            cache_key("report", source=source, identifier=identifier, review_limit=request.review_limit),
            lambda: self._report(source, identifier, request.review_limit),
        )

    async def _search(self, query: str) -> dict[str, Any]:
        result = await self.aggregator.search(query)
        return result.to_dict()

    async def _speciality(self, source: str, speciality: str) -> dict[str, Any]:
        result = await self.aggregator.speciality(source, speciality)
        return result.to_dict()

    async def _report(self, source: str, identifier: str, review_limit: int | None) -> dict[str, Any]:
        entry, reviews = await self.aggregator.reviews(source, identifier)
        if not reviews:
            raise NoResultsFound(f"No reviews found for {identifier} on {source}")
        report = await self.synthesizer.synthesize(
            reviews,
            fine_grained=entry.adapter.fine_grained_scores,
            review_limit=review_limit,
        )
        return {
            "source": entry.identifier,
            "report": report.to_dict(highlight_max_chars=self.highlight_max_chars),
        }

    async def handle(self, request: LookupRequest) -> LookupResponse:
        try:
            key, compute = self._plan(request)

            cached = await self.cache.get(key)
            if cached is not None:
                payload = _cached_payload(cached)
                if payload is None:
                    logger.warning(f"Ignoring malformed cache entry {key}")
                else:
                    log_service.log_event("lookup_served", "Cache hit", mode=request.mode.value, key=key)
                    return LookupResponse(success=True, cached=True, **payload)

            serialized = canonical_payload(await compute())
            await self.cache.set(key, serialized)
            log_service.log_event("lookup_served", "Computed", mode=request.mode.value, key=key)
            return LookupResponse(success=True, **json.loads(serialized))

        except SummarizationFailed as exc:
            logger.warning(f"Report summarization failed ({exc.cause}): {exc.message}")
            return LookupResponse(success=False, error_kind=exc.kind, message=exc.message, cause=exc.cause)
        except DoctorLookupError as exc:
            logger.info(f"Lookup {request.mode.value} failed with {exc.kind}: {exc.message}")
            return LookupResponse(success=False, error_kind=exc.kind, message=exc.message)
        except Exception as exc:
            logger.exception(f"Lookup {request.mode.value} crashed: {exc}")
            return LookupResponse(
                success=False,
                error_kind=DoctorLookupError.kind,
                message="Server error. Please try again later.",
            )


def build_lookup_service(registry: SourceRegistry | None = None) -> LookupService:
    return LookupService(
        Aggregator(registry or build_default_registry()),
        CacheGateway(get_redis_client()),
    )
