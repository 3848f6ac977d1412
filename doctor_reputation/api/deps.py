from __future__ import annotations

from doctor_reputation.errors import SummarizationFailed
from doctor_reputation.models.schemas import LookupResponse
from doctor_reputation.services.lookup import LookupService, build_lookup_service

STATUS_BY_ERROR_KIND = {
    "InvalidRequest": 400,
    "InvalidSource": 400,
    "SourceInactive": 400,
    "NoResultsFound": 404,
    "ReportCollectionFailed": 502,
    "SummarizationFailed": 502,
}

_service: LookupService | None = None


def get_lookup_service() -> LookupService:
    """Get or create the shared lookup service."""
    global _service
    if _service is None:
        _service = build_lookup_service()
    return _service


def status_for(response: LookupResponse) -> int:
    if response.success:
        return 200
    if response.cause == SummarizationFailed.SIZE_LIMIT:
        return 413
    return STATUS_BY_ERROR_KIND.get(response.error_kind or "", 500)
