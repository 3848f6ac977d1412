"""Error taxonomy shared by the lookup pipeline.

Every error carries a stable ``kind`` string. Only pipeline-wide errors reach
callers; per-source errors (``SourceUnavailable``, ``SourceMalformed``) are
absorbed by the paginator and aggregator as empty contributions.
"""
from __future__ import annotations


class DoctorLookupError(Exception):
    kind: str = "InternalError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error_kind": self.kind, "message": self.message}


class InvalidRequest(DoctorLookupError):
    kind = "InvalidRequest"


class InvalidSource(DoctorLookupError):
    kind = "InvalidSource"


class SourceInactive(DoctorLookupError):
    kind = "SourceInactive"


class SourceError(DoctorLookupError):
    """Base for failures raised by a single source adapter."""

    def __init__(self, source_id: str, message: str):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id


class SourceUnavailable(SourceError):
    kind = "SourceUnavailable"


class SourceMalformed(SourceError):
    kind = "SourceMalformed"


class NoResultsFound(DoctorLookupError):
    kind = "NoResultsFound"


class ReportCollectionFailed(DoctorLookupError):
    kind = "ReportCollectionFailed"


class SummarizationFailed(DoctorLookupError):
    kind = "SummarizationFailed"

    SIZE_LIMIT = "size_limit"
    UPSTREAM = "upstream"

    def __init__(self, message: str, *, cause: str = UPSTREAM):
        super().__init__(message)
        self.cause = cause

    @property
    def size_limited(self) -> bool:
        return self.cause == self.SIZE_LIMIT

    def to_dict(self) -> dict[str, str]:
        data = super().to_dict()
        data["cause"] = self.cause
        return data


class CacheUnavailable(DoctorLookupError):
    kind = "CacheUnavailable"
