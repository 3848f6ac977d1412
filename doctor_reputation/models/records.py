from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TRUNCATION_MARKER = "..."


@dataclass(slots=True)
class Location:
    city: str = ""
    state: str = ""
    country: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"city": self.city, "state": self.state, "country": self.country}


@dataclass(slots=True)
class ProfileRecord:
    """Normalized doctor profile from any source."""

    source_id: str
    external_id: str
    name: str
    specialties: list[str]
    location: Location
    rating: float
    review_count: int
    profile_url: str
    image_url: str | None = None
    slug: str | None = None
    hospital: str | None = None

    @property
    def identity_key(self) -> str:
        return self.profile_url.strip() or self.external_id.strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "external_id": self.external_id,
            "name": self.name,
            "specialties": list(self.specialties),
            "location": self.location.to_dict(),
            "rating": self.rating,
            "review_count": self.review_count,
            "image_url": self.image_url,
            "profile_url": self.profile_url,
            "slug": self.slug,
            "hospital": self.hospital,
        }


@dataclass(slots=True)
class ReviewRecord:
    """Normalized review. ``rating`` is on the canonical 0..5 integer scale.

    An unrated review (``rated`` False) carries ``rating`` 0 but is kept out of
    highlights and sentiment counts.
    """

    comment_text: str
    rating: int
    created_at: datetime | None = None
    author: str | None = None
    raw_date_text: str | None = None
    raw_score: float | None = None
    rated: bool = True

    @property
    def year(self) -> int | None:
        return self.created_at.year if self.created_at else None

    @property
    def comment_length(self) -> int:
        return len(self.comment_text)

    def display_text(self, max_chars: int) -> str:
        if max_chars <= 0 or len(self.comment_text) <= max_chars:
            return self.comment_text
        return self.comment_text[:max_chars].rstrip() + TRUNCATION_MARKER

    def display_date(self) -> str:
        if self.created_at:
            return self.created_at.strftime("%B %Y")
        return self.raw_date_text or "Unknown date"

    def to_highlight(self, max_chars: int) -> dict[str, Any]:
        comment = self.display_text(max_chars)
        return {
            "comment": comment,
            "truncated": comment != self.comment_text,
            "comment_length": self.comment_length,
            "rating": self.rating,
            "author": self.author,
            "date": self.display_date(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(slots=True)
class YearlyBucket:
    year: int
    positive_count: int = 0
    negative_count: int = 0
    total_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "year": self.year,
            "positive_count": self.positive_count,
            "negative_count": self.negative_count,
            "total_count": self.total_count,
        }


@dataclass(slots=True)
class AggregationResult:
    source_id: str
    records: list[ProfileRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_id,
            "results": [record.to_dict() for record in self.records],
        }


@dataclass(slots=True)
class ReputationReport:
    positive_highlights: list[ReviewRecord] = field(default_factory=list)
    negative_highlight: ReviewRecord | None = None
    yearly_buckets: list[YearlyBucket] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    summary: str = ""
    total_reviews: int = 0

    def to_dict(self, *, highlight_max_chars: int = 0) -> dict[str, Any]:
        return {
            "positive_highlights": [
                review.to_highlight(highlight_max_chars) for review in self.positive_highlights
            ],
            "negative_highlight": (
                self.negative_highlight.to_highlight(highlight_max_chars)
                if self.negative_highlight
                else None
            ),
            "yearly_buckets": [bucket.to_dict() for bucket in self.yearly_buckets],
            "insights": list(self.insights),
            "summary": self.summary,
            "total_reviews": self.total_reviews,
        }
