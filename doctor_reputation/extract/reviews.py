from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from doctor_reputation.models.records import ReviewRecord
from doctor_reputation.tools.html_document import HtmlDocument, normalize_text

MIN_STARS = 0
MAX_STARS = 5

DATE_FORMATS = (
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%B %Y",
    "%b %Y",
)

# IWantGreatCare review page markup
IWGC_REVIEW = "div.review"
IWGC_REVIEW_TEXT = ".review-text"
IWGC_REVIEW_AUTHOR = ".review-author"
IWGC_REVIEW_DATE = ".review-date"
IWGC_REVIEW_FULL_STAR = 'img[src*="icon-star-yellow-full"]'
IWGC_REVIEW_TOTAL = ".review-count"
IWGC_NEXT_PAGE = "a[rel=next]"


def clamp_stars(value: Any) -> int:
    """Convert a score to the canonical 0..5 integer scale (round half up)."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return MIN_STARS
    if math.isnan(score):
        return MIN_STARS
    return min(max(int(math.floor(score + 0.5)), MIN_STARS), MAX_STARS)


def parse_review_date(text: Any) -> datetime | None:
    """Parse ISO timestamps and the common display formats; results are UTC-aware."""
    if not isinstance(text, str) or not text.strip():
        return None
    raw = normalize_text(text)
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def ratemds_review(item: Any) -> ReviewRecord | None:
    if not isinstance(item, dict):
        return None
    comment = item.get("comment")
    if not isinstance(comment, str) or not comment.strip():
        return None
    raw_score: float | None
    try:
        raw_score = float(item.get("average"))
    except (TypeError, ValueError):
        raw_score = None
    if raw_score is not None and math.isnan(raw_score):
        raw_score = None
    created = item.get("created")
    author = item.get("author")
    return ReviewRecord(
        comment_text=comment.strip(),
        rating=clamp_stars(raw_score),
        created_at=parse_review_date(created),
        author=normalize_text(author) if isinstance(author, str) and author.strip() else None,
        raw_date_text=created if isinstance(created, str) else None,
        raw_score=raw_score,
        rated=raw_score is not None,
    )


def ratemds_reviews(items: Any) -> list[ReviewRecord]:
    if not isinstance(items, list):
        return []
    return [review for review in (ratemds_review(item) for item in items) if review is not None]


def iwgc_review(node: HtmlDocument) -> ReviewRecord | None:
    comment = node.text(IWGC_REVIEW_TEXT)
    if not comment:
        return None
    date_text = node.text(IWGC_REVIEW_DATE) or None
    return ReviewRecord(
        comment_text=comment,
        rating=clamp_stars(node.count(IWGC_REVIEW_FULL_STAR)),
        created_at=parse_review_date(date_text),
        author=node.text(IWGC_REVIEW_AUTHOR) or None,
        raw_date_text=date_text,
    )


def iwgc_reviews(document: HtmlDocument) -> list[ReviewRecord]:
    return [review for review in (iwgc_review(node) for node in document.select(IWGC_REVIEW)) if review is not None]
