"""Reputation report synthesis from a full set of reviews.

Highlights and yearly buckets are computed locally; insights and the
narrative summary come from the text summarizer, whose reply is expected to
contain a ``KEY INSIGHTS:`` section and a ``PROFESSIONAL SUMMARY:`` section.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from string import Template

from loguru import logger

from doctor_reputation.config import settings
from doctor_reputation.errors import SummarizationFailed
from doctor_reputation.llm_client import TextSummarizer
from doctor_reputation.models.records import ReputationReport, ReviewRecord, YearlyBucket

POSITIVE_MIN_RATING = 4
NEGATIVE_BELOW_RATING = 3
# Fractional-score sources must be at or under this to count as negative.
FINE_GRAINED_NEGATIVE_MAX = 2.5
MAX_POSITIVE_HIGHLIGHTS = 2
MAX_INSIGHTS = 3
CHARS_PER_TOKEN = 4

INSIGHTS_HEADING = "KEY INSIGHTS"
SUMMARY_HEADING = "PROFESSIONAL SUMMARY"

REPORT_PROMPT = Template(
    """Based on these doctor reviews:

$reviews

Please format your response EXACTLY like this:

KEY INSIGHTS:
1. [First insight]
2. [Second insight]
3. [Third insight]

PROFESSIONAL SUMMARY:
[Summary text here]"""
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[.):-]|[-*•])\s*")
_HEADING_NOISE = re.compile(r"[*#_:]")


def _timestamp(review: ReviewRecord) -> float:
    return (review.created_at or _EPOCH).timestamp()


def _is_negative(review: ReviewRecord, fine_grained: bool) -> bool:
    if fine_grained and review.raw_score is not None:
        return review.raw_score <= FINE_GRAINED_NEGATIVE_MAX
    return review.rating < NEGATIVE_BELOW_RATING


def select_positive_highlights(
    reviews: list[ReviewRecord],
    limit: int = MAX_POSITIVE_HIGHLIGHTS,
) -> list[ReviewRecord]:
    """Best-rated reviews, one per calendar year first, then plain rank order."""
    ranked = sorted(
        (review for review in reviews if review.rated and review.rating >= POSITIVE_MIN_RATING),
        key=lambda review: (review.rating, _timestamp(review)),
        reverse=True,
    )
    chosen: list[ReviewRecord] = []
    years: set[int] = set()
    for review in ranked:
        if len(chosen) >= limit:
            break
        if review.year is not None and review.year not in years:
            chosen.append(review)
            years.add(review.year)

    chosen_ids = {id(review) for review in chosen}
    for review in ranked:
        if len(chosen) >= limit:
            break
        if id(review) not in chosen_ids:
            chosen.append(review)
            chosen_ids.add(id(review))
    return chosen


def select_negative_highlight(
    reviews: list[ReviewRecord],
    *,
    exclude: list[ReviewRecord],
    fine_grained: bool = False,
) -> ReviewRecord | None:
    """Lowest-rated qualifying review, from a year not used by ``exclude`` when possible."""
    excluded_ids = {id(review) for review in exclude}
    used_years = {review.year for review in exclude if review.year is not None}

    def score(review: ReviewRecord) -> float:
        if fine_grained and review.raw_score is not None:
            return review.raw_score
        return float(review.rating)

    ranked = sorted(
        (review for review in reviews if review.rated and id(review) not in excluded_ids),
        key=lambda review: (score(review), -_timestamp(review)),
    )
    qualifying = [review for review in ranked if _is_negative(review, fine_grained)]
    for review in qualifying:
        if review.year is not None and review.year not in used_years:
            return review
    return qualifying[0] if qualifying else None


def yearly_buckets(reviews: list[ReviewRecord]) -> list[YearlyBucket]:
    buckets: dict[int, YearlyBucket] = {}
    for review in reviews:
        year = review.year
        if year is None or not review.rated:
            continue
        bucket = buckets.setdefault(year, YearlyBucket(year=year))
        bucket.total_count += 1
        if review.rating >= POSITIVE_MIN_RATING:
            bucket.positive_count += 1
        else:
            bucket.negative_count += 1
    return [buckets[year] for year in sorted(buckets)]


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def build_prompt(reviews: list[ReviewRecord], review_limit: int | None = None) -> str:
    """Most recent reviews first, one ``[Month YYYY] text`` line each."""
    recent = sorted(reviews, key=_timestamp, reverse=True)
    if review_limit is not None:
        recent = recent[: max(review_limit, 0)]
    lines = "\n".join(
        f"[{review.display_date()}] {' '.join(review.comment_text.split())}" for review in recent
    )
    return REPORT_PROMPT.substitute(reviews=lines)


def _heading(line: str) -> str | None:
    cleaned = _HEADING_NOISE.sub("", line).strip().upper()
    if cleaned in (INSIGHTS_HEADING, SUMMARY_HEADING):
        return cleaned
    return None


def parse_summary_response(text: str, *, summary_max_chars: int = 0) -> tuple[list[str], str]:
    """Split a summarizer reply into (insights, summary).

    A missing section yields an empty value instead of an error.
    """
    sections: dict[str, list[str]] = {}
    current: str | None = None
    for raw_line in text.splitlines():
        heading = _heading(raw_line)
        if heading is not None:
            current = heading
            sections.setdefault(current, [])
            continue
        line = raw_line.strip()
        if current is not None and line:
            sections[current].append(line)

    insights = [
        cleaned
        for cleaned in (_LIST_MARKER.sub("", line).strip() for line in sections.get(INSIGHTS_HEADING, []))
        if cleaned
    ][:MAX_INSIGHTS]

    summary = " ".join(sections.get(SUMMARY_HEADING, []))
    if summary_max_chars > 0 and len(summary) > summary_max_chars:
        summary = summary[:summary_max_chars].rstrip() + "..."
    return insights, summary


class ReportSynthesizer:
    def __init__(
        self,
        summarizer: TextSummarizer,
        *,
        prompt_token_budget: int | None = None,
        summary_max_chars: int | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        self.summarizer = summarizer
        self.prompt_token_budget = (
            settings.report_prompt_token_budget if prompt_token_budget is None else prompt_token_budget
        )
        self.summary_max_chars = (
            settings.report_summary_max_chars if summary_max_chars is None else summary_max_chars
        )
        self.max_tokens = settings.report_summarizer_max_tokens if max_tokens is None else max_tokens
        self.temperature = (
            settings.report_summarizer_temperature if temperature is None else temperature
        )

    async def synthesize(
        self,
        reviews: list[ReviewRecord],
        *,
        fine_grained: bool = False,
        review_limit: int | None = None,
    ) -> ReputationReport:
        positives = select_positive_highlights(reviews)
        negative = select_negative_highlight(reviews, exclude=positives, fine_grained=fine_grained)
        buckets = yearly_buckets(reviews)

        prompt = build_prompt(reviews, review_limit)
        estimated = estimate_tokens(prompt)
        if estimated > self.prompt_token_budget:
            raise SummarizationFailed(
                f"Prompt needs about {estimated} tokens but the budget is "
                f"{self.prompt_token_budget}; reduce batch size (review_limit)",
                cause=SummarizationFailed.SIZE_LIMIT,
            )

        logger.info(f"Summarizing {len(reviews)} reviews (~{estimated} prompt tokens)")
        try:
            reply = await self.summarizer.complete(prompt, self.max_tokens, self.temperature)
        except SummarizationFailed:
            raise
        except Exception as exc:
            raise SummarizationFailed(f"Summarizer request failed: {exc}") from exc
        insights, summary = parse_summary_response(reply, summary_max_chars=self.summary_max_chars)
        if not insights or not summary:
            logger.warning("Summarizer reply is missing an expected section")

        return ReputationReport(
            positive_highlights=positives,
            negative_highlight=negative,
            yearly_buckets=buckets,
            insights=insights,
            summary=summary,
            total_reviews=len(reviews),
        )
