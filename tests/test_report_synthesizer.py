from __future__ import annotations

import pytest

from conftest import SUMMARY_REPLY, FakeSummarizer, make_review
from doctor_reputation.errors import SummarizationFailed
from doctor_reputation.models.records import ReviewRecord
from doctor_reputation.services.report_synthesizer import (
    ReportSynthesizer,
    build_prompt,
    parse_summary_response,
    select_negative_highlight,
    select_positive_highlights,
    yearly_buckets,
)


def test_positive_highlights_come_from_different_years():
    reviews = [
        make_review(5, 2022, "a"),
        make_review(5, 2022, "b"),
        make_review(5, 2022, "c"),
        make_review(4, 2020, "d"),
        make_review(4, 2019, "e"),
    ]

    chosen = select_positive_highlights(reviews)

    assert len(chosen) == 2
    assert chosen[0].year == 2022
    assert chosen[1].year != 2022
    assert chosen[1].year == 2020


def test_positive_highlights_fall_back_to_rank_order_with_one_year():
    reviews = [make_review(4, 2021, "ok"), make_review(5, 2021, "best"), make_review(5, 2021, "great")]

    chosen = select_positive_highlights(reviews)

    assert [review.rating for review in chosen] == [5, 5]


def test_positive_highlights_ignore_low_ratings():
    assert select_positive_highlights([make_review(3, 2021), make_review(1, 2020)]) == []


def test_negative_highlight_prefers_year_not_used_by_positives():
    positives = [make_review(5, 2022, "p1"), make_review(5, 2021, "p2")]
    worst_same_year = make_review(1, 2022, "worst")
    bad_other_year = make_review(2, 2018, "bad")
    reviews = positives + [worst_same_year, bad_other_year]

    assert select_negative_highlight(reviews, exclude=positives) is bad_other_year


def test_negative_highlight_falls_back_to_lowest_rated():
    positives = [make_review(5, 2022, "p1")]
    worst = make_review(1, 2022, "worst")
    bad = make_review(2, 2022, "bad")

    assert select_negative_highlight(positives + [bad, worst], exclude=positives) is worst


def test_negative_highlight_none_without_qualifying_reviews():
    reviews = [make_review(5, 2022), make_review(3, 2021)]

    assert select_negative_highlight(reviews, exclude=[]) is None


def test_fine_grained_scores_use_stricter_threshold():
    borderline = make_review(3, 2020, "borderline", raw_score=2.75)
    low = make_review(2, 2019, "low", raw_score=2.25)

    assert select_negative_highlight([borderline], exclude=[], fine_grained=True) is None
    assert select_negative_highlight([borderline, low], exclude=[], fine_grained=True) is low


def test_yearly_buckets_count_positive_and_negative():
    reviews = [
        make_review(5, 2021),
        make_review(4, 2021),
        make_review(3, 2021),
        make_review(1, 2019),
        make_review(5, None),
    ]

    buckets = yearly_buckets(reviews)

    assert [bucket.to_dict() for bucket in buckets] == [
        {"year": 2019, "positive_count": 0, "negative_count": 1, "total_count": 1},
        {"year": 2021, "positive_count": 2, "negative_count": 1, "total_count": 3},
    ]


def test_parse_summary_response_extracts_both_sections():
    insights, summary = parse_summary_response(SUMMARY_REPLY)

    assert insights == [
        "Patients praise the bedside manner.",
        "Appointments often run late.",
        "Clear explanations of treatment.",
    ]
    assert summary == "A well-regarded cardiologist. Most patients would return."


def test_parse_summary_response_tolerates_missing_section():
    insights, summary = parse_summary_response("PROFESSIONAL SUMMARY:\nSolid reputation.")

    assert insights == []
    assert summary == "Solid reputation."


def test_parse_summary_response_accepts_markdown_headings_and_caps_summary():
    reply = "**Key Insights:**\n- Friendly staff\n\n## Professional Summary\n" + "x" * 50

    insights, summary = parse_summary_response(reply, summary_max_chars=10)

    assert insights == ["Friendly staff"]
    assert summary == "x" * 10 + "..."


def test_build_prompt_lists_most_recent_reviews_first():
    reviews = [make_review(5, 2019, "old"), make_review(4, 2023, "new")]

    prompt = build_prompt(reviews, review_limit=1)

    assert "[June 2023] new" in prompt
    assert "old" not in prompt
    assert "KEY INSIGHTS:" in prompt
    assert "PROFESSIONAL SUMMARY:" in prompt


@pytest.mark.asyncio
async def test_synthesize_builds_full_report():
    summarizer = FakeSummarizer(SUMMARY_REPLY)
    synthesizer = ReportSynthesizer(summarizer, prompt_token_budget=10_000)
    reviews = [
        make_review(5, 2022, "Excellent care"),
        make_review(4, 2021, "Good listener"),
        make_review(1, 2020, "Rude receptionist"),
    ]

    report = await synthesizer.synthesize(reviews)

    assert report.total_reviews == 3
    assert [r.comment_text for r in report.positive_highlights] == ["Excellent care", "Good listener"]
    assert report.negative_highlight.comment_text == "Rude receptionist"
    assert len(report.insights) == 3
    assert report.summary.startswith("A well-regarded")
    assert len(summarizer.prompts) == 1


@pytest.mark.asyncio
async def test_oversized_prompt_fails_fast_without_calling_summarizer():
    summarizer = FakeSummarizer(SUMMARY_REPLY)
    synthesizer = ReportSynthesizer(summarizer, prompt_token_budget=50)
    reviews = [make_review(5, 2022, "word " * 200)]

    with pytest.raises(SummarizationFailed) as excinfo:
        await synthesizer.synthesize(reviews)

    assert excinfo.value.size_limited
    assert summarizer.prompts == []


@pytest.mark.asyncio
async def test_review_limit_brings_prompt_under_budget():
    summarizer = FakeSummarizer(SUMMARY_REPLY)
    synthesizer = ReportSynthesizer(summarizer, prompt_token_budget=200)
    reviews = [make_review(5, 2000 + n, "word " * 40) for n in range(20)]

    report = await synthesizer.synthesize(reviews, review_limit=2)

    assert report.total_reviews == 20
    assert len(summarizer.prompts) == 1


@pytest.mark.asyncio
async def test_summarizer_error_is_distinguishable_from_size_limit():
    synthesizer = ReportSynthesizer(FakeSummarizer(error=RuntimeError("gateway timeout")))

    with pytest.raises(SummarizationFailed) as excinfo:
        await synthesizer.synthesize([make_review(5, 2022, "Great")])

    assert excinfo.value.cause == SummarizationFailed.UPSTREAM
    assert not excinfo.value.size_limited


def _unrated(year: int, text: str = "No opinion") -> ReviewRecord:
    review = make_review(0, year, text)
    review.rated = False
    return review


def test_unrated_reviews_are_left_out_of_highlights_and_buckets():
    good = make_review(5, 2021, "Great")
    unrated = _unrated(2021)

    assert select_negative_highlight([good, unrated], exclude=[good], fine_grained=True) is None
    assert select_negative_highlight([good, unrated], exclude=[good]) is None
    assert select_positive_highlights([unrated]) == []
    assert [bucket.to_dict() for bucket in yearly_buckets([good, unrated])] == [
        {"year": 2021, "positive_count": 1, "negative_count": 0, "total_count": 1},
    ]


@pytest.mark.asyncio
async def test_unrated_reviews_still_reach_the_prompt_and_total():
    summarizer = FakeSummarizer(SUMMARY_REPLY)
    synthesizer = ReportSynthesizer(summarizer, prompt_token_budget=10_000)

    report = await synthesizer.synthesize([make_review(5, 2022, "Great"), _unrated(2021, "Saw him once")])

    assert report.total_reviews == 2
    assert report.negative_highlight is None
    assert "Saw him once" in summarizer.prompts[0]
