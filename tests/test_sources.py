from __future__ import annotations

import httpx
import pytest

from conftest import no_sleep
from doctor_reputation.errors import SourceMalformed, SourceUnavailable
from doctor_reputation.services.paginator import StopReason, collect
from doctor_reputation.sources.iwgc import IWGCAdapter
from doctor_reputation.sources.ratemds import RateMDsAdapter
from doctor_reputation.sources.realself import RealSelfAdapter
from doctor_reputation.sources.registry import build_default_registry
from doctor_reputation.tools import fetcher


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _rms_doctor(n: int) -> dict:
    return {
        "id": n,
        "full_name": f"Dr. Smith {n}",
        "specialty_name": "Cardiologist",
        "rating": {"average": 4.2, "count": 9},
        "url": f"/doctor-ratings/{n}/Dr-Smith-{n}.html",
        "slug": f"dr-smith-{n}",
    }


@pytest.mark.asyncio
async def test_ratemds_search_walks_pages_up_to_the_cap():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        page = int(request.url.params["page"])
        return httpx.Response(
            200,
            json={"results": [_rms_doctor(page * 10 + i) for i in range(3)], "total_pages": 5, "count": 15},
        )

    async with _client(handler) as client:
        feed = RateMDsAdapter(client).search_feed("smith")
        outcome = await collect(feed, sleep=no_sleep)

    assert outcome.stop_reason is StopReason.PAGE_CAP
    assert outcome.pages == 2
    assert len(outcome.records) == 6
    assert [r.url.path for r in requests] == ["/best-doctors/", "/best-doctors/"]
    assert requests[0].url.params["text"] == "smith"
    assert requests[0].url.params["json"] == "true"
    assert [r.url.params["page"] for r in requests] == ["1", "2"]


@pytest.mark.asyncio
async def test_ratemds_speciality_uses_specialty_param_and_stops_on_last_page():
    seen_params: list[httpx.QueryParams] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_params.append(request.url.params)
        return httpx.Response(200, json={"results": [_rms_doctor(1)], "total_pages": 1})

    async with _client(handler) as client:
        outcome = await collect(RateMDsAdapter(client).speciality_feed("cardiology"), sleep=no_sleep)

    assert outcome.stop_reason is StopReason.EXHAUSTED
    assert seen_params[0]["specialty"] == "cardiology"
    assert "text" not in seen_params[0]


@pytest.mark.asyncio
async def test_ratemds_reviews_stop_when_reported_total_is_reached():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/doctor-ratings/dr-smith-1/"
        page = int(request.url.params["page"])
        reviews = [
            {"comment": f"Review {page}-{i}", "average": 4.5, "created": "2022-01-05T10:00:00Z"}
            for i in range(2)
        ]
        return httpx.Response(200, json={"results": reviews, "total_pages": 10, "count": 4})

    async with _client(handler) as client:
        outcome = await collect(RateMDsAdapter(client).review_feed("dr-smith-1"), sleep=no_sleep)

    assert outcome.stop_reason is StopReason.TOTAL_REACHED
    assert outcome.pages == 2
    assert [review.rating for review in outcome.records] == [5, 5, 5, 5]


@pytest.mark.asyncio
async def test_ratemds_missing_results_list_is_malformed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "maintenance"})

    async with _client(handler) as client:
        with pytest.raises(SourceMalformed):
            await collect(RateMDsAdapter(client).search_feed("smith"), strict=True, sleep=no_sleep)


@pytest.mark.asyncio
async def test_realself_single_call_reads_contents():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["query"] == "rhinoplasty"
        return httpx.Response(
            200,
            json={
                "contents": [
                    {"id": 1, "title": "Dr. Rae Kim", "specialty": "Plastic Surgeon", "uri": "/dr/rae-kim"},
                    {"id": 2, "title": "", "specialty": "Plastic Surgeon", "uri": "/dr/blank"},
                ]
            },
        )

    async with _client(handler) as client:
        outcome = await collect(RealSelfAdapter(client).search_feed("rhinoplasty"), sleep=no_sleep)

    assert outcome.pages == 1
    assert [record.name for record in outcome.records] == ["Dr. Rae Kim"]


def _iwgc_entity(path: str, reviews: int = 5) -> str:
    star = '<img src="/img/icon-star-yellow-full.png">'
    return f"""
    <div class="row entity pale-green clearfix">
      <div class="doc-text"><h5><a href="/doctor/{path}">Dr {path}</a></h5></div>
      <div class="specialties"><span class="green">Cardiology</span></div>
      <div class="rating">{star * 4} {reviews} reviews</div>
    </div>
    """


@pytest.mark.asyncio
async def test_iwgc_search_follows_show_all_links_and_deduplicates():
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/search":
            body = (
                _iwgc_entity("a")
                + _iwgc_entity("b")
                + '<a class="show-all-btn-large" href="/search/show-all?type=consultant">All</a>'
            )
        else:
            body = _iwgc_entity("b") + _iwgc_entity("c") + _iwgc_entity("d", reviews=1)
        return httpx.Response(200, text=f"<html><body>{body}</body></html>")

    async with _client(handler) as client:
        outcome = await collect(IWGCAdapter(client).search_feed("smith"), sleep=no_sleep)

    assert paths == ["/search", "/search/show-all"]
    assert outcome.stop_reason is StopReason.EXHAUSTED
    assert [record.name for record in outcome.records] == ["Dr a", "Dr b", "Dr c"]


@pytest.mark.asyncio
async def test_iwgc_show_all_failure_keeps_search_page_results():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/search":
            body = _iwgc_entity("a") + '<a class="show-all-btn-large" href="/search/show-all">All</a>'
            return httpx.Response(200, text=body)
        return httpx.Response(503, text="busy")

    async with _client(handler) as client:
        outcome = await collect(IWGCAdapter(client).search_feed("smith"), sleep=no_sleep)

    assert outcome.stop_reason is StopReason.FAILED
    assert isinstance(outcome.error, SourceUnavailable)
    assert [record.name for record in outcome.records] == ["Dr a"]


@pytest.mark.asyncio
async def test_iwgc_reviews_follow_next_link():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/doctor/jane-smith"
        page = request.url.params["page"]
        next_link = '<a rel="next" href="?page=2">Next</a>' if page == "1" else ""
        body = f"""
        <span class="review-count">2 reviews</span>
        <div class="review">
          <img src="/img/icon-star-yellow-full.png"><img src="/img/icon-star-yellow-full.png">
          <p class="review-text">Review on page {page}</p>
          <span class="review-date">03/02/2021</span>
        </div>
        {next_link}
        """
        return httpx.Response(200, text=body)

    async with _client(handler) as client:
        outcome = await collect(IWGCAdapter(client).review_feed("doctor/jane-smith"), sleep=no_sleep)

    assert outcome.stop_reason is StopReason.TOTAL_REACHED
    assert [review.comment_text for review in outcome.records] == ["Review on page 1", "Review on page 2"]
    assert outcome.records[0].rating == 2


@pytest.mark.asyncio
async def test_fetch_maps_http_errors_to_source_unavailable():
    def status_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    def network_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async with _client(status_handler) as client:
        with pytest.raises(SourceUnavailable) as excinfo:
            await fetcher.fetch("rms", "https://www.ratemds.com/best-doctors/", http_client=client)
    assert "HTTP 500" in excinfo.value.message

    async with _client(network_handler) as client:
        with pytest.raises(SourceUnavailable):
            await fetcher.fetch("rms", "https://www.ratemds.com/best-doctors/", http_client=client)


@pytest.mark.asyncio
async def test_fetch_json_rejects_non_object_bodies():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    async with _client(handler) as client:
        with pytest.raises(SourceMalformed):
            await fetcher.fetch_json("rs", "https://search.realself.com/site_search", http_client=client)


def test_default_registry_orders_sources_by_priority():
    registry = build_default_registry()

    assert [entry.identifier for entry in registry] == ["rms", "rs", "iwgc"]
    assert registry.get("rs").adapter.supports("reviews") is False
    assert registry.get("unknown") is None


@pytest.mark.asyncio
async def test_iwgc_search_walks_past_an_empty_show_all_page():
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.path == "/search":
            body = (
                _iwgc_entity("a")
                + '<a class="show-all-btn-large" href="/search/show-all?type=gp">GPs</a>'
                + '<a class="show-all-btn-large" href="/search/show-all?type=consultant">Consultants</a>'
            )
        elif request.url.params["type"] == "gp":
            body = "<p>No results</p>"
        else:
            body = _iwgc_entity("c")
        return httpx.Response(200, text=body)

    async with _client(handler) as client:
        outcome = await collect(IWGCAdapter(client).search_feed("smith"), sleep=no_sleep)

    assert len(requested) == 3
    assert outcome.stop_reason is StopReason.EXHAUSTED
    assert [record.name for record in outcome.records] == ["Dr a", "Dr c"]
