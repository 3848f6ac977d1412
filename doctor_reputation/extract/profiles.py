"""Profile extraction: raw upstream items to validated, deduplicated ProfileRecords."""
from __future__ import annotations

import re
from typing import Any, Iterable
from urllib.parse import urljoin

from doctor_reputation.models.records import Location, ProfileRecord
from doctor_reputation.tools.html_document import HtmlDocument, normalize_text

MAX_RATING = 5.0

# IWantGreatCare search markup
IWGC_ENTITY = ".row.entity.pale-green.clearfix"
IWGC_NAME_LINK = ".doc-text h5 a"
IWGC_SPECIALTIES = ".specialties .green"
IWGC_HOSPITALS = ".locations a.green"
IWGC_RATING_BOX = ".rating"
IWGC_FULL_STAR = 'img[src*="icon-star-yellow-full"]'
IWGC_IMAGE = ".doc-image img"
IWGC_SHOW_ALL = "a.show-all-btn-large"


def parse_rating(value: Any) -> float:
    """Continuous average on the 0..5 scale; anything unparseable is 0."""
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return 0.0
    if rating != rating:  # NaN
        return 0.0
    return round(min(max(rating, 0.0), MAX_RATING), 2)


def parse_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    match = re.search(r"\d+", str(value or "").replace(",", ""))
    return int(match.group()) if match else 0


def split_specialties(values: Iterable[str]) -> list[str]:
    specialties: list[str] = []
    for value in values:
        for part in str(value or "").split(","):
            cleaned = normalize_text(part)
            if cleaned and cleaned not in specialties:
                specialties.append(cleaned)
    return specialties


def admit_profile(record: ProfileRecord, seen_keys: set[str], min_review_count: int) -> bool:
    """Accept a candidate at most once per request.

    The identity key joins ``seen_keys`` only when the record is accepted.
    """
    key = record.identity_key
    if not key or key in seen_keys:
        return False
    if not record.name.strip() or not record.specialties:
        return False
    if record.review_count < max(min_review_count, 0):
        return False
    seen_keys.add(key)
    return True


def admit_profiles(
    candidates: Iterable[ProfileRecord | None],
    seen_keys: set[str],
    min_review_count: int,
) -> list[ProfileRecord]:
    return [
        record
        for record in candidates
        if record is not None and admit_profile(record, seen_keys, min_review_count)
    ]


def _text(value: Any) -> str:
    return normalize_text(value) if isinstance(value, str) else ""


def ratemds_profile(item: Any, *, source_id: str, base_url: str) -> ProfileRecord | None:
    if not isinstance(item, dict):
        return None
    rating = item.get("rating") if isinstance(item.get("rating"), dict) else {}
    location = item.get("location") if isinstance(item.get("location"), dict) else {}
    city = location.get("city") if isinstance(location.get("city"), dict) else {}
    images = item.get("images") if isinstance(item.get("images"), dict) else {}
    url = _text(item.get("url"))

    return ProfileRecord(
        source_id=source_id,
        external_id=str(item.get("id") or ""),
        name=_text(item.get("full_name")),
        specialties=split_specialties([_text(item.get("specialty_name"))]),
        location=Location(
            city=_text(city.get("name")) or "Unknown",
            state=_text(city.get("province_name")) or "Unknown",
            country=_text(city.get("country_name")) or None,
        ),
        rating=parse_rating(rating.get("average")),
        review_count=parse_count(rating.get("count")),
        image_url=_text(images.get("100x100")) or None,
        profile_url=urljoin(base_url, url) if url else "",
        slug=_text(item.get("slug")) or None,
    )


def realself_profile(item: Any, *, source_id: str, site_url: str) -> ProfileRecord | None:
    if not isinstance(item, dict):
        return None
    specialty = item.get("specialty")
    specialty_values = specialty if isinstance(specialty, list) else [specialty]
    uri = _text(item.get("uri"))
    image_path = _text(item.get("image_path"))

    return ProfileRecord(
        source_id=source_id,
        external_id=str(item.get("id") or ""),
        name=_text(item.get("title")),
        specialties=split_specialties(v for v in specialty_values if isinstance(v, str)),
        location=Location(city=_text(item.get("city")), state=_text(item.get("state"))),
        rating=parse_rating(item.get("rating")),
        review_count=parse_count(item.get("review_count")),
        image_url=urljoin(site_url, image_path) if image_path else None,
        profile_url=urljoin(site_url, uri) if uri else "",
    )


def iwgc_profile(entity: HtmlDocument, *, source_id: str) -> ProfileRecord:
    href = entity.attr(IWGC_NAME_LINK, "href")
    rating_box = entity.select_one(IWGC_RATING_BOX)
    stars = rating_box.count(IWGC_FULL_STAR) if rating_box else 0
    review_count = parse_count(rating_box.own_text()) if rating_box else 0
    hospitals = [node.text() for node in entity.select(IWGC_HOSPITALS)]
    image = entity.attr(IWGC_IMAGE, "src")

    return ProfileRecord(
        source_id=source_id,
        external_id=href or "",
        name=entity.text(IWGC_NAME_LINK),
        specialties=split_specialties(node.text() for node in entity.select(IWGC_SPECIALTIES)),
        location=Location(),
        rating=float(min(stars, int(MAX_RATING))),
        review_count=review_count,
        image_url=entity.absolute_url(image) if image else None,
        profile_url=entity.absolute_url(href) if href else "",
        slug=href.strip("/") if href else None,
        hospital=", ".join(h for h in hospitals if h) or None,
    )


def iwgc_profiles(
    document: HtmlDocument,
    seen_keys: set[str],
    *,
    source_id: str,
    min_review_count: int,
) -> list[ProfileRecord]:
    """Extract doctor entities from an IWGC search or "show all" page."""
    candidates = (iwgc_profile(entity, source_id=source_id) for entity in document.select(IWGC_ENTITY))
    return admit_profiles(candidates, seen_keys, min_review_count)


def iwgc_show_all_links(document: HtmlDocument) -> list[str]:
    links: list[str] = []
    for href in document.attrs(IWGC_SHOW_ALL, "href"):
        url = document.absolute_url(href)
        if url not in links:
            links.append(url)
    return links
