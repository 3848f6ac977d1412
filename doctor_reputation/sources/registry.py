from __future__ import annotations

from dataclasses import dataclass

import httpx

from doctor_reputation.config import settings
from doctor_reputation.sources.base import SourceAdapter
from doctor_reputation.sources.iwgc import IWGCAdapter
from doctor_reputation.sources.ratemds import RateMDsAdapter
from doctor_reputation.sources.realself import RealSelfAdapter


@dataclass(frozen=True)
class SourceEntry:
    identifier: str
    name: str
    priority: int
    active: bool
    adapter: SourceAdapter


class SourceRegistry:
    """Sources ordered by priority. Read-only while requests are served."""

    def __init__(self, entries: list[SourceEntry]):
        self._entries = sorted(entries, key=lambda entry: entry.priority)

    def __iter__(self):
        return iter(self._entries)

    def all(self) -> list[SourceEntry]:
        return list(self._entries)

    def active(self) -> list[SourceEntry]:
        return [entry for entry in self._entries if entry.active]

    def get(self, identifier: str) -> SourceEntry | None:
        for entry in self._entries:
            if entry.identifier == identifier:
                return entry
        return None


def build_default_registry(http_client: httpx.AsyncClient | None = None) -> SourceRegistry:
    adapters: list[tuple[SourceAdapter, bool]] = [
        (RateMDsAdapter(http_client), settings.source_rms_active),
        (RealSelfAdapter(http_client), settings.source_rs_active),
        (IWGCAdapter(http_client), settings.source_iwgc_active),
    ]
    return SourceRegistry(
        [
            SourceEntry(
                identifier=adapter.source_id,
                name=adapter.name,
                priority=index + 1,
                active=active,
                adapter=adapter,
            )
            for index, (adapter, active) in enumerate(adapters)
        ]
    )
