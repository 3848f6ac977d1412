from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag


def normalize_text(text: str) -> str:
    """Collapse whitespace (including non-breaking spaces) and trim."""
    text = text.replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


class HtmlDocument:
    """Selector-based access to a parsed HTML page or a fragment of one."""

    def __init__(self, root: BeautifulSoup | Tag, base_url: str = ""):
        self._root = root
        self.base_url = base_url

    @classmethod
    def parse(cls, body: str, base_url: str = "") -> "HtmlDocument":
        return cls(BeautifulSoup(body, "html.parser"), base_url=base_url)

    def select(self, selector: str) -> list["HtmlDocument"]:
        return [HtmlDocument(node, self.base_url) for node in self._root.select(selector)]

    def select_one(self, selector: str) -> "HtmlDocument | None":
        node = self._root.select_one(selector)
        return HtmlDocument(node, self.base_url) if node is not None else None

    def count(self, selector: str) -> int:
        return len(self._root.select(selector))

    def text(self, selector: str | None = None) -> str:
        node = self._root if selector is None else self._root.select_one(selector)
        if node is None:
            return ""
        return normalize_text(node.get_text(" "))

    def own_text(self, selector: str | None = None) -> str:
        """Text of the direct child text nodes only, ignoring nested elements."""
        node = self._root if selector is None else self._root.select_one(selector)
        if node is None:
            return ""
        parts = [str(child) for child in node.children if isinstance(child, NavigableString)]
        return normalize_text(" ".join(parts))

    def attr(self, selector: str | None, name: str) -> str | None:
        node = self._root if selector is None else self._root.select_one(selector)
        if node is None:
            return None
        value = node.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip() if isinstance(value, str) and value.strip() else None

    def attrs(self, selector: str, name: str) -> list[str]:
        values: list[str] = []
        for node in self._root.select(selector):
            value = node.get(name)
            if isinstance(value, str) and value.strip():
                values.append(value.strip())
        return values

    def absolute_url(self, href: str) -> str:
        return urljoin(self.base_url, href)
