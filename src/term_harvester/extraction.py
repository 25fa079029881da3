"""Extractor registry and the built-in page extraction rules."""

from __future__ import annotations

import zlib
from collections.abc import Mapping

from bs4 import BeautifulSoup, Tag

from .models import Extractor, Source, Term

QUIZLET_ORIGIN = "quizlet.com"
ICONS = {
    QUIZLET_ORIGIN: "https://quizlet.com/a/i/brandmark/1024.893fa7e00da6339.png",
}
NO_TITLE = "No Title"


def content_hash(name: str) -> str:
    """Deterministic CRC-32 fingerprint of a term name, as lowercase hex."""
    return format(zlib.crc32(name.encode("utf-8")) & 0xFFFFFFFF, "x")


def make_uid(result_id: str, term_hash: str) -> str:
    """Namespace a term hash by the provider result it came from."""
    return f"{result_id}.{term_hash}"


def _inner_html(element: Tag | None) -> str:
    if element is None:
        return ""
    return element.decode_contents().strip()


def extract_quizlet(origin: str, url: str, body: str) -> Source | None:
    """Parse a quizlet flash-card set into terms.

    Cards missing either the word or the definition are skipped. A set that
    yields no terms is reported as None rather than an empty Source.
    """
    soup = BeautifulSoup(body or "", "html.parser")
    data: dict[str, Term] = {}
    for card in soup.select("div.SetPageTerm-content"):
        word = _inner_html(card.select_one("a.SetPageTerm-wordText > span.TermText"))
        definition = _inner_html(card.select_one("a.SetPageTerm-definitionText > span.TermText"))
        if not word or not definition:
            continue
        # Same name on one page: last card wins.
        data[content_hash(word)] = Term(name=word, value=definition)

    if not data:
        return None

    return Source(
        source=origin,
        icon=ICONS.get(origin),
        url=url,
        title=_inner_html(soup.select_one(".UIHeading--one")) or NO_TITLE,
        data=data,
    )


class ExtractorRegistry:
    """Mapping of page origin to the extractor that understands it."""

    def __init__(self, extractors: Mapping[str, Extractor] | None = None) -> None:
        self._extractors: dict[str, Extractor] = {}
        for origin, extractor in (extractors or {}).items():
            self.register(origin, extractor)

    def register(self, origin: str, extractor: Extractor) -> None:
        self._extractors[origin.lower()] = extractor

    def supports(self, origin: str) -> bool:
        return origin.lower() in self._extractors

    def origins(self) -> list[str]:
        return sorted(self._extractors)

    def extract(self, origin: str, url: str, body: str) -> Source | None:
        """Run the origin's extractor; unknown origins yield None."""
        extractor = self._extractors.get(origin.lower())
        if extractor is None:
            return None
        return extractor(origin, url, body)


def default_registry() -> ExtractorRegistry:
    """Registry with every built-in extraction rule installed."""
    registry = ExtractorRegistry()
    registry.register(QUIZLET_ORIGIN, extract_quizlet)
    return registry
