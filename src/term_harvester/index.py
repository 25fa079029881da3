"""Client-side record store and its full-text index."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from whoosh.analysis import StemmingAnalyzer
from whoosh.fields import ID, TEXT, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.index import Index
from whoosh.qparser import FuzzyTermPlugin, MultifieldParser, OrGroup

from .extraction import make_uid
from .models import Source, Term

SEARCH_FIELDS = ["name", "value"]


def _schema() -> Schema:
    return Schema(
        uid=ID(stored=True, unique=True),
        name=TEXT(analyzer=StemmingAnalyzer()),
        value=TEXT(analyzer=StemmingAnalyzer()),
    )


class SearchIndex:
    """In-memory inverted index over term names and definitions.

    The index is rebuilt from scratch on every change; documents go in sorted
    by result id and content hash so equal-score hits always rank the same.
    """

    def __init__(self) -> None:
        self._ix: Index = RamStorage().create_index(_schema())
        self.rebuilds = 0

    def rebuild(self, sources: Mapping[str, Source]) -> None:
        ix = RamStorage().create_index(_schema())
        writer = ix.writer()
        for result_id in sorted(sources):
            data = sources[result_id].data
            for term_hash in sorted(data):
                term = data[term_hash]
                writer.add_document(
                    uid=term.uid or make_uid(result_id, term_hash),
                    name=term.name,
                    value=term.value,
                )
        writer.commit()
        self._ix = ix
        self.rebuilds += 1

    def doc_count(self) -> int:
        return self._ix.doc_count()

    def query(self, text: str, limit: int | None = None) -> list[str]:
        """Return matching term uids, best match first."""
        if not text or not text.strip():
            return []
        parser = MultifieldParser(SEARCH_FIELDS, schema=self._ix.schema, group=OrGroup)
        parser.add_plugin(FuzzyTermPlugin())
        parsed = parser.parse(text)
        with self._ix.searcher() as searcher:
            return [hit["uid"] for hit in searcher.search(parsed, limit=limit)]


class ResultStore:
    """Accumulated sources keyed by result id, with an index kept in step."""

    def __init__(self, index: SearchIndex | None = None) -> None:
        self._sources: dict[str, Source] = {}
        self.index = index or SearchIndex()

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, result_id: object) -> bool:
        return result_id in self._sources

    def __iter__(self) -> Iterator[str]:
        return iter(self._sources)

    def get(self, result_id: str) -> Source | None:
        return self._sources.get(result_id)

    def merge(self, results: Mapping[str, Source]) -> list[str]:
        """Add or replace sources, rebuild the index, and return the new ids."""
        new_ids = [result_id for result_id in results if result_id not in self._sources]
        self._sources.update(results)
        self.index.rebuild(self._sources)
        return new_ids

    def remove(self, result_id: str) -> bool:
        if result_id not in self._sources:
            return False
        del self._sources[result_id]
        self.index.rebuild(self._sources)
        return True

    def term(self, uid: str) -> Term | None:
        result_id, _, term_hash = uid.rpartition(".")
        source = self._sources.get(result_id)
        if source is None:
            return None
        return source.data.get(term_hash)

    def search(self, text: str, limit: int | None = None) -> list[Term]:
        terms = (self.term(uid) for uid in self.index.query(text, limit=limit))
        return [term for term in terms if term is not None]
