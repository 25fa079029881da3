"""Protocols and lightweight model types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class JobStatus(str, Enum):
    """Lifecycle states of a job, in the only order they may be visited."""

    PENDING = "PENDING"
    STARTED = "STARTED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERRORED = "ERRORED"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERRORED)


class JoinPolicy(str, Enum):
    """How a fan-out treats a failed page."""

    ALL_OR_NOTHING = "all_or_nothing"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class SearchHit:
    """One provider result: its stable identifier and the page it points to."""

    result_id: str
    url: str


@dataclass(frozen=True)
class Term:
    """A word and its definition harvested from a page."""

    name: str
    value: str
    uid: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value, "uid": self.uid}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Term:
        return cls(
            name=str(payload.get("name", "")),
            value=str(payload.get("value", "")),
            uid=str(payload.get("uid", "")),
        )


@dataclass(frozen=True)
class Source:
    """One fetched page's contribution, keyed by term content hash."""

    source: str
    icon: str | None
    url: str
    title: str
    data: dict[str, Term] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "icon": self.icon,
            "url": self.url,
            "title": self.title,
            "data": {key: term.to_dict() for key, term in self.data.items()},
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Source:
        raw_data = payload.get("data") or {}
        return cls(
            source=str(payload.get("source", "")),
            icon=payload.get("icon"),
            url=str(payload.get("url", "")),
            title=str(payload.get("title", "")),
            data={str(key): Term.from_dict(item) for key, item in raw_data.items()},
        )


class SearchProvider(Protocol):
    """Contract for search providers."""

    def search(self, query: str) -> list[SearchHit]:
        """Return result summaries for a query or raise ProviderError."""


class Fetcher(Protocol):
    """Contract for page fetchers."""

    def fetch(self, url: str) -> str:
        """Return the page body or raise FetchError."""


class Extractor(Protocol):
    """Contract for per-origin extraction rules.

    Implementations must be pure functions of their arguments: the fan-out
    calls them concurrently without locking. Missing markup is treated as an
    absent term, never as an error.
    """

    def __call__(self, origin: str, url: str, body: str) -> Source | None:
        """Return the page's Source, or None when it holds no terms."""
