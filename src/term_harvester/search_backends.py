"""Search provider implementations."""

from __future__ import annotations

import logging
from typing import Any

from requests import Session
from requests.exceptions import RequestException

from .errors import ProviderError
from .extraction import content_hash
from .models import SearchHit
from .validation import is_supported_url

CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


def _error_detail(payload: dict[str, Any]) -> str:
    error = payload.get("error")
    if isinstance(error, dict):
        return f"{error.get('code', '?')} {error.get('message', 'unknown error')}"
    return str(error)


class GoogleCustomSearchProvider:
    """Google Custom Search JSON API client."""

    def __init__(
        self,
        session: Session,
        *,
        engine_id: str | None,
        api_key: str | None,
        timeout: float,
        num: int,
        logger: logging.Logger,
    ) -> None:
        self._session = session
        self._engine_id = engine_id
        self._api_key = api_key
        self._timeout = timeout
        self._num = num
        self._logger = logger

    def search(self, query: str) -> list[SearchHit]:
        if not (self._engine_id and self._api_key):
            raise ProviderError(
                "Search provider is not configured: set CUSTOM_SEARCH_ENGINE_ID "
                "and CUSTOM_SEARCH_API_KEY."
            )
        try:
            response = self._session.get(
                CUSTOM_SEARCH_URL,
                params={"q": query, "cx": self._engine_id, "key": self._api_key, "num": self._num},
                timeout=self._timeout,
            )
            payload = response.json()
        except (RequestException, ValueError) as exc:
            raise ProviderError(f"Custom search request failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise ProviderError("Custom search returned a malformed payload.")
        if "error" in payload or response.status_code >= 400:
            raise ProviderError(f"Custom search error: {_error_detail(payload)}")

        hits = parse_hits(payload.get("items") or [])
        self._logger.info("Custom search for %r returned %d results", query, len(hits))
        return hits


def parse_hits(items: list[Any]) -> list[SearchHit]:
    """Turn provider items into hits, keyed by cacheId when the provider gives one."""
    hits: list[SearchHit] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        link = item.get("link")
        if not isinstance(link, str) or not is_supported_url(link):
            continue
        result_id = item.get("cacheId")
        if not isinstance(result_id, str) or not result_id:
            result_id = content_hash(link)
        if result_id in seen:
            continue
        seen.add(result_id)
        hits.append(SearchHit(result_id=result_id, url=link))
    return hits
