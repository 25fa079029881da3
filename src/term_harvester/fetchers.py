"""HTTP page fetcher."""

from __future__ import annotations

import logging

from requests import Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException

from .errors import FetchError
from .validation import MAX_PROVIDER_PAGE_SIZE, is_supported_url


def make_session(user_agent: str, *, pool_size: int = MAX_PROVIDER_PAGE_SIZE) -> Session:
    """Create a requests session with a pool wide enough for one fan-out.

    Adapters are mounted with zero retries: a failed page fails its job.
    """
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    adapter = HTTPAdapter(max_retries=0, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class RequestsFetcher:
    """Requests-based fetcher that raises FetchError on any failure."""

    def __init__(
        self,
        *,
        session: Session,
        timeout: float,
        logger: logging.Logger,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._logger = logger

    def fetch(self, url: str) -> str:
        if not is_supported_url(url):
            raise FetchError(f"Unsupported URL: {url}")
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except RequestException as exc:
            self._logger.debug("Fetch failed for %s: %s", url, exc)
            raise FetchError(f"Fetching {url} failed: {exc}") from exc
        self._logger.debug("Fetched %s (%d chars)", url, len(response.text))
        return str(response.text)
