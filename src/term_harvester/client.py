"""Polling client for the job API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from requests import Response, Session
from requests.exceptions import RequestException

from .index import ResultStore
from .models import Source

MESSAGE_TIMEOUT = "The query request to the server timed out."
MESSAGE_ERROR = "There was an error processing the query."
MESSAGE_UNKNOWN = "Unknown response from the server, check the log for details."
MESSAGE_COMPLETED = "Query completed!"


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PollOutcome:
    """How one online query ended, and what it added to the store."""

    kind: OutcomeKind
    message: str
    new_sources: tuple[str, ...] = ()
    polls: int = 0


class PollingClient:
    """Submits a query and polls its job until the server reports an end state.

    A timed-out request abandons the job; nothing is retried.
    """

    def __init__(
        self,
        *,
        session: Session,
        base_url: str,
        store: ResultStore,
        timeout: float,
        poll_interval: float,
        logger: logging.Logger,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._store = store
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._logger = logger
        self._sleep = sleep_fn

    def _get(self, path: str, headers: dict[str, str] | None = None) -> Response | None:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        try:
            return self._session.get(url, headers=headers, timeout=self._timeout)
        except RequestException as exc:
            self._logger.warning("Request to %s failed: %s", url, exc)
            return None

    def _failure(self, response: Response, polls: int = 0) -> PollOutcome:
        if response.status_code in (400, 500):
            self._logger.warning("Server answered %d: %s", response.status_code, response.text)
            return PollOutcome(OutcomeKind.ERRORED, MESSAGE_ERROR, polls=polls)
        self._logger.warning("Unknown response status %d: %s", response.status_code, response.text)
        return PollOutcome(OutcomeKind.UNKNOWN, MESSAGE_UNKNOWN, polls=polls)

    def run(self, query: str) -> PollOutcome:
        """Submit ``query`` and follow its job to the end."""
        response = self._get("/query", headers={"query": query})
        if response is None:
            return PollOutcome(OutcomeKind.TIMED_OUT, MESSAGE_TIMEOUT)
        if response.status_code != 202:
            return self._failure(response)
        return self.poll(response.text.strip())

    def poll(self, uri: str) -> PollOutcome:
        polls = 0
        while True:
            response = self._get(uri)
            if response is None:
                return PollOutcome(OutcomeKind.TIMED_OUT, MESSAGE_TIMEOUT, polls=polls)
            polls += 1

            if response.status_code == 202:
                payload = self._json(response)
                if payload is None:
                    return PollOutcome(OutcomeKind.UNKNOWN, MESSAGE_UNKNOWN, polls=polls)
                uri = str(payload.get("uri") or uri)
                self._logger.debug("Job %s is %s", payload.get("id"), payload.get("status"))
                self._sleep(self._poll_interval)
                continue

            if response.status_code == 200:
                payload = self._json(response)
                if payload is None:
                    return PollOutcome(OutcomeKind.UNKNOWN, MESSAGE_UNKNOWN, polls=polls)
                results = {
                    str(result_id): Source.from_dict(item)
                    for result_id, item in (payload.get("results") or {}).items()
                }
                new_sources = self._store.merge(results)
                return PollOutcome(
                    OutcomeKind.COMPLETED, MESSAGE_COMPLETED, tuple(new_sources), polls=polls
                )

            return self._failure(response, polls=polls)

    def _json(self, response: Response) -> dict[str, Any] | None:
        try:
            payload = response.json()
        except ValueError:
            self._logger.warning("Response was not JSON: %s", response.text)
            return None
        return payload if isinstance(payload, dict) else None
