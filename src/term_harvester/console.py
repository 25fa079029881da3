"""Interactive search session: local lookups first, online queries on a double submit."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

from .client import OutcomeKind, PollingClient, PollOutcome
from .index import ResultStore
from .models import Term

MESSAGE_SEARCHING = "Searching..."
MESSAGE_NO_RESULTS = "No results found, press ENTER twice to search online."
MESSAGE_PRIMED = "Press ENTER again to do an online search, this DOES count to the query limit!"
MESSAGE_QUERYING = "Querying server, this may take a few seconds..."


class Cancellable(Protocol):
    def cancel(self) -> None:
        """Stop a scheduled callback from firing."""


TimerFactory = Callable[[float, Callable[[], None]], Cancellable]


def thread_timer(delay: float, callback: Callable[[], None]) -> Cancellable:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def render_term(term: Term) -> str:
    return f"Term:\n{term.name}\n\nDefinition:\n{term.value}"


class SearchConsole:
    """Input session over a ResultStore and a PollingClient.

    Every keystroke schedules a debounced local search and disarms the online
    gate. A submit arms the gate; a second consecutive submit runs the online
    query with input disabled until it ends, whatever the outcome.

    Debounced searches run on the timer's thread; store reads and rebuilds
    share one lock.
    """

    def __init__(
        self,
        *,
        client: PollingClient,
        store: ResultStore,
        debounce: float,
        echo: Callable[[str], None] = print,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._client = client
        self._store = store
        self._debounce = debounce
        self._echo = echo
        self._timer_factory = timer_factory
        self._pending: Cancellable | None = None
        self._store_lock = threading.RLock()
        self.text = ""
        self.primed = False
        self.enabled = True
        self.help_line = ""
        self.matches: list[Term] = []

    def _set_help(self, message: str) -> None:
        self.help_line = message
        self._echo(message)

    def keystroke(self, text: str, *, forced: bool = False) -> None:
        if not self.enabled:
            return
        self.text = text
        self.primed = False
        self.search(forced=forced)

    def search(self, forced: bool = False) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if forced:
            self._run_search()
            return
        self._set_help(MESSAGE_SEARCHING)
        self._pending = self._timer_factory(self._debounce, self._run_search)

    def _run_search(self) -> None:
        self._pending = None
        with self._store_lock:
            self.matches = self._store.search(self.text)
        if self.matches:
            self._echo("\n\n\n".join(render_term(term) for term in self.matches))
            self._set_help(f"Done! Found {len(self.matches)} results.")
        else:
            self._set_help(MESSAGE_NO_RESULTS)

    def submit(self) -> PollOutcome | None:
        """Arm the online gate, or fire the online query when already armed."""
        if not self.enabled or not self.text.strip():
            return None
        if not self.primed:
            self.primed = True
            self._set_help(MESSAGE_PRIMED)
            return None

        self.primed = False
        self._set_help(MESSAGE_QUERYING)
        self.enabled = False
        try:
            with self._store_lock:
                outcome = self._client.run(self.text)
        finally:
            self.enabled = True

        self._set_help(outcome.message)
        if outcome.kind is OutcomeKind.COMPLETED:
            for result_id in outcome.new_sources:
                self._echo(f"Added {self.describe_source(result_id)}")
            self.search(forced=True)
        return outcome

    def describe_source(self, result_id: str) -> str:
        with self._store_lock:
            source = self._store.get(result_id)
        if source is None:
            return f"[{result_id}] (removed)"
        return f"[{result_id}] {source.title} - {source.url} ({len(source.data)} Terms)"

    def sources(self) -> list[str]:
        with self._store_lock:
            result_ids = list(self._store)
        return [self.describe_source(result_id) for result_id in result_ids]

    def remove_source(self, result_id: str) -> bool:
        with self._store_lock:
            removed = self._store.remove(result_id)
        if removed and self.text:
            self.search(forced=True)
        return removed
