"""Concurrent fetch + extract fan-out with an explicit join policy."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError

from tqdm import tqdm

from .errors import ExtractionError, FetchError, HarvesterError, StageTimeoutError
from .extraction import ExtractorRegistry
from .models import Fetcher, JoinPolicy, Source
from .validation import origin_from_url


class FetchAggregator:
    """Fetch every URL at once and extract each page with its origin's rule.

    The returned list lines up with the input URLs. Positions with no
    extractable content are None. Under ALL_OR_NOTHING the first failed page
    (or an exceeded deadline) fails the whole gather; under BEST_EFFORT failed
    or unfinished pages become None.
    """

    def __init__(
        self,
        *,
        fetcher: Fetcher,
        registry: ExtractorRegistry,
        deadline: float,
        logger: logging.Logger,
        join_policy: JoinPolicy = JoinPolicy.ALL_OR_NOTHING,
        show_progress: bool = False,
    ) -> None:
        self._fetcher = fetcher
        self._registry = registry
        self._deadline = deadline
        self._logger = logger
        self._join_policy = join_policy
        self._show_progress = show_progress

    @property
    def join_policy(self) -> JoinPolicy:
        return self._join_policy

    def fetch_and_extract(self, url: str) -> Source | None:
        """Fetch one page and run its extractor."""
        try:
            body = self._fetcher.fetch(url)
        except HarvesterError:
            raise
        except Exception as exc:
            raise FetchError(f"Fetching {url} failed: {exc}") from exc
        origin = origin_from_url(url)
        try:
            return self._registry.extract(origin, url, body)
        except Exception as exc:
            raise ExtractionError(f"Extractor for {origin} failed on {url}: {exc}") from exc

    def gather(self, urls: list[str]) -> list[Source | None]:
        if not urls:
            return []

        results: list[Source | None] = [None] * len(urls)
        executor = ThreadPoolExecutor(max_workers=len(urls), thread_name_prefix="fetch")
        futures: dict[Future[Source | None], int] = {
            executor.submit(self.fetch_and_extract, url): index for index, url in enumerate(urls)
        }
        try:
            iterator = as_completed(futures, timeout=self._deadline)
            if self._show_progress:
                iterator = tqdm(iterator, total=len(futures), desc="fetching pages")
            for future in iterator:
                index = futures[future]
                try:
                    results[index] = future.result()
                except HarvesterError as exc:
                    if self._join_policy is JoinPolicy.ALL_OR_NOTHING:
                        raise
                    self._logger.warning("Dropping %s: %s", urls[index], exc)
        except FuturesTimeoutError as exc:
            pending = sum(1 for future in futures if not future.done())
            if self._join_policy is JoinPolicy.ALL_OR_NOTHING:
                raise StageTimeoutError(
                    f"{pending} of {len(urls)} pages unfinished after {self._deadline:g}s"
                ) from exc
            self._logger.warning(
                "Dropping %d unfinished pages after %gs", pending, self._deadline
            )
            for future, index in futures.items():
                if future.done() and not future.cancelled() and future.exception() is None:
                    results[index] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        self._logger.debug(
            "Gathered %d pages, %d with terms",
            len(urls),
            sum(1 for item in results if item is not None),
        )
        return results
