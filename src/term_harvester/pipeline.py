"""Core orchestration pipeline."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

from .aggregator import FetchAggregator
from .config import HarvestConfig, ServerConfig
from .errors import HarvesterError, ProviderError, StageTimeoutError
from .extraction import ExtractorRegistry, default_registry
from .fetchers import RequestsFetcher, make_session
from .io_json import write_job
from .jobs import Job, JobRegistry
from .models import SearchHit, SearchProvider
from .search_backends import GoogleCustomSearchProvider


class JobPipeline:
    """Runs started jobs on a worker pool: search, fan out, then complete.

    Every failure inside a run is turned into ``Job.fail``; nothing escapes the
    worker thread.
    """

    def __init__(
        self,
        *,
        provider: SearchProvider,
        aggregator: FetchAggregator,
        provider_timeout: float,
        logger: logging.Logger,
        max_workers: int | None = None,
    ) -> None:
        self._provider = provider
        self._aggregator = aggregator
        self._provider_timeout = provider_timeout
        self._logger = logger
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="job")

    def submit(self, job: Job) -> None:
        self._executor.submit(self.run, job)

    def run(self, job: Job) -> None:
        try:
            hits = self.search(job.query)
            job.process()
            self._logger.info("Job %s processing %d pages", job.id, len(hits))
            sources = self._aggregator.gather([hit.url for hit in hits])
            job.complete([hit.result_id for hit in hits], sources)
        except Exception as exc:
            job.fail(exc)

    def search(self, query: str) -> list[SearchHit]:
        """Call the provider under the provider deadline."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="provider")
        future = executor.submit(self._provider.search, query)
        try:
            return future.result(timeout=self._provider_timeout)
        except FuturesTimeoutError as exc:
            raise StageTimeoutError(
                f"Search provider gave no answer within {self._provider_timeout:g}s"
            ) from exc
        except HarvesterError:
            raise
        except Exception as exc:
            raise ProviderError(f"Search provider failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def build_pipeline(
    config: ServerConfig,
    *,
    logger: logging.Logger,
    extractors: ExtractorRegistry | None = None,
    show_progress: bool = False,
) -> JobPipeline:
    """Wire the concrete provider, fetcher and aggregator for a config."""
    session = make_session(config.user_agent, pool_size=config.max_results_per_query)
    provider = GoogleCustomSearchProvider(
        session,
        engine_id=config.search_engine_id,
        api_key=config.search_api_key,
        timeout=config.request_timeout,
        num=config.max_results_per_query,
        logger=logger,
    )
    fetcher = RequestsFetcher(session=session, timeout=config.request_timeout, logger=logger)
    aggregator = FetchAggregator(
        fetcher=fetcher,
        registry=extractors or default_registry(),
        deadline=config.fetch_timeout,
        join_policy=config.join_policy,
        show_progress=show_progress,
        logger=logger,
    )
    return JobPipeline(
        provider=provider,
        aggregator=aggregator,
        provider_timeout=config.provider_timeout,
        logger=logger,
    )


def run_harvest(
    config: HarvestConfig,
    *,
    logger: logging.Logger,
    pipeline: JobPipeline | None = None,
) -> Job:
    """Run one job in-process, wait for it, and optionally write it as JSON."""
    if pipeline is None:
        pipeline = build_pipeline(config.server, logger=logger, show_progress=config.show_progress)
    job = JobRegistry(logger=logger).create(config.query)
    try:
        job.start(pipeline)
        job.wait()
    finally:
        pipeline.shutdown()
    if config.output:
        write_job(config.output, job.to_dict())
    return job
