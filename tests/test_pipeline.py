import json
import logging
import threading

from term_harvester.aggregator import FetchAggregator
from term_harvester.config import HarvestConfig, ServerConfig
from term_harvester.errors import FetchError, ProviderError
from term_harvester.extraction import QUIZLET_ORIGIN, default_registry
from term_harvester.jobs import JobRegistry
from term_harvester.models import JobStatus, JoinPolicy, SearchHit
from term_harvester.pipeline import JobPipeline, build_pipeline, run_harvest
from term_harvester.search_backends import GoogleCustomSearchProvider

LOGGER = logging.getLogger("test")


def quizlet_page(*names: str) -> str:
    cards = "".join(
        '<div class="SetPageTerm-content">'
        f'<a class="SetPageTerm-wordText"><span class="TermText">{name}</span></a>'
        f'<a class="SetPageTerm-definitionText"><span class="TermText">about {name}</span></a>'
        "</div>"
        for name in names
    )
    return f'<h1 class="UIHeading--one">Set</h1>{cards}'


class DummySearchProvider:
    def __init__(self, hits: list[SearchHit] | None = None, error: Exception | None = None) -> None:
        self.hits = hits or []
        self.error = error
        self.queries: list[str] = []
        self.block: threading.Event | None = None

    def search(self, query: str) -> list[SearchHit]:
        self.queries.append(query)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return self.hits


class DummyFetcher:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages

    def fetch(self, url: str) -> str:
        if url not in self.pages:
            raise FetchError(f"connection reset for {url}")
        return self.pages[url]


def _pipeline(
    provider: DummySearchProvider,
    fetcher: DummyFetcher,
    *,
    provider_timeout: float = 5.0,
    policy: JoinPolicy = JoinPolicy.ALL_OR_NOTHING,
) -> JobPipeline:
    aggregator = FetchAggregator(
        fetcher=fetcher,
        registry=default_registry(),
        deadline=5.0,
        join_policy=policy,
        logger=LOGGER,
    )
    return JobPipeline(
        provider=provider,
        aggregator=aggregator,
        provider_timeout=provider_timeout,
        logger=LOGGER,
    )


def _run(pipeline: JobPipeline, query: str = "mitochondria"):
    job = JobRegistry(logger=LOGGER).create(query)
    job.start(pipeline)
    assert job.wait(5)
    pipeline.shutdown()
    return job


def test_scenario_a_page_without_terms_is_filtered() -> None:
    hits = [
        SearchHit("r1", "https://quizlet.com/1/"),
        SearchHit("r2", "https://quizlet.com/2/"),
    ]
    fetcher = DummyFetcher(
        {
            hits[0].url: quizlet_page(
                "Matrix", "Cristae", "ATP", "Outer membrane", "Inner membrane"
            ),
            hits[1].url: "<html><body>nothing here</body></html>",
        }
    )
    provider = DummySearchProvider(hits)
    job = _run(_pipeline(provider, fetcher))

    assert provider.queries == ["mitochondria"]
    assert job.status is JobStatus.COMPLETED
    assert job.results is not None
    assert list(job.results) == ["r1"]
    assert len(job.results["r1"].data) == 5
    assert job.results["r1"].source == QUIZLET_ORIGIN


def test_scenario_b_provider_failure_errors_job() -> None:
    provider = DummySearchProvider(error=ProviderError("quota exceeded"))
    job = _run(_pipeline(provider, DummyFetcher({})))

    assert job.status is JobStatus.ERRORED
    assert job.error == "ProviderError: quota exceeded"
    assert job.results is None


def test_scenario_c_one_failed_fetch_errors_whole_job() -> None:
    hits = [
        SearchHit("r1", "https://quizlet.com/1/"),
        SearchHit("r2", "https://quizlet.com/2/"),
    ]
    fetcher = DummyFetcher({hits[0].url: quizlet_page("Cell")})
    job = _run(_pipeline(DummySearchProvider(hits), fetcher))

    assert job.status is JobStatus.ERRORED
    assert "FetchError" in (job.error or "")
    assert job.results is None


def test_best_effort_policy_keeps_surviving_pages() -> None:
    hits = [
        SearchHit("r1", "https://quizlet.com/1/"),
        SearchHit("r2", "https://quizlet.com/2/"),
    ]
    fetcher = DummyFetcher({hits[0].url: quizlet_page("Cell")})
    job = _run(_pipeline(DummySearchProvider(hits), fetcher, policy=JoinPolicy.BEST_EFFORT))

    assert job.status is JobStatus.COMPLETED
    assert list(job.results or {}) == ["r1"]


def test_provider_deadline_errors_job() -> None:
    provider = DummySearchProvider()
    provider.block = threading.Event()
    try:
        job = _run(_pipeline(provider, DummyFetcher({}), provider_timeout=0.2))
    finally:
        provider.block.set()

    assert job.status is JobStatus.ERRORED
    assert (job.error or "").startswith("StageTimeoutError")


def test_unexpected_provider_exception_is_reported_as_provider_error() -> None:
    provider = DummySearchProvider(error=KeyError("items"))
    job = _run(_pipeline(provider, DummyFetcher({})))
    assert (job.error or "").startswith("ProviderError")


def test_no_hits_completes_with_empty_results() -> None:
    job = _run(_pipeline(DummySearchProvider([]), DummyFetcher({})))
    assert job.status is JobStatus.COMPLETED
    assert job.results == {}


def test_build_pipeline_wires_google_provider() -> None:
    config = ServerConfig(search_engine_id="cx", search_api_key="key", max_results_per_query=5)
    pipeline = build_pipeline(config, logger=LOGGER)
    try:
        assert isinstance(pipeline._provider, GoogleCustomSearchProvider)
        assert pipeline._aggregator.join_policy is JoinPolicy.ALL_OR_NOTHING
    finally:
        pipeline.shutdown()


def test_run_harvest_writes_job_json(tmp_path) -> None:
    hits = [SearchHit("r1", "https://quizlet.com/1/")]
    fetcher = DummyFetcher({hits[0].url: quizlet_page("Cell")})
    pipeline = _pipeline(DummySearchProvider(hits), fetcher)
    output = tmp_path / "job.json"
    config = HarvestConfig(
        query="cells", server=ServerConfig(), output=str(output), show_progress=False
    )

    job = run_harvest(config, logger=LOGGER, pipeline=pipeline)

    assert job.status is JobStatus.COMPLETED
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["query"] == "cells"
    assert payload["status"] == "COMPLETED"
    assert list(payload["results"]) == ["r1"]
