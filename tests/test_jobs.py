import logging
import threading

import pytest

from term_harvester.errors import JobStateError, ProviderError
from term_harvester.extraction import content_hash
from term_harvester.jobs import Job, JobRegistry
from term_harvester.models import JobStatus, Source, Term

LOGGER = logging.getLogger("test")


class RecordingRunner:
    def __init__(self) -> None:
        self.jobs: list[Job] = []

    def submit(self, job: Job) -> None:
        self.jobs.append(job)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _source(*names: str) -> Source:
    return Source(
        source="quizlet.com",
        icon=None,
        url="https://quizlet.com/1/",
        title="Set",
        data={content_hash(name): Term(name=name, value=f"{name} def") for name in names},
    )


def test_registry_ids_are_unique_under_concurrent_creation() -> None:
    registry = JobRegistry(logger=LOGGER)
    ids: list[int] = []
    lock = threading.Lock()

    def create_many() -> None:
        for _ in range(200):
            job = registry.create("q")
            with lock:
                ids.append(job.id)

    threads = [threading.Thread(target=create_many) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(ids) == 1600
    assert len(set(ids)) == 1600
    assert len(registry) == 1600


def test_registry_ids_increase_and_lookup_unknown_is_none() -> None:
    registry = JobRegistry(logger=LOGGER, seed=41)
    first = registry.create("a")
    second = registry.create("b")
    assert (first.id, second.id) == (41, 42)
    assert second.uri == "/job/42"
    assert registry.get(41) is first
    assert registry.get(9999) is None


def test_start_moves_to_started_and_hands_job_to_runner() -> None:
    runner = RecordingRunner()
    job = JobRegistry(logger=LOGGER, seed=1).create("mitochondria")
    assert job.status is JobStatus.PENDING

    assert job.start(runner) == job.id
    assert job.status is JobStatus.STARTED
    assert runner.jobs == [job]


def test_status_only_moves_forward() -> None:
    job = Job(1, "q", logger=LOGGER)
    with pytest.raises(JobStateError):
        job.process()
    job.start(RecordingRunner())
    with pytest.raises(JobStateError):
        job.start(RecordingRunner())
    job.process()
    job.complete([], [])
    with pytest.raises(JobStateError):
        job.fail("late")
    assert job.status is JobStatus.COMPLETED


def test_errored_reachable_from_every_non_terminal_state() -> None:
    pending = Job(1, "q", logger=LOGGER)
    pending.fail("x")
    started = Job(2, "q", logger=LOGGER)
    started.start(RecordingRunner())
    started.fail("x")
    processing = Job(3, "q", logger=LOGGER)
    processing.start(RecordingRunner())
    processing.process()
    processing.fail(ProviderError("quota"))

    assert {job.status for job in (pending, started, processing)} == {JobStatus.ERRORED}
    assert processing.error == "ProviderError: quota"
    assert processing.wait(0) is True


def test_complete_pairs_ids_by_position_and_drops_empty_pages() -> None:
    job = Job(7, "q", logger=LOGGER)
    job.start(RecordingRunner())
    job.process()
    empty = Source(source="quizlet.com", icon=None, url="u", title="t", data={})

    job.complete(["r1", "r2", "r3", "r4"], [None, _source("Cell"), empty, _source("ATP", "ADP")])

    assert job.status is JobStatus.COMPLETED
    assert job.results is not None
    assert sorted(job.results) == ["r2", "r4"]
    assert all(source.data for source in job.results.values())
    cell = job.results["r2"].data[content_hash("Cell")]
    assert cell.uid == f"r2.{content_hash('Cell')}"
    for result_id, source in job.results.items():
        for term_hash, term in source.data.items():
            assert term.uid == f"{result_id}.{content_hash(term.name)}"
            assert term_hash == content_hash(term.name)


def test_complete_rejects_mismatched_lengths() -> None:
    job = Job(1, "q", logger=LOGGER)
    job.start(RecordingRunner())
    job.process()
    with pytest.raises(JobStateError):
        job.complete(["a"], [])
    assert job.status is JobStatus.PROCESSING


def test_to_dict_shapes() -> None:
    job = Job(5, "cells", logger=LOGGER)
    assert job.to_dict() == {"query": "cells", "id": 5, "uri": "/job/5", "status": "PENDING"}

    job.start(RecordingRunner())
    job.process()
    job.complete(["r"], [_source("Cell")])
    payload = job.to_dict()
    term_hash = content_hash("Cell")
    assert payload["status"] == "COMPLETED"
    assert payload["results"]["r"]["data"][term_hash] == {
        "name": "Cell",
        "value": "Cell def",
        "uid": f"r.{term_hash}",
    }
    assert "error" not in payload

    failed = Job(6, "cells", logger=LOGGER)
    failed.fail("boom")
    assert failed.to_dict()["error"] == "boom"
    assert "results" not in failed.to_dict()


def test_prune_drops_only_old_finished_jobs() -> None:
    clock = FakeClock()
    registry = JobRegistry(logger=LOGGER, clock=clock, seed=1)
    old = registry.create("old")
    old.fail("x")
    running = registry.create("running")
    clock.now += 60
    recent = registry.create("recent")
    recent.fail("y")

    assert registry.prune(30) == 1
    assert registry.get(old.id) is None
    assert registry.get(running.id) is running
    assert registry.get(recent.id) is recent


def test_complete_rekeys_terms_by_name_hash() -> None:
    job = Job(8, "cells", logger=LOGGER)
    job.start(RecordingRunner())
    job.process()
    source = Source(
        source="example.org",
        icon=None,
        url="https://example.org/1/",
        title="Set",
        data={"card-0": Term(name="Cell", value="Unit of life")},
    )

    job.complete(["r1"], [source])

    term_hash = content_hash("Cell")
    assert job.results is not None
    assert list(job.results["r1"].data) == [term_hash]
    assert job.results["r1"].data[term_hash].uid == f"r1.{term_hash}"
