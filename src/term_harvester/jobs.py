"""Job state machine and the process-wide job registry."""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from threading import Event, Lock
from typing import Any, Protocol

from .errors import JobStateError
from .extraction import content_hash, make_uid
from .models import JobStatus, Source, Term

Clock = Callable[[], float]

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.STARTED, JobStatus.ERRORED}),
    JobStatus.STARTED: frozenset({JobStatus.PROCESSING, JobStatus.ERRORED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.ERRORED}),
}


class JobRunner(Protocol):
    """Anything that can drive a started job to a terminal state."""

    def submit(self, job: Job) -> None:
        """Schedule the job's pipeline without blocking."""


def describe_error(detail: BaseException | str) -> str:
    if isinstance(detail, BaseException):
        return f"{type(detail).__name__}: {detail}"
    return str(detail)


class Job:
    """One query's lifecycle from submission to COMPLETED or ERRORED.

    Only the job's own pipeline thread mutates it. ``results`` is assigned
    before the status flips to COMPLETED so readers on other threads never
    observe a completed job without results.
    """

    def __init__(
        self,
        job_id: int,
        query: str,
        *,
        logger: logging.Logger,
        clock: Clock = time.monotonic,
    ) -> None:
        self.id = job_id
        self.query = query
        self.uri = f"/job/{job_id}"
        self.status = JobStatus.PENDING
        self.results: dict[str, Source] | None = None
        self.error: str | None = None
        self.created_at = clock()
        self.finished_at: float | None = None
        self._clock = clock
        self._logger = logger
        self._done = Event()

    def __repr__(self) -> str:
        return f"Job(id={self.id}, status={self.status.value}, query={self.query!r})"

    def _check(self, target: JobStatus) -> None:
        if target not in _TRANSITIONS.get(self.status, frozenset()):
            raise JobStateError(
                f"Job {self.id} cannot move from {self.status.value} to {target.value}"
            )

    def _advance(self, target: JobStatus) -> None:
        self._check(target)
        self.status = target
        if target.terminal:
            self.finished_at = self._clock()
            self._done.set()

    def start(self, runner: JobRunner) -> int:
        """Mark the job STARTED, hand it to the runner and return its id."""
        self._advance(JobStatus.STARTED)
        runner.submit(self)
        return self.id

    def process(self) -> None:
        """Mark the fan-out as in flight."""
        self._advance(JobStatus.PROCESSING)

    def complete(self, result_ids: Sequence[str], sources: Sequence[Source | None]) -> None:
        """Stitch extracted pages to their result ids and finish the job.

        Ids and sources are paired by position before anything is dropped.
        Pages without terms are left out of ``results``. Terms are re-keyed by
        the hash of their name whatever key the extractor used.
        """
        self._check(JobStatus.COMPLETED)
        if len(result_ids) != len(sources):
            raise JobStateError(
                f"Job {self.id} got {len(sources)} sources for {len(result_ids)} results"
            )

        results: dict[str, Source] = {}
        for result_id, source in zip(result_ids, sources):
            if source is None or not source.data:
                continue
            data: dict[str, Term] = {}
            for term in source.data.values():
                term_hash = content_hash(term.name)
                data[term_hash] = replace(term, uid=make_uid(result_id, term_hash))
            results[result_id] = replace(source, data=data)

        self.results = results
        self._advance(JobStatus.COMPLETED)
        self._logger.info(
            "Job %s completed: %d sources, %d terms",
            self.id,
            len(results),
            sum(len(source.data) for source in results.values()),
        )

    def fail(self, detail: BaseException | str) -> None:
        """Record the failure and move to ERRORED."""
        self._check(JobStatus.ERRORED)
        self.error = describe_error(detail)
        self._advance(JobStatus.ERRORED)
        self._logger.error("Job %s (%r) errored: %s", self.id, self.query, self.error)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the job is terminal; False when the timeout expires first."""
        return self._done.wait(timeout)

    def to_dict(self) -> dict[str, Any]:
        status = self.status
        payload: dict[str, Any] = {
            "query": self.query,
            "id": self.id,
            "uri": self.uri,
            "status": status.value,
        }
        if status is JobStatus.COMPLETED:
            payload["results"] = {
                result_id: source.to_dict() for result_id, source in (self.results or {}).items()
            }
        elif status is JobStatus.ERRORED:
            payload["error"] = self.error
        return payload


class JobRegistry:
    """Thread-safe id -> Job table.

    Ids come from a counter seeded with the wall clock in milliseconds and
    incremented under the lock, so jobs created in the same instant never
    collide. Entries live until ``prune`` removes them.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        clock: Clock = time.monotonic,
        seed: int | None = None,
    ) -> None:
        self._logger = logger
        self._clock = clock
        self._jobs: dict[int, Job] = {}
        self._lock = Lock()
        self._ids = itertools.count(int(time.time() * 1000) if seed is None else seed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, query: str) -> Job:
        with self._lock:
            job_id = next(self._ids)
            job = Job(job_id, query, logger=self._logger, clock=self._clock)
            self._jobs[job_id] = job
        self._logger.debug("Created job %s for %r", job_id, query)
        return job

    def get(self, job_id: int) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def prune(self, max_age: float) -> int:
        """Drop terminal jobs that finished more than ``max_age`` seconds ago."""
        cutoff = self._clock() - max_age
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.finished_at is not None and job.finished_at <= cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            self._logger.info("Pruned %d finished jobs", len(expired))
        return len(expired)
