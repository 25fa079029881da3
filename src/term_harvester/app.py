"""HTTP polling surface: submit a query, then poll its job."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .config import ServerConfig
from .jobs import JobRegistry, JobRunner
from .logging_utils import get_logger
from .models import JobStatus
from .pipeline import JobPipeline, build_pipeline

STATUS_CODES = {
    JobStatus.PENDING: 202,
    JobStatus.STARTED: 202,
    JobStatus.PROCESSING: 202,
    JobStatus.COMPLETED: 200,
    JobStatus.ERRORED: 500,
}


def create_app(
    config: ServerConfig | None = None,
    *,
    registry: JobRegistry | None = None,
    runner: JobRunner | None = None,
    logger: logging.Logger | None = None,
) -> FastAPI:
    config = config or ServerConfig.from_env()
    logger = logger or get_logger("server")
    registry = registry or JobRegistry(logger=logger)
    runner = runner or build_pipeline(config, logger=logger)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if not config.has_credentials:
            logger.warning("No search credentials configured; every query will error.")
        yield
        if isinstance(runner, JobPipeline):
            runner.shutdown(wait=False)

    app = FastAPI(title="Term Harvester", lifespan=lifespan)
    app.state.config = config
    app.state.registry = registry

    @app.get("/query")
    def submit_query(
        query_header: str | None = Header(default=None, alias="query"),
        query_param: str | None = Query(default=None, alias="query"),
    ) -> Response:
        """Create and start a job; answer 202 with the path to poll."""
        query = query_header or query_param
        if not query or not query.strip():
            return Response(status_code=400)
        if config.job_ttl is not None:
            registry.prune(config.job_ttl)
        job = registry.create(query)
        job_id = job.start(runner)
        logger.info("Accepted job %s for %r", job_id, query)
        return PlainTextResponse(f"/job/{job_id}", status_code=202)

    @app.get("/job/{job_id}")
    def get_job(job_id: str) -> Response:
        """Report a job; the status code tells the client whether to keep polling."""
        try:
            key = int(job_id)
        except ValueError:
            return Response(status_code=400)
        job = registry.get(key)
        if job is None:
            return Response(status_code=400)
        status_code = STATUS_CODES.get(job.status)
        if status_code is None:
            logger.error("Job %s has unrecognized status %r", job.id, job.status)
            return Response(status_code=500)
        return JSONResponse(job.to_dict(), status_code=status_code)

    return app
