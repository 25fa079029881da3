"""Runtime configuration models."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import ConfigError
from .models import JoinPolicy
from .validation import (
    parse_float,
    parse_int,
    validate_client_constraints,
    validate_query,
    validate_server_constraints,
)

DEFAULT_USER_AGENT = "TermHarvester/1.0 (+https://github.com/term-harvester/term-harvester)"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 80
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_PROVIDER_TIMEOUT = 20.0
DEFAULT_FETCH_TIMEOUT = 60.0
DEFAULT_MAX_RESULTS_PER_QUERY = 10
DEFAULT_SERVER_URL = "http://localhost"
DEFAULT_CLIENT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_DEBOUNCE = 0.25


@dataclass(frozen=True)
class ServerConfig:
    """Validated configuration used by the HTTP server and job pipeline."""

    search_engine_id: str | None = None
    search_api_key: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_results_per_query: int = DEFAULT_MAX_RESULTS_PER_QUERY
    join_policy: JoinPolicy = JoinPolicy.ALL_OR_NOTHING
    job_ttl: float | None = None

    def __post_init__(self) -> None:
        validate_server_constraints(
            port=self.port,
            request_timeout=self.request_timeout,
            provider_timeout=self.provider_timeout,
            fetch_timeout=self.fetch_timeout,
            max_results_per_query=self.max_results_per_query,
            job_ttl=self.job_ttl,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.search_engine_id and self.search_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        """Build a config from PORT, CUSTOM_SEARCH_* and the timeout variables."""
        env = os.environ if environ is None else environ
        raw_policy = (env.get("JOIN_POLICY") or JoinPolicy.ALL_OR_NOTHING.value).strip().lower()
        try:
            join_policy = JoinPolicy(raw_policy)
        except ValueError as exc:
            choices = ", ".join(policy.value for policy in JoinPolicy)
            raise ConfigError(f"JOIN_POLICY must be one of: {choices}.") from exc
        return cls(
            search_engine_id=env.get("CUSTOM_SEARCH_ENGINE_ID") or None,
            search_api_key=env.get("CUSTOM_SEARCH_API_KEY") or None,
            host=env.get("HOST") or DEFAULT_HOST,
            port=parse_int("PORT", env.get("PORT"), DEFAULT_PORT),
            request_timeout=parse_float(
                "REQUEST_TIMEOUT", env.get("REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT
            ),
            provider_timeout=parse_float(
                "PROVIDER_TIMEOUT", env.get("PROVIDER_TIMEOUT"), DEFAULT_PROVIDER_TIMEOUT
            ),
            fetch_timeout=parse_float(
                "FETCH_TIMEOUT", env.get("FETCH_TIMEOUT"), DEFAULT_FETCH_TIMEOUT
            ),
            join_policy=join_policy,
            job_ttl=parse_float("JOB_TTL", env.get("JOB_TTL"), None),
        )


@dataclass(frozen=True)
class ClientConfig:
    """Validated configuration for the polling client and interactive shell."""

    server_url: str = DEFAULT_SERVER_URL
    request_timeout: float = DEFAULT_CLIENT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    debounce: float = DEFAULT_DEBOUNCE

    def __post_init__(self) -> None:
        validate_client_constraints(
            server_url=self.server_url,
            request_timeout=self.request_timeout,
            poll_interval=self.poll_interval,
            debounce=self.debounce,
        )


@dataclass(frozen=True)
class HarvestConfig:
    """Configuration for one in-process harvest run."""

    query: str
    server: ServerConfig
    output: str | None = None
    show_progress: bool = True

    def __post_init__(self) -> None:
        validate_query(self.query)
