"""Validation and runtime guardrails."""

from __future__ import annotations

from urllib.parse import urlparse

from .errors import ConfigError

MAX_PROVIDER_PAGE_SIZE = 10


def is_supported_url(url: str) -> bool:
    """Allow only absolute HTTP(S) URLs with a hostname."""
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def origin_from_url(url: str) -> str:
    """Return the lowercase host (with port, if any) used to pick an extractor."""
    return urlparse(url).netloc.lower()


def parse_float(name: str, raw: str | None, default: float | None) -> float | None:
    """Parse an optional float setting, raising ConfigError on garbage."""
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc


def parse_int(name: str, raw: str | None, default: int) -> int:
    """Parse an integer setting, raising ConfigError on garbage."""
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from exc


def validate_server_constraints(
    *,
    port: int,
    request_timeout: float,
    provider_timeout: float,
    fetch_timeout: float,
    max_results_per_query: int,
    job_ttl: float | None,
) -> None:
    """Validate server configuration and raise ConfigError on invalid values."""
    if not 0 < port < 65536:
        raise ConfigError("--port must be between 1 and 65535.")
    if request_timeout <= 0:
        raise ConfigError("REQUEST_TIMEOUT must be > 0.")
    if provider_timeout <= 0 or fetch_timeout <= 0:
        raise ConfigError("PROVIDER_TIMEOUT and FETCH_TIMEOUT must be > 0.")
    if not 1 <= max_results_per_query <= MAX_PROVIDER_PAGE_SIZE:
        raise ConfigError(
            f"--max-results-per-query must be between 1 and {MAX_PROVIDER_PAGE_SIZE}."
        )
    if job_ttl is not None and job_ttl <= 0:
        raise ConfigError("JOB_TTL must be > 0 when set.")


def validate_client_constraints(
    *,
    server_url: str,
    request_timeout: float,
    poll_interval: float,
    debounce: float,
) -> None:
    """Validate client configuration and raise ConfigError on invalid values."""
    if not is_supported_url(server_url):
        raise ConfigError(f"--server must be an http(s) URL, got {server_url!r}.")
    if request_timeout <= 0:
        raise ConfigError("--request-timeout must be > 0.")
    if poll_interval < 0 or debounce < 0:
        raise ConfigError("--poll-interval and --debounce must be >= 0.")


def validate_query(query: str) -> None:
    """Reject blank search strings before any job is created."""
    if not query or not query.strip():
        raise ConfigError("A non-empty query is required.")
