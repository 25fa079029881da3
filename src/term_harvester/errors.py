"""Custom exceptions for the harvester domain."""


class HarvesterError(Exception):
    """Base exception for this project."""


class ConfigError(HarvesterError):
    """Raised when runtime configuration is invalid."""


class FetchError(HarvesterError):
    """Raised when fetching a page fails."""


class ProviderError(HarvesterError):
    """Raised when the search provider call fails."""


class ExtractionError(HarvesterError):
    """Raised when an extractor fails on a fetched page."""


class StageTimeoutError(HarvesterError):
    """Raised when a pipeline stage exceeds its deadline."""


class JobStateError(HarvesterError):
    """Raised on an illegal job status transition."""
