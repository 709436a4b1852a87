"""
Exception hierarchy for ghfetch.

Only transport and storage failures are hard errors for a running job.
Budget exhaustion and unsupported merges are logged by the stage that
detects them and never raised.
"""


class GhFetchError(Exception):
    """Base class for every error reported through the pipeline."""
    pass


class ConfigError(GhFetchError):
    """Raised when a job file is missing or invalid."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class TransportError(GhFetchError):
    """Raised when a request cannot be completed."""

    def __init__(self, message: str, url: str = "", status=None):
        super().__init__(message)
        self.url = url
        self.status = status


class StorageError(GhFetchError):
    """Raised when a payload or the cache cannot be written."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class PipelineError(GhFetchError):
    """Raised when a stage breaks the proceed-exactly-once contract."""
    pass
