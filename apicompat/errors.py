"""Error taxonomy for compatibility runs."""


class ApiCompatError(Exception):
    """Base class for fatal errors raised during a compatibility run."""


class ExtractionError(ApiCompatError):
    """The artifact is malformed, unreadable or in an unsupported format."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class FetchError(ApiCompatError):
    """The comparison baseline could not be retrieved.

    ``transient`` marks failures worth retrying (network errors, 5xx).
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class PackageNotFoundError(FetchError):
    """The requested package or version definitively does not exist."""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class StaleSuppressionWarning(UserWarning):
    """A suppression no longer matches any live breaking change."""
