"""Error kinds surfaced by the workload engine and its collaborators."""


class WorkloadError(Exception):
    """Base class for every workload engine failure."""


class ValidationError(WorkloadError):
    """Raised when input is malformed or out of range. Never silently coerced."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(WorkloadError):
    """Raised when a referenced study, coordinator or assignment is absent."""


class UpstreamUnavailableError(WorkloadError):
    """Raised when the persistence or auth collaborator cannot be reached."""
