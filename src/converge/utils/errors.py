"""Custom exception classes for converge."""

from typing import List, Optional


class ConvergeError(Exception):
    """Base exception for all converge errors."""
    pass


class ValidationError(ConvergeError):
    """Raised when a resource declaration is malformed."""
    pass


class CycleError(ConvergeError):
    """Raised when resource dependencies contain a cycle."""

    def __init__(self, path: List[str]):
        self.path = path
        msg = "Dependency cycle detected"
        if path:
            msg += f": {' -> '.join(path)}"
        super().__init__(msg)


class ConflictError(ConvergeError):
    """Raised when the apply lock is already held by another run."""
    pass


class ProviderError(ConvergeError):
    """Raised when a provider call fails for a single resource."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ReadinessTimeoutError(ConvergeError):
    """Raised when a readiness predicate is not satisfied within its timeout."""

    def __init__(self, resource_id: str, timeout: float, polls: int):
        self.resource_id = resource_id
        self.timeout = timeout
        self.polls = polls
        super().__init__(
            f"Resource '{resource_id}' did not become ready within {timeout}s ({polls} polls)"
        )


class UnresolvedReferenceError(ConvergeError):
    """Raised when a referenced output attribute is not available at apply time."""

    def __init__(self, resource_id: str, target: str, attribute: str, detail: Optional[str] = None):
        self.resource_id = resource_id
        self.target = target
        self.attribute = attribute
        msg = f"Resource '{resource_id}' references {target}.{attribute}"
        msg += f" but {detail}" if detail else " which is not available"
        super().__init__(msg)


class StateError(ConvergeError):
    """Raised when persisted state cannot be read or written."""
    pass


class ConfigError(ConvergeError):
    """Raised when configuration is invalid or missing."""
    pass


class ProviderLoadError(ConvergeError):
    """Raised when a provider adapter cannot be loaded."""
    pass
