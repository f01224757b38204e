"""
Error taxonomy for the allocation engine.

ValidationError and InvalidArgumentError are raised before anything is
mutated and are never retried. StorageError is raised by repository
adapters and passes through the engine unchanged.
"""


class AllocatorError(Exception):
    """Base class for all account allocator errors."""
    pass


class ValidationError(AllocatorError):
    """Raised when distribute() receives insufficient or malformed input."""
    pass


class InvalidArgumentError(AllocatorError):
    """Raised for an unknown rotation type, percentage or schedule."""
    pass


class NotFoundError(AllocatorError):
    """Raised at the API boundary when a requested record does not exist."""
    pass


class StorageError(AllocatorError):
    """Raised when a repository read or write fails."""
    pass
