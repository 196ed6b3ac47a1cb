"""Exception hierarchy for LocalRag.

Every error carries a human-readable message plus a details dict holding
the context needed to diagnose a failure without rerunning (path, chunk
index, sizes).
"""

from typing import Optional


class LocalRagError(Exception):
    """Base exception for all LocalRag operations."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SourceNotFoundError(LocalRagError):
    """Raised before any work starts when the source directory is missing."""

    pass


class ProviderError(LocalRagError):
    """Raised when the embedding or chat provider fails.

    Fatal to the current run. An interrupted build can be retried and will
    resume from its last checkpoint.
    """

    pass


class DetectionError(LocalRagError):
    """Raised when change detection cannot produce a trustworthy ChangeSet.

    Typical causes are a missing recorded commit or a rewritten history.
    Callers fall back to a full re-index.
    """

    pass


class ValidationError(LocalRagError):
    """Raised when a freshly written index fails post-write validation.

    Only the commit is aborted; the previous index file is left untouched.
    """

    pass


class PersistenceError(LocalRagError):
    """Raised when reading or durably writing an index file fails."""

    pass
