"""Exception hierarchy for the memory pipeline.

Provider and driver exceptions are wrapped (``raise ... from exc``) so callers
only need to handle these types. An empty recall is never an error.
"""


class RecallError(Exception):
    """Base class for all recallbot errors."""


class EmbeddingError(RecallError):
    """The embedding provider failed or produced no vector."""


class CompletionError(RecallError):
    """The completion provider failed to produce a reply."""


class PersistenceError(RecallError):
    """A write to the memory database failed and was rolled back."""


class DeserializationError(RecallError):
    """A stored fragment could not be decoded back into messages."""

    def __init__(self, message: str, fragment: str = "") -> None:
        super().__init__(message)
        self.fragment = fragment
