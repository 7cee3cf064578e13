"""
Error taxonomy for the semantic code-search core.

Every error raised by this package derives from :class:`CodeSearchError`
so callers can catch the whole family in one place.
"""


class CodeSearchError(Exception):
    """Base class for all semantic code-search errors."""


class MalformedVectorError(CodeSearchError, ValueError):
    """A stored or supplied vector has an invalid shape or byte length."""


class EmbeddingProviderError(CodeSearchError):
    """The embedding backend failed (auth, rate limit, network, bad payload)."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider


class NativeSearchUnavailable(CodeSearchError):
    """The store cannot run a native nearest-neighbour query.

    Never surfaced to callers; the query engine catches it and falls back
    to brute-force search.
    """


class StoreError(CodeSearchError):
    """I/O or transaction failure in the persistence layer."""


class InvalidConfigurationError(CodeSearchError, ValueError):
    """Configuration values are out of bounds or inconsistent."""
