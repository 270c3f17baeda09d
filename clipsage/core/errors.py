"""Error taxonomy for the ClipSage retrieval engine."""


class ClipSageError(Exception):
    """Base class for all engine errors."""


class PersistenceError(ClipSageError):
    """Storage I/O failure or constraint violation (e.g. duplicate id)."""


class CodecError(ClipSageError):
    """A stored field could not be decoded: embedding blob, tags or timestamp."""


class ProviderUnavailable(ClipSageError):
    """The embedding provider could not be reached."""


class ProviderError(ClipSageError):
    """The embedding provider answered with an error or a malformed response."""


class EmbeddingUnavailable(ClipSageError):
    """Insert aborted because an embedding could not be generated."""
