class BlobNetError(Exception):
    """Base class for errors raised by blobnet."""


class PreconditionError(BlobNetError, ValueError):
    """A layer or blob was used in a way the network construction forbids
    (wrong blob count, shape mismatch, use before setup, bad config)."""


class BackendError(BlobNetError, RuntimeError):
    """The device backend is unavailable or a device operation failed."""
