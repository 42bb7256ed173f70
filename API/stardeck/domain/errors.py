class EngineInvocationError(RuntimeError):
    """An engine operation failed. The message carries the engine's own diagnostic."""


class ImageNotFoundError(LookupError):
    """The image is not present locally and no pull was requested."""


class ProtocolError(ValueError):
    """A session message could not be parsed."""
