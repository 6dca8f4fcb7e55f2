"""Error taxonomy.

Nothing here is fatal to the process. Parse degradation has no exception at
all (unrecognised lines become action commands); asset misses are recovered
by the scene; stream failures end the stream and leave the last good frame on
screen.
"""


class VNError(RuntimeError):
    """Base class for engine errors."""


class AssetMissError(VNError):
    """Raised by a canvas when a background or character asset is missing."""

    def __init__(self, asset: str) -> None:
        super().__init__(f"Asset not found: {asset}")
        self.asset = asset


class StreamError(VNError):
    """Base class for terminal streaming failures."""


class StreamTransportError(StreamError):
    """The stream source failed or reported an error record."""


class StreamTimeout(StreamError):
    """The stream did not finish within the overall deadline."""
