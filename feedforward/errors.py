"""
Exceptions raised by the network engine.

Construction problems are recoverable: the builder is left exactly as it was
before the failed call, so the caller can retry with corrected arguments.
"""


class NetworkError(Exception):
    """Base class for all engine errors."""


class ConstructionError(NetworkError, ValueError):
    """A layer or hyperparameter was rejected while building a network."""


class LossError(NetworkError, ValueError):
    """Unknown loss kind, or a loss was needed on an inference-only network."""


class ShapeError(NetworkError, ValueError):
    """An input or target does not match the shape the network was built for."""


class NetworkStateError(NetworkError, RuntimeError):
    """An operation was called in a phase where it is undefined."""
