"""Exception taxonomy for tag handling, hashing, and sequencing."""

from __future__ import annotations


class SnapTagError(Exception):
    """Base class for all errors raised by the SnapTag engine."""


class EmptyTagError(SnapTagError, ValueError):
    """A tag normalized to the empty string."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"tag {raw!r} is empty after normalization")
        self.raw = raw


class InvalidRegionError(SnapTagError, ValueError):
    """A region tag's bounding box falls outside the unit square."""


class DecodeError(SnapTagError):
    """Image bytes could not be decoded or resampled for fingerprinting."""


class IncompatibleFingerprintError(SnapTagError):
    """Two fingerprints of different bit lengths were compared."""

    def __init__(self, left_length: int, right_length: int) -> None:
        super().__init__(f"cannot compare fingerprints of length {left_length} and {right_length}")
        self.left_length = left_length
        self.right_length = right_length


class SequenceUnavailableError(SnapTagError):
    """The sequence counter could not hand out a fresh value."""


__all__ = [
    "SnapTagError",
    "EmptyTagError",
    "InvalidRegionError",
    "DecodeError",
    "IncompatibleFingerprintError",
    "SequenceUnavailableError",
]
