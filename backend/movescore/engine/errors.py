"""Exceptions raised by the move scoring engine."""


class MoveScoreError(Exception):
    """Base class for all engine errors."""


class DecodeError(MoveScoreError, ValueError):
    """Classifier bytes could not be turned into a usable classifier."""


class TruncatedDataError(DecodeError):
    """Buffer is shorter than the header its format version requires."""


class UnsupportedVersionError(DecodeError):
    """Format version outside the handled range."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Unsupported classifier format version: {version}")


class SizeMismatchError(DecodeError):
    """Byte length disagrees with the header counts."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Classifier file size mismatch: expected {expected} bytes, got {actual}"
        )


class InvalidClassifierError(DecodeError):
    """Classifier decodes but has nothing to score."""


class StateError(MoveScoreError, RuntimeError):
    """Session operation called in the wrong lifecycle state."""
