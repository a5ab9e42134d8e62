"""Exception types raised by the statistics engine.

Only malformed input is an error.  Degenerate but well-defined
computations (a zero absolute risk reduction, a perfectly specific
test) are reported through sentinel values such as ``math.inf`` and an
interpretation string instead.
"""


class EvistatError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(EvistatError, ValueError):
    """Raised for empty or malformed inputs (e.g. an empty study list)."""


class UnsupportedStudyTypeError(InvalidInputError):
    """Raised when a sample-size or power request names an unknown design."""

    def __init__(self, study_type: object) -> None:
        self.study_type = study_type
        super().__init__(f"Unsupported study type: {study_type!r}")
