"""
Typed exceptions for ultra-csv.

Every exception carries a machine-readable ``code`` so callers (and the
HTTP layer) can branch on type or code instead of parsing messages.

    UltraCsvError
    |
    +-- ConfigurationError          raised before any row is produced
    |   +-- UnknownPresetError
    |   +-- UnknownProcessorError
    |   +-- UnmarkableStreamError
    |
    +-- RowError                    governed by the strict/lenient policy
    |   +-- ProcessorError
    |   |   +-- NullValueError
    |   +-- RowLengthError
    |
    +-- TooManyFailuresError
    +-- ConcurrentAccessError
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class UltraCsvError(Exception):
    code: str = "ULTRA_CSV_ERROR"


class ConfigurationError(UltraCsvError):
    code = "CONFIGURATION_ERROR"


class UnknownPresetError(ConfigurationError):
    code = "UNKNOWN_PRESET"

    def __init__(self, name: str, known: Sequence[str]):
        self.name = name
        self.known = tuple(known)
        super().__init__(
            f"preset [ {name} ] is not recognised (known: {', '.join(self.known)})"
        )


class UnknownProcessorError(ConfigurationError):
    code = "UNKNOWN_PROCESSOR"

    def __init__(self, step: str, field: Any = None):
        self.step = step
        self.field = field
        where = f" for field {field!r}" if field is not None else ""
        super().__init__(f"unknown processor step {step!r}{where}")


class UnmarkableStreamError(ConfigurationError):
    code = "UNMARKABLE_STREAM"

    def __init__(self, stream: Any):
        self.stream = stream
        super().__init__(
            "Cannot analyze csv from an unmarkable reader: "
            f"{type(stream).__name__} is not seekable"
        )


class RowError(UltraCsvError):
    """A single record could not be read or decoded."""

    code = "ROW_ERROR"

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        super().__init__(message)


class ProcessorError(RowError):
    code = "PROCESSOR_ERROR"

    def __init__(
        self,
        message: str,
        value: Any = None,
        column: Any = None,
        line_number: Optional[int] = None,
    ):
        self.value = value
        self.column = column
        self.reason = message
        self.line_number = line_number
        super().__init__(self._format(), line_number)

    def _format(self) -> str:
        parts = [self.reason]
        if self.column is not None:
            parts.append(f"column={self.column!r}")
        if self.line_number is not None:
            parts.append(f"line={self.line_number}")
        return " ".join(parts)

    def locate(self, column: Any, line_number: Optional[int]) -> "ProcessorError":
        """Attach the position of the offending cell."""
        self.column = column
        self.line_number = line_number
        self.args = (self._format(),)
        return self


class NullValueError(ProcessorError):
    code = "NULL_VALUE"


class RowLengthError(RowError):
    code = "ROW_LENGTH_MISMATCH"

    def __init__(self, expected: int, actual: int, line_number: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"record has {actual} columns, expected {expected} (line={line_number})",
            line_number,
        )


class TooManyFailuresError(UltraCsvError):
    code = "TOO_MANY_FAILURES"

    def __init__(self, failures: int, line_number: Optional[int] = None):
        self.failures = failures
        self.line_number = line_number
        super().__init__(
            f"gave up after {failures} consecutive failed reads (line={line_number})"
        )


class ConcurrentAccessError(UltraCsvError):
    code = "CONCURRENT_ACCESS"
