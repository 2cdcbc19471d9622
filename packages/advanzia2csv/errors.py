"""Error taxonomy for ``advanzia2csv``.

Every failure the conversion core can report derives from
:class:`ConversionError`. Errors carry enough context for the user to locate
the defect in the source file:

- ``source``: the statement path (or ``None`` for in-memory input);
- ``line_number``: 1-based line of the offending record in the decoded text;
- ``raw_value``: the raw field or line that could not be interpreted.

Parse errors are fatal to the current file's batch. None of them are retried;
they stem from deterministic input defects.
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for all statement conversion failures."""

    kind = "conversion error"

    def __init__(
        self,
        message: str,
        *,
        line_number: int | None = None,
        raw_value: str | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.raw_value = raw_value
        self.source = source

    def with_source(self, source: str | None) -> ConversionError:
        """Attach ``source`` when the raiser did not know it; returns ``self``."""

        if self.source is None:
            self.source = source
        return self

    def __str__(self) -> str:
        location = ""
        if self.source is not None and self.line_number is not None:
            location = f"{self.source}:{self.line_number}: "
        elif self.source is not None:
            location = f"{self.source}: "
        elif self.line_number is not None:
            location = f"line {self.line_number}: "
        text = f"{location}{self.message}"
        if self.raw_value is not None:
            text += f" ({self.raw_value!r})"
        return text


class EncodingError(ConversionError):
    """The byte stream cannot be decoded under any attempted encoding."""

    kind = "encoding error"


class MalformedInputError(ConversionError):
    """A record does not match the statement's schema."""

    kind = "malformed input"


class UnparseableDateError(ConversionError):
    """A date field matches none of the accepted date forms."""

    kind = "unparseable date"


class UnparseableAmountError(ConversionError):
    """An amount field cannot be interpreted under the file's conventions."""

    kind = "unparseable amount"


class UnsupportedCurrencyError(UnparseableAmountError):
    """The currency code is not a recognized ISO 4217 code."""

    kind = "unsupported currency"


class OutputWriteError(ConversionError):
    """The CSV output could not be written."""

    kind = "output write error"


class ConfigError(ConversionError):
    """Invalid runtime configuration (environment or command-line)."""

    kind = "configuration error"


__all__ = [
    "ConfigError",
    "ConversionError",
    "EncodingError",
    "MalformedInputError",
    "OutputWriteError",
    "UnparseableAmountError",
    "UnparseableDateError",
    "UnsupportedCurrencyError",
]
