"""
Parse preferences: quote character, delimiter and line terminator.

A preference is given in one of three shapes, each a tagged model with its
own ``resolve``:

- ``CsvPreference``     already resolved, used as is
- ``PresetPreference``  a named built-in configuration
- ``PreferenceOptions`` raw options, gaps filled from analysis and defaults
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import UnknownPresetError
from .rules import DEFAULT_DELIMITER, DEFAULT_LINE_TERMINATOR, DEFAULT_QUOTE_CHAR

if TYPE_CHECKING:
    from .models import AnalysisResult


def _single_char(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) != 1:
        raise ValueError(f"expected a single character, got {value!r}")
    return value


class CsvPreference(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["resolved"] = "resolved"
    quote_char: str = DEFAULT_QUOTE_CHAR
    delimiter: str = DEFAULT_DELIMITER
    line_terminator: str = "\r\n"

    @field_validator("quote_char", "delimiter")
    @classmethod
    def check_single_char(cls, value):
        return _single_char(value)

    def resolve(self, analysis: "AnalysisResult") -> "CsvPreference":
        return self

    def dialect(self) -> Dict[str, Any]:
        """Keyword arguments for ``csv.reader``."""
        return {
            "delimiter": self.delimiter,
            "quotechar": self.quote_char,
            "lineterminator": self.line_terminator,
            "doublequote": True,
            "skipinitialspace": False,
        }


STANDARD = CsvPreference(delimiter=",")
EXCEL = CsvPreference(delimiter=",")
EXCEL_NORTH_EUROPE = CsvPreference(delimiter=";")
TAB = CsvPreference(delimiter="\t")

PRESETS: Dict[str, CsvPreference] = {
    "standard": STANDARD,
    "excel": EXCEL,
    "excel-north-europe": EXCEL_NORTH_EUROPE,
    "excel-variant": EXCEL_NORTH_EUROPE,
    "tab": TAB,
    "tab-delimited": TAB,
}


class PresetPreference(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["preset"] = "preset"
    name: str

    def resolve(self, analysis: "AnalysisResult") -> CsvPreference:
        try:
            return PRESETS[self.name]
        except KeyError:
            raise UnknownPresetError(self.name, sorted(PRESETS)) from None


class PreferenceOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["options"] = "options"
    quote_char: Optional[str] = None
    delimiter: Optional[str] = None
    line_terminator: Optional[str] = None

    @field_validator("quote_char", "delimiter")
    @classmethod
    def check_single_char(cls, value):
        return _single_char(value)

    def resolve(self, analysis: "AnalysisResult") -> CsvPreference:
        return CsvPreference(
            quote_char=self.quote_char or DEFAULT_QUOTE_CHAR,
            delimiter=self.delimiter or analysis.delimiter or DEFAULT_DELIMITER,
            line_terminator=self.line_terminator or DEFAULT_LINE_TERMINATOR,
        )


Preference = Annotated[
    Union[CsvPreference, PresetPreference, PreferenceOptions],
    Field(discriminator="kind"),
]


def coerce_preference(value: Any) -> Any:
    """Tag the loose shapes callers pass: a preset name or a raw options mapping."""
    if value is None:
        return {"kind": "options"}
    if isinstance(value, str):
        return {"kind": "preset", "name": value}
    if isinstance(value, BaseModel):
        return value
    if isinstance(value, dict) and "kind" not in value:
        return {"kind": "options", **value}
    return value
