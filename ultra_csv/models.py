from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

from .preferences import CsvPreference, Preference, PreferenceOptions, coerce_preference
from .rules import LOOKAHEAD, MAX_CONSECUTIVE_FAILURES


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    delimiter: Optional[str] = None
    processors: List[List[str]] = Field(default_factory=list)


def _strip(name: str) -> str:
    return name.strip()


class ReadOptions(BaseModel):
    """Everything ``read_csv`` can be told about its input."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    preference: Preference = Field(default_factory=PreferenceOptions)
    header: Optional[bool] = None
    field_names: Optional[List[str]] = None
    field_names_transform: Callable[[str], Any] = _strip
    processor_specs: Dict[Union[int, str], List[str]] = Field(default_factory=dict)
    encoding: Optional[str] = None
    guess_types: bool = True
    strict: bool = True
    greedy: bool = False
    counter_step: Optional[PositiveInt] = None
    on_progress: Optional[Callable[[int], Any]] = None
    silent: bool = False
    limit: Optional[PositiveInt] = None
    lookahead: PositiveInt = LOOKAHEAD
    max_consecutive_failures: Optional[PositiveInt] = MAX_CONSECUTIVE_FAILURES

    @field_validator("preference", mode="before")
    @classmethod
    def tag_preference(cls, value):
        return coerce_preference(value)

    @property
    def has_header(self) -> bool:
        """Header row unless told otherwise or given explicit names."""
        if self.header is None:
            return self.field_names is None
        return self.header

    @property
    def map_mode(self) -> bool:
        return self.has_header or self.field_names is not None


class HealthResponse(BaseModel):
    ok: bool = True


class AnalyzeResponse(BaseModel):
    encoding: Optional[str] = None
    analysis: AnalysisResult
    preference: CsvPreference


class ReadResponse(BaseModel):
    encoding: Optional[str] = None
    preference: CsvPreference
    field_names: List[Union[int, str]] = Field(default_factory=list)
    rows: List[Any] = Field(default_factory=list)
    row_count: int = 0
