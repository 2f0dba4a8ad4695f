"""
ultra-csv: read csv of unknown shape.

>>> from ultra_csv import read_csv
>>> with read_csv("data.csv", strict=False) as rows:
...     for row in rows:
...         print(row)
"""

import logging

from .analysis import analyze_csv, guess_delimiter, guess_types
from .charset import decode_bytes, guess_charset
from .errors import (
    ConcurrentAccessError,
    ConfigurationError,
    NullValueError,
    ProcessorError,
    RowError,
    RowLengthError,
    TooManyFailuresError,
    UltraCsvError,
    UnknownPresetError,
    UnknownProcessorError,
    UnmarkableStreamError,
)
from .models import AnalysisResult, ReadOptions
from .preferences import CsvPreference, PreferenceOptions, PresetPreference
from .processors import compile_chain, compile_processor_specs
from .reader import ReadSession, RowCallback, RowStream, read_csv

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AnalysisResult",
    "ConcurrentAccessError",
    "ConfigurationError",
    "CsvPreference",
    "NullValueError",
    "PreferenceOptions",
    "PresetPreference",
    "ProcessorError",
    "ReadOptions",
    "ReadSession",
    "RowCallback",
    "RowError",
    "RowLengthError",
    "RowStream",
    "TooManyFailuresError",
    "UltraCsvError",
    "UnknownPresetError",
    "UnknownProcessorError",
    "UnmarkableStreamError",
    "analyze_csv",
    "compile_chain",
    "compile_processor_specs",
    "decode_bytes",
    "guess_charset",
    "guess_delimiter",
    "guess_types",
    "read_csv",
    "__version__",
]
