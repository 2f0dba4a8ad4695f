"""
Format inference over a bounded sample of the input.

The sample is the first ``lookahead`` lines. From it we guess the field
separator and, once the sample is tokenized with that separator, a
processor spec per column. Analysis never fails a read: every stage that
breaks degrades to the empty result and the reader carries on with
defaults.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from typing import Callable, List, Optional, Sequence, TextIO, Tuple

from .errors import UnmarkableStreamError
from .models import AnalysisResult
from .rules import (
    CANDIDATE_DELIMITERS,
    DECIMAL_PATTERN,
    DEFAULT_DELIMITER,
    DEFAULT_QUOTE_CHAR,
    INTEGER_PATTERN,
    LOOKAHEAD,
)

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r'"[^"]+"')

_ANALYSIS_ERRORS = (csv.Error, UnicodeError, ValueError, LookupError, IndexError)


def _is_integer(value: str) -> bool:
    return re.fullmatch(INTEGER_PATTERN, value, re.ASCII) is not None


def _is_decimal(value: str) -> bool:
    return re.fullmatch(DECIMAL_PATTERN, value, re.ASCII) is not None


# Priority order: the first surviving type wins.
KNOWN_TYPES: Tuple[Tuple[str, Callable[[str], bool]], ...] = (
    ("integer", _is_integer),
    ("decimal", _is_decimal),
)


def guess_delimiter(
    lines: Sequence[str], candidates: Sequence[str] = CANDIDATE_DELIMITERS
) -> Optional[str]:
    """
    Pick the candidate whose count per line is the most stable.

    The first line is the reference. A candidate is dropped for a line when
    it does not appear there or appears a different number of times. The
    candidate with the fewest drops wins, but only when no other candidate
    ties with it.
    """
    if not lines or not candidates:
        return None

    frequencies = []
    for line in lines:
        clean = _QUOTED.sub("", line)
        frequencies.append({c: clean.count(c) for c in candidates})

    reference = frequencies[0]
    drops = {c: 0 for c in candidates}
    for counts in frequencies:
        for c, n in counts.items():
            if n == 0 or n != reference[c]:
                drops[c] += 1

    ranked = sorted(drops.items(), key=lambda item: item[1])
    if len(ranked) == 1 or ranked[0][1] < ranked[1][1]:
        return ranked[0][0]
    return None


def parse_fields(lines: Sequence[str], delimiter: Optional[str]) -> List[List[Optional[str]]]:
    """Tokenize sample lines; empty cells become None."""
    text = "\n".join(lines)
    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=delimiter or DEFAULT_DELIMITER,
        quotechar=DEFAULT_QUOTE_CHAR,
        strict=False,
    )
    return [[value if value != "" else None for value in row] for row in reader if row]


def _guess_column(values: Sequence[Optional[str]], sample_size: int) -> List[str]:
    candidates = list(KNOWN_TYPES)
    not_null = 0
    for value in values:
        if value is not None:
            not_null += 1
        candidates = [(name, test) for name, test in candidates
                      if value is None or test(value)]

    if not_null <= sample_size * 0.5 or not candidates:
        return []
    return ["optional", candidates[0][0]]


def guess_types(rows: Sequence[Sequence[Optional[str]]]) -> List[List[str]]:
    if not rows:
        return []
    width = len(rows[0])
    return [
        _guess_column([row[i] if i < len(row) else None for row in rows], len(rows))
        for i in range(width)
    ]


def read_sample(stream: TextIO, lookahead: int = LOOKAHEAD) -> List[str]:
    lines: List[str] = []
    while len(lines) < lookahead:
        line = stream.readline()
        if not line:
            break
        lines.append(line.rstrip("\r\n"))
    return lines


def analyze_lines(lines: Sequence[str], header: bool = False) -> AnalysisResult:
    try:
        delimiter = guess_delimiter(lines)
    except _ANALYSIS_ERRORS as exc:
        logger.warning("Delimiter guessing failed: %s", exc)
        return AnalysisResult()

    try:
        rows = parse_fields(lines, delimiter)
        if header:
            rows = rows[1:]
        processors = guess_types(rows)
    except _ANALYSIS_ERRORS as exc:
        logger.warning("Type guessing failed: %s", exc)
        processors = []

    result = AnalysisResult(delimiter=delimiter, processors=processors)
    logger.debug("Analysis of %d lines: %s", len(lines), result)
    return result


def analyze_csv(
    stream: TextIO, lookahead: int = LOOKAHEAD, header: bool = False
) -> AnalysisResult:
    """
    Analyze the head of a seekable text stream and rewind it.

    The stream position is restored even when sampling fails, so the reader
    always starts from where analysis began.
    """
    if not stream.seekable():
        raise UnmarkableStreamError(stream)

    mark = stream.tell()
    try:
        lines = read_sample(stream, lookahead)
    except _ANALYSIS_ERRORS as exc:
        logger.warning("Could not sample input for analysis: %s", exc)
        lines = []
    finally:
        stream.seek(mark)

    return analyze_lines(lines, header=header)
