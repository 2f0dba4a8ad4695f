from __future__ import annotations

import csv
from collections import deque
from typing import Deque, Iterator, List, Optional, TextIO

from .preferences import CsvPreference


class LineFeed:
    """
    Line source for ``csv.reader`` that remembers the lines of the record
    being read, so they can be replayed after a malformed record.
    """

    def __init__(self, stream: TextIO):
        self._lines: Iterator[str] = iter(stream)
        self._replay: Deque[str] = deque()
        self.current: List[str] = []
        self.line_number = 0

    def __iter__(self):
        return self

    def __next__(self) -> str:
        if self._replay:
            line = self._replay.popleft()
        else:
            line = next(self._lines)
        self.current.append(line)
        self.line_number += 1
        return line

    def start_record(self) -> None:
        self.current = []

    def rewind_after_first_line(self) -> None:
        """Drop the first line of the current record and replay the rest."""
        rest = self.current[1:]
        self._replay.extendleft(reversed(rest))
        self.line_number -= len(rest)
        self.current = []


class RecordTokenizer:
    """
    ``csv.reader`` narrowed to "next record or end-of-input".

    Blank lines are skipped and empty cells come back as None. A malformed
    record raises ``csv.Error``; reading resumes at the line after the one
    the record started on, so an unbalanced quote costs one line instead
    of the rest of the input.
    """

    def __init__(self, stream: TextIO, preference: CsvPreference):
        self.preference = preference
        self._feed = LineFeed(stream)
        self._reader = csv.reader(self._feed, strict=True, **preference.dialect())

    @property
    def line_number(self) -> int:
        """Physical lines consumed so far."""
        return self._feed.line_number

    def _next_record(self) -> Optional[List[str]]:
        self._feed.start_record()
        try:
            return next(self._reader, None)
        except csv.Error:
            self._feed.rewind_after_first_line()
            raise

    def read(self) -> Optional[List[Optional[str]]]:
        while True:
            record = self._next_record()
            if record is None:
                return None
            if record:
                return [value if value != "" else None for value in record]

    def read_header(self) -> List[str]:
        record = self._next_record()
        while record is not None and not record:
            record = self._next_record()
        return list(record or [])
