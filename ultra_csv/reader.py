"""
Adaptive CSV reader.

``read_csv`` analyzes the head of the input, resolves a parse preference,
works out field names and per-field decoders, and hands back a row
producer bound to a ``ReadSession``:

- ``RowStream``   lazy iterator, one row per ``next()``
- ``RowCallback`` zero-argument callable, one row per call, None once closed

A session is single-consumer. Rows are produced synchronously on the
thread that asks for them, and asking from two places at once is an
error, not something the session arbitrates.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, TextIO, Tuple, Union

from pydantic import ValidationError

from .analysis import analyze_csv
from .charset import decode_bytes
from .errors import (
    ConcurrentAccessError,
    ConfigurationError,
    ProcessorError,
    RowError,
    RowLengthError,
    TooManyFailuresError,
    UnmarkableStreamError,
)
from .models import AnalysisResult, ReadOptions
from .preferences import CsvPreference
from .processors import compile_processor_specs, decoders_for, spec_key
from .tokenizer import RecordTokenizer

logger = logging.getLogger(__name__)

Row = Union[List[Any], Dict[Hashable, Any]]

# Failures of a single read attempt; the strict/lenient policy decides.
ROW_FAILURES = (csv.Error, RowError)

# Failures of the underlying stream; they always close the session.
RESOURCE_FAILURES = (OSError, UnicodeError)

_END = object()


OptionsLike = Union[ReadOptions, Mapping[str, Any], None]


def build_options(options: OptionsLike, overrides: Mapping[str, Any]) -> ReadOptions:
    """Merge options and keyword overrides; accepts ``field-names`` style keys."""
    if isinstance(options, ReadOptions) and not overrides:
        return options
    merged: Dict[str, Any] = dict(options) if options is not None else {}
    merged.update(overrides)
    try:
        return ReadOptions(**{key.replace("-", "_"): value for key, value in merged.items()})
    except ValidationError as exc:
        raise ConfigurationError(f"invalid read options: {exc}") from exc


def open_source(source: Any, encoding: Optional[str] = None) -> Tuple[TextIO, Optional[str]]:
    """
    Turn ``source`` into a seekable text stream.

    Paths, bytes and byte streams are read whole, stripped of any
    byte-order mark and decoded. Text streams are used as they are and
    must support ``seek``/``tell`` so analysis can rewind them; other
    character streams are refused.
    """
    if isinstance(source, io.TextIOBase):
        if not source.seekable():
            source.close()
            raise UnmarkableStreamError(source)
        return source, getattr(source, "encoding", None)

    if isinstance(source, (bytes, bytearray, memoryview)):
        raw = bytes(source)
    elif isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            raw = f.read()
    elif hasattr(source, "read"):
        try:
            raw = source.read()
        finally:
            source.close()
        if isinstance(raw, str):
            # a character stream that is not an io.TextIOBase cannot be rewound
            raise UnmarkableStreamError(source)
    else:
        raise ConfigurationError(f"cannot read csv from {type(source).__name__}")

    if not isinstance(raw, (bytes, bytearray)):
        raise ConfigurationError(
            f"cannot read csv from {type(source).__name__}: "
            f"read() returned {type(raw).__name__}"
        )
    text, used = decode_bytes(bytes(raw), encoding)
    return io.StringIO(text, newline=""), used


class ProgressCounter:
    def __init__(self, step: int, callback: Optional[Callable[[int], Any]] = None):
        self.step = step
        self.callback = callback
        self.total = 0

    def tick(self) -> None:
        self.total += 1
        if self.total % self.step == 0:
            logger.info("Processed %d lines", self.total)
            if self.callback is not None:
                self.callback(self.total)


class ReadSession:
    """Live state of one read: stream, preference, decoders and counters."""

    def __init__(self, stream: TextIO, options: ReadOptions, encoding: Optional[str] = None):
        self.options = options
        self.encoding = encoding
        self.rows_produced = 0
        self._stream = stream
        self._closed = False
        self._busy = False
        self._map_mode = options.map_mode
        self._progress = (
            ProgressCounter(options.counter_step, options.on_progress)
            if options.counter_step else None
        )

        self.analysis: AnalysisResult = analyze_csv(
            stream, options.lookahead, header=options.has_header
        )
        self.preference: CsvPreference = options.preference.resolve(self.analysis)
        self._tokenizer = RecordTokenizer(stream, self.preference)
        self.field_names: List[Hashable] = self._resolve_field_names()
        self._decoders = decoders_for(
            self.field_names, compile_processor_specs(self._processor_specs())
        )
        logger.debug("Reading %d fields with %s", len(self.field_names), self.preference)

    def _resolve_field_names(self) -> List[Hashable]:
        options = self.options
        transform = options.field_names_transform
        if options.has_header:
            names = [transform(name) for name in self._tokenizer.read_header()]
        elif options.field_names is not None:
            names = [transform(name) for name in options.field_names]
        else:
            names = list(range(len(self.analysis.processors)))

        seen = set()
        for name in names:
            if name in seen:
                raise ConfigurationError(f"duplicate field name {name!r}")
            seen.add(name)
        return names

    def _processor_specs(self) -> Dict[Hashable, List[str]]:
        specs: Dict[Hashable, List[str]] = {}
        if self.options.guess_types:
            for name, guessed in zip(self.field_names, self.analysis.processors):
                if guessed:
                    specs[name] = guessed
        for name, steps in self.options.processor_specs.items():
            specs[spec_key(name)] = steps
        return specs

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def line_number(self) -> int:
        return self._tokenizer.line_number

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close()
        logger.debug("Closed csv stream after %d rows", self.rows_produced)

    def _decode(self, record: List[Optional[str]]) -> Row:
        names = self.field_names
        if not names:
            return record
        line = self._tokenizer.line_number
        if len(record) != len(names):
            raise RowLengthError(len(names), len(record), line)

        values = []
        for name, decoder, value in zip(names, self._decoders, record):
            try:
                values.append(decoder(value))
            except ProcessorError as exc:
                raise exc.locate(name, line)
        if self._map_mode:
            return dict(zip(names, values))
        return values

    def _attempt(self) -> Any:
        try:
            record = self._tokenizer.read()
        except RESOURCE_FAILURES:
            self.close()
            raise
        if record is None:
            return _END
        return self._decode(record)

    def _attempt_leniently(self) -> Any:
        cap = self.options.max_consecutive_failures
        failures = 0
        while True:
            try:
                return self._attempt()
            except ROW_FAILURES as exc:
                failures += 1
                if not self.options.silent:
                    logger.warning("Skipping record ending at line %d: %s",
                                   self._tokenizer.line_number, exc)
                if cap is not None and failures > cap:
                    self.close()
                    raise TooManyFailuresError(failures, self._tokenizer.line_number) from exc

    def next_row(self) -> Any:
        """Produce the next row, or the end marker once the session is closed."""
        if self._closed:
            return _END
        if self._busy:
            raise ConcurrentAccessError("a row is already being read from this session")

        self._busy = True
        try:
            row = self._attempt() if self.options.strict else self._attempt_leniently()
        finally:
            self._busy = False

        limit = self.options.limit
        if row is _END or (limit is not None and self._tokenizer.line_number >= limit):
            self.close()
            return _END

        self.rows_produced += 1
        if self._progress is not None:
            self._progress.tick()
        return row


class RowProducer:
    """Rows of one session together with the handle that closes it."""

    def __init__(self, session: ReadSession):
        self.session = session

    @property
    def analysis(self) -> AnalysisResult:
        return self.session.analysis

    @property
    def preference(self) -> CsvPreference:
        return self.session.preference

    @property
    def field_names(self) -> List[Hashable]:
        return self.session.field_names

    @property
    def encoding(self) -> Optional[str]:
        return self.session.encoding

    @property
    def closed(self) -> bool:
        return self.session.closed

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class RowStream(RowProducer):
    def __iter__(self):
        return self

    def __next__(self) -> Row:
        row = self.session.next_row()
        if row is _END:
            raise StopIteration
        return row


class RowCallback(RowProducer):
    def __call__(self) -> Optional[Row]:
        row = self.session.next_row()
        if row is _END:
            return None
        return row


def read_csv(source: Any, options: OptionsLike = None, **overrides) -> RowProducer:
    """
    Read ``source`` as csv.

    ``source`` is a path, ``bytes``, a binary stream or a seekable text
    stream. Options come as a ``ReadOptions``, a mapping, keyword
    arguments, or a mix where keywords win.

    With ``limit=N`` a record is kept only while the physical line count
    after reading it stays below N, so records spanning several lines use
    up the limit faster than single-line ones.
    """
    options = build_options(options, overrides)
    stream, encoding = open_source(source, options.encoding)
    try:
        session = ReadSession(stream, options, encoding)
    except BaseException:
        stream.close()
        raise
    if options.greedy:
        return RowCallback(session)
    return RowStream(session)
