import codecs
import csv
import io
import logging

import pytest

from ultra_csv.errors import (
    ConcurrentAccessError,
    ConfigurationError,
    ProcessorError,
    RowLengthError,
    TooManyFailuresError,
    UnknownPresetError,
    UnknownProcessorError,
    UnmarkableStreamError,
)
from ultra_csv.preferences import CsvPreference
from ultra_csv.processors import STEPS
from ultra_csv.reader import RowCallback, RowStream, read_csv

MALFORMED = 'a;b;c\n1;2;3\n"4"x;5;6\n7;8;9\n'


def test_header_rows_are_typed():
    rows = read_csv(io.StringIO("a,b,c\n1,2,3\n4,5,6\n"))
    assert isinstance(rows, RowStream)
    assert list(rows) == [{"a": 1, "b": 2, "c": 3}, {"a": 4, "b": 5, "c": 6}]
    assert rows.field_names == ["a", "b", "c"]
    assert rows.closed


def test_guessing_can_be_disabled():
    rows = read_csv(b"a,b,c\n1,2,3\n", guess_types=False)
    assert list(rows) == [{"a": "1", "b": "2", "c": "3"}]


def test_vector_mode_without_header():
    rows = read_csv(b"1,x\n2,y\n", header=False)
    assert list(rows) == [[1, "x"], [2, "y"]]
    assert rows.field_names == [0, 1]


def test_explicit_field_names():
    rows = read_csv(b"1;2\n3;4\n", field_names=["x", "y"])
    assert list(rows) == [{"x": 1, "y": 2}, {"x": 3, "y": 4}]


def test_header_names_are_trimmed():
    rows = read_csv(b" a , b \n1,2\n")
    assert list(rows) == [{"a": 1, "b": 2}]


def test_field_names_transform():
    rows = read_csv(b"A,B\n1,2\n", field_names_transform=str.lower)
    assert list(rows) == [{"a": 1, "b": 2}]


def test_duplicate_header_names():
    stream = io.StringIO("a,a\n1,2\n")
    with pytest.raises(ConfigurationError):
        read_csv(stream)
    assert stream.closed


def test_empty_cells_are_null():
    rows = read_csv(b"a,b\n1,\n2,x\n3,y\n")
    assert list(rows) == [{"a": 1, "b": None}, {"a": 2, "b": "x"}, {"a": 3, "b": "y"}]


def test_explicit_specs_win_over_guesses():
    rows = read_csv(b"a,b\n1,2\n", processor_specs={"a": ["optional"], "b": ["decimal"]})
    assert list(rows) == [{"a": "1", "b": 2.0}]


def test_option_mapping_with_dashed_keys():
    rows = read_csv(b"a\n1\n", {"guess-types": False, "counter-step": 1})
    assert list(rows) == [{"a": "1"}]


def test_invalid_options():
    with pytest.raises(ConfigurationError):
        read_csv(b"a\n1\n", counter_step=0)
    with pytest.raises(ConfigurationError):
        read_csv(b"a\n1\n", colour="blue")
    with pytest.raises(ConfigurationError):
        read_csv(b"a\n1\n", preference={"delimiter": "::"})


def test_unknown_preset_fails_before_reading():
    stream = io.StringIO("a,b\n1,2\n")
    with pytest.raises(UnknownPresetError):
        read_csv(stream, preference="lotus")
    assert stream.closed


def test_unknown_processor_fails_before_reading():
    stream = io.StringIO("a,b\n1,2\n")
    with pytest.raises(UnknownProcessorError):
        read_csv(stream, processor_specs={"a": ["uppercase"]})
    assert stream.closed


def test_unmarkable_stream():
    class Unmarkable(io.StringIO):
        def seekable(self):
            return False

    stream = Unmarkable("a,b\n1,2\n")
    with pytest.raises(UnmarkableStreamError):
        read_csv(stream)
    assert stream.closed


def test_preset_preference():
    rows = read_csv(b"a;b\n1;2\n", preference="excel-north-europe")
    assert rows.preference.delimiter == ";"
    assert list(rows) == [{"a": 1, "b": 2}]


def test_path_source(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes(codecs.BOM_UTF8 + b"id,name\n1,x\n")

    rows = read_csv(path)
    assert list(rows) == [{"id": 1, "name": "x"}]
    assert rows.encoding == "utf-8"

    assert list(read_csv(str(path))) == [{"id": 1, "name": "x"}]


def test_byte_stream_source():
    stream = io.BytesIO(codecs.BOM_UTF16_LE + "id\n7\n".encode("utf-16-le"))
    rows = read_csv(stream)
    assert list(rows) == [{"id": 7}]
    assert stream.closed


def test_explicit_encoding():
    rows = read_csv("name\nMontréal\n".encode("latin-1"), encoding="latin-1")
    assert list(rows) == [{"name": "Montréal"}]
    assert rows.encoding == "iso8859-1"


def test_unsupported_source():
    with pytest.raises(ConfigurationError):
        read_csv(42)


def test_strict_failure_propagates():
    rows = read_csv(io.StringIO(MALFORMED))
    assert next(rows) == {"a": "1", "b": 2, "c": 3}
    with pytest.raises(csv.Error):
        next(rows)
    assert not rows.closed
    rows.close()
    assert rows.closed


def test_lenient_skips_malformed_rows(caplog):
    with caplog.at_level(logging.WARNING):
        rows = read_csv(io.StringIO(MALFORMED), strict=False)
        assert list(rows) == [{"a": "1", "b": 2, "c": 3}, {"a": "7", "b": 8, "c": 9}]
    assert rows.closed
    assert "Skipping record" in caplog.text


def test_lenient_silent(caplog):
    with caplog.at_level(logging.WARNING):
        rows = read_csv(io.StringIO(MALFORMED), strict=False, silent=True)
        assert len(list(rows)) == 2
    assert "Skipping record" not in caplog.text


def test_processor_failure_strict_and_lenient():
    data = "n\n1\nabc\n3\n"
    specs = {"n": ["optional", "integer"]}

    rows = read_csv(io.StringIO(data), processor_specs=specs, guess_types=False)
    assert next(rows) == {"n": 1}
    with pytest.raises(ProcessorError) as excinfo:
        next(rows)
    assert excinfo.value.column == "n"
    assert excinfo.value.line_number == 3
    rows.close()

    rows = read_csv(io.StringIO(data), processor_specs=specs, guess_types=False, strict=False)
    assert list(rows) == [{"n": 1}, {"n": 3}]


def test_row_length_mismatch():
    rows = read_csv(b"a,b\n1,2\n3\n4,5\n")
    assert next(rows) == {"a": 1, "b": 2}
    with pytest.raises(RowLengthError):
        next(rows)
    rows.close()


def test_lenient_gives_up_after_consecutive_failures():
    data = "a,b\n" + "1\n" * 5
    rows = read_csv(io.StringIO(data), strict=False, silent=True, max_consecutive_failures=2)
    with pytest.raises(TooManyFailuresError) as excinfo:
        next(rows)
    assert excinfo.value.failures == 3
    assert rows.closed


def test_limit_counts_physical_lines():
    rows = read_csv(b"1\n2\n3\n4\n5\n6\n7\n", header=False, limit=5)
    assert list(rows) == [[1], [2], [3], [4]]
    assert rows.closed


def test_limit_with_multiline_record():
    data = '"a\nb\nc",1\n' + "".join(f"x,{i}\n" for i in range(10))
    rows = read_csv(data.encode(), header=False, limit=5, preference={"delimiter": ","})
    # The quoted record ends on line 3 and the next one on line 4; the
    # record ending on line 5 reaches the limit and is dropped.
    assert list(rows) == [["a\nb\nc", 1], ["x", 0]]


def test_progress_every_second_row(caplog):
    seen = []
    data = "n\n" + "".join(f"{i}\n" for i in range(5))
    with caplog.at_level(logging.INFO, logger="ultra_csv"):
        rows = read_csv(io.StringIO(data), counter_step=2, on_progress=seen.append)
        assert len(list(rows)) == 5
    assert seen == [2, 4]
    assert "Processed 4 lines" in caplog.text


def test_greedy_callback():
    read = read_csv(b"a\n1\n2\n", greedy=True)
    assert isinstance(read, RowCallback)
    assert read() == {"a": 1}
    assert read() == {"a": 2}
    assert read() is None
    assert read.closed
    assert read() is None


def test_close_early_is_idempotent():
    stream = io.StringIO("a\n1\n2\n3\n")
    rows = read_csv(stream)
    assert next(rows) == {"a": 1}

    rows.close()
    assert stream.closed
    rows.close()
    assert list(rows) == []


def test_context_manager_closes():
    stream = io.StringIO("a\n1\n2\n")
    with read_csv(stream) as rows:
        assert next(rows) == {"a": 1}
    assert stream.closed


def test_resource_failure_closes_session():
    class Broken(io.StringIO):
        def __next__(self):
            raise OSError("disk gone")

    rows = read_csv(Broken("a\n1\n"), header=False)
    with pytest.raises(OSError):
        next(rows)
    assert rows.closed


def test_reentrant_read_is_rejected(monkeypatch):
    holder = {}

    def reenter(value, rest):
        return holder["rows"].session.next_row()

    monkeypatch.setitem(STEPS, "reenter", reenter)
    rows = read_csv(io.StringIO("a\n1\n"), processor_specs={"a": ["reenter"]})
    holder["rows"] = rows
    with pytest.raises(ConcurrentAccessError):
        next(rows)
    rows.close()


def test_lenient_skips_bad_cells(caplog):
    data = "n\n1\nabc\n3\nx\n5\n"
    specs = {"n": ["optional", "integer"]}
    with caplog.at_level(logging.WARNING):
        rows = read_csv(io.StringIO(data), processor_specs=specs, strict=False)
        assert list(rows) == [{"n": 1}, {"n": 3}, {"n": 5}]
    assert "column='n' line=3" in caplog.text
    assert "column='n' line=5" in caplog.text


UNBALANCED = 'a;b;c\n1;2;3\n4;"5;6\n7;8;9\n10;11;12\n'


def test_lenient_resumes_after_unbalanced_quote():
    rows = read_csv(io.StringIO(UNBALANCED), strict=False, guess_types=False, silent=True)
    assert list(rows) == [
        {"a": "1", "b": "2", "c": "3"},
        {"a": "7", "b": "8", "c": "9"},
        {"a": "10", "b": "11", "c": "12"},
    ]
    assert rows.closed


def test_strict_unbalanced_quote_keeps_later_lines():
    rows = read_csv(io.StringIO(UNBALANCED), guess_types=False)
    assert next(rows) == {"a": "1", "b": "2", "c": "3"}
    with pytest.raises(csv.Error):
        next(rows)
    assert rows.session.line_number == 3
    assert next(rows) == {"a": "7", "b": "8", "c": "9"}
    assert rows.session.line_number == 4
    rows.close()


def test_character_stream_without_seek_is_refused():
    raw = io.BytesIO(b"a,b\n1,2\n")
    stream = codecs.getreader("utf-8")(raw)
    with pytest.raises(UnmarkableStreamError):
        read_csv(stream)
    assert raw.closed


def test_resolved_preference_is_used_as_given():
    pref = CsvPreference(delimiter="|")
    rows = read_csv(b"a|b\n1|2\n", preference=pref)
    assert rows.preference is pref
    assert list(rows) == [{"a": 1, "b": 2}]
