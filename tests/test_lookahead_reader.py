from __future__ import annotations

import io
from pathlib import Path
from typing import List

import pytest

from common.errors import ErrorCode, LookAheadError, ReaderError
from common.models import (
    END_OF_STREAM,
    UNDEFINED,
    GlobalSettings,
    ReaderConfig,
    ReaderSettings,
    ReaderSnapshot,
)
from core.reader import BufferedCharSource, LookaheadLineReader


def test_fresh_reader_state() -> None:
    reader = LookaheadLineReader.from_string("abc")
    assert reader.position == 0
    assert reader.eol_counter == 0
    assert reader.last_char is UNDEFINED
    assert reader.current_line_number == 0
    assert not reader.closed


def test_crlf_counts_as_single_line_break() -> None:
    reader = LookaheadLineReader.from_string("a\r\nb")
    line_numbers = []
    for _ in range(4):
        reader.read()
        line_numbers.append(reader.current_line_number)
    assert line_numbers == [1, 1, 1, 2]
    assert reader.eol_counter == 1
    assert reader.position == 4


def test_lone_cr_and_lone_lf_each_count() -> None:
    reader = LookaheadLineReader.from_string("a\rb\nc")
    assert _drain(reader) == "a\rb\nc"
    assert reader.eol_counter == 3


def test_unterminated_last_line_counted_once_at_end() -> None:
    reader = LookaheadLineReader.from_string("abc")
    assert _drain(reader) == "abc"
    assert reader.eol_counter == 1
    assert reader.read() is END_OF_STREAM
    assert reader.eol_counter == 1
    assert reader.position == 3
    assert reader.last_char is END_OF_STREAM
    assert reader.current_line_number == 1


def test_terminated_last_line_not_counted_again_at_end() -> None:
    reader = LookaheadLineReader.from_string("abc\r\n")
    _drain(reader)
    assert reader.eol_counter == 1
    assert reader.current_line_number == 1


def test_end_of_empty_stream_counts_once() -> None:
    reader = LookaheadLineReader.from_string("")
    assert reader.read() is END_OF_STREAM
    assert reader.read() is END_OF_STREAM
    assert reader.eol_counter == 1
    assert reader.position == 0


def test_look_ahead_is_non_destructive() -> None:
    reader = LookaheadLineReader.from_string("xy")
    assert [reader.look_ahead() for _ in range(3)] == ["x", "x", "x"]
    assert reader.position == 0
    assert reader.last_char is UNDEFINED
    assert reader.read() == "x"
    assert reader.look_ahead() == "y"
    assert reader.last_char == "x"
    assert reader.current_line_number == 1


def test_look_ahead_at_end_of_stream() -> None:
    reader = LookaheadLineReader.from_string("a")
    reader.read()
    assert reader.look_ahead() is END_OF_STREAM
    assert reader.last_char == "a"
    assert reader.eol_counter == 0


def test_look_ahead_chars_returns_upcoming_run() -> None:
    reader = LookaheadLineReader.from_string("abcdef")
    reader.read()
    assert reader.look_ahead_chars(3) == ["b", "c", "d"]
    assert reader.position == 1
    assert reader.read() == "b"


def test_look_ahead_chars_pads_past_end() -> None:
    reader = LookaheadLineReader.from_string("ab")
    assert reader.look_ahead_chars(4) == ["a", "b", "\0", "\0"]
    assert reader.read() == "a"


def test_look_ahead_into_reports_valid_count_and_keeps_stale_slots() -> None:
    reader = LookaheadLineReader.from_string("ab")
    buffer = ["x"] * 4
    assert reader.look_ahead_into(buffer) == 2
    assert buffer == ["a", "b", "x", "x"]
    assert reader.position == 0


def test_look_ahead_over_refill_boundary() -> None:
    reader = LookaheadLineReader(BufferedCharSource(_stream("abcdefgh"), bufsize=2), max_lookahead=8)
    reader.read()
    assert reader.look_ahead_chars(6) == list("bcdefg")
    assert _drain(reader) == "bcdefgh"


@pytest.mark.parametrize("count", [-1, 1.5, True])
def test_invalid_look_ahead_count_rejected_before_io(count) -> None:
    source = _RecordingSource("abc")
    reader = LookaheadLineReader(source)
    with pytest.raises(LookAheadError) as exc:
        reader.look_ahead_chars(count)
    assert exc.value.code == ErrorCode.LOOKAHEAD_ERROR
    assert source.calls == []


def test_look_ahead_beyond_limit_rejected_before_io() -> None:
    source = _RecordingSource("abc")
    reader = LookaheadLineReader(source, max_lookahead=2)
    with pytest.raises(LookAheadError) as exc:
        reader.look_ahead_chars(3)
    assert exc.value.context == {"requested": 3, "limit": 2}
    assert source.calls == []


def test_zero_look_ahead_skips_source() -> None:
    source = _RecordingSource("abc")
    reader = LookaheadLineReader(source)
    assert reader.look_ahead_chars(0) == []
    assert source.calls == []


def test_read_into_counts_lines_and_position() -> None:
    reader = LookaheadLineReader.from_string("ab\ncd")
    buffer = [""] * 8
    assert reader.read_into(buffer) == 5
    assert "".join(buffer[:5]) == "ab\ncd"
    assert reader.position == 5
    assert reader.eol_counter == 1
    assert reader.last_char == "d"
    assert reader.current_line_number == 2


def test_read_into_with_offset() -> None:
    reader = LookaheadLineReader.from_string("xyz")
    buffer = ["-"] * 5
    assert reader.read_into(buffer, 2, 3) == 3
    assert buffer == ["-", "-", "x", "y", "z"]
    assert reader.position == 3


def test_read_into_zero_length_is_no_op() -> None:
    source = _RecordingSource("a\nb")
    reader = LookaheadLineReader(source)
    reader.read()
    source.calls.clear()
    before = reader.snapshot()
    assert reader.read_into([""] * 4, 1, 0) == 0
    assert source.calls == []
    assert reader.snapshot() == before


def test_read_into_invalid_slice_rejected() -> None:
    source = _RecordingSource("abc")
    reader = LookaheadLineReader(source)
    with pytest.raises(ReaderError) as exc:
        reader.read_into([""] * 2, 1, 2)
    assert exc.value.code == ErrorCode.INVALID_ARGUMENT
    assert source.calls == []


def test_crlf_split_across_block_reads_counts_once() -> None:
    reader = LookaheadLineReader.from_string("ab\r\ncd")
    buffer = [""] * 3
    assert reader.read_into(buffer) == 3
    assert reader.last_char == "\r"
    assert reader.eol_counter == 1
    assert reader.read_into(buffer) == 3
    assert buffer == ["\n", "c", "d"]
    assert reader.eol_counter == 1
    assert reader.current_line_number == 2


def test_crlf_split_by_short_delivery_counts_once() -> None:
    source = _ChunkedSource("a\r\nb\r\n", chunks=[2, 2, 2])
    reader = LookaheadLineReader(source)
    buffer = [""] * 16
    total = 0
    while (count := reader.read_into(buffer)) > 0:
        total += count
    assert total == 6
    assert reader.eol_counter == 2
    assert reader.last_char is END_OF_STREAM


def test_cr_then_crlf_across_blocks() -> None:
    reader = LookaheadLineReader.from_string("a\r\r\n")
    buffer = [""] * 2
    reader.read_into(buffer)
    reader.read_into(buffer)
    assert reader.eol_counter == 2


def test_lf_at_block_start_after_plain_char_counts() -> None:
    reader = LookaheadLineReader.from_string("a\nb")
    reader.read_into([""])
    reader.read_into([""] * 2)
    assert reader.eol_counter == 1


def test_single_char_cr_then_block_lf_counts_once() -> None:
    reader = LookaheadLineReader.from_string("a\r\nb")
    reader.read()
    reader.read()
    buffer = [""] * 4
    assert reader.read_into(buffer) == 2
    assert reader.eol_counter == 1
    assert reader.position == 4


def test_read_into_at_end_of_stream() -> None:
    reader = LookaheadLineReader.from_string("ab")
    buffer = [""] * 4
    reader.read_into(buffer)
    assert reader.read_into(buffer) == 0
    assert reader.last_char is END_OF_STREAM
    assert reader.position == 2
    assert reader.eol_counter == 0


def test_read_logical_line_splits_on_lf() -> None:
    reader = LookaheadLineReader.from_string("x\ny")
    assert reader.read_logical_line() == "x"
    assert (reader.position, reader.eol_counter) == (2, 1)
    assert reader.read_logical_line() == "y"
    assert (reader.position, reader.eol_counter) == (3, 2)
    assert reader.read_logical_line() is None
    assert (reader.position, reader.eol_counter) == (3, 2)
    assert reader.last_char is END_OF_STREAM


def test_read_logical_line_on_empty_stream_consumes_nothing() -> None:
    reader = LookaheadLineReader.from_string("")
    assert reader.read_logical_line() is None
    assert reader.position == 0
    assert reader.eol_counter == 0
    assert reader.last_char is UNDEFINED


def test_read_logical_line_swallows_crlf() -> None:
    reader = LookaheadLineReader.from_string("a\r\nb\r\n")
    assert reader.read_logical_line() == "a"
    assert reader.last_char == "\n"
    assert reader.read_logical_line() == "b"
    assert reader.read_logical_line() is None
    assert reader.eol_counter == 2
    assert reader.position == 6


def test_read_logical_line_lone_cr() -> None:
    reader = LookaheadLineReader.from_string("a\rb")
    assert reader.read_logical_line() == "a"
    assert reader.last_char == "\r"
    assert reader.read_logical_line() == "b"
    assert reader.eol_counter == 2


def test_read_logical_line_keeps_empty_lines() -> None:
    reader = LookaheadLineReader.from_string("\n\r\n")
    assert list(reader) == ["", ""]
    assert reader.eol_counter == 2


def test_iterating_reader_yields_lines() -> None:
    reader = LookaheadLineReader.from_string("h1,h2\nv1,v2\n")
    assert list(reader) == ["h1,h2", "v1,v2"]


def test_close_forces_end_of_stream_and_is_idempotent() -> None:
    source = _RecordingSource("a\nb")
    reader = LookaheadLineReader(source)
    reader.read()
    reader.close()
    reader.close()
    assert reader.closed
    assert reader.last_char is END_OF_STREAM
    assert reader.current_line_number == 0
    assert source.calls.count("close") == 1


def test_failing_close_leaves_reader_closed() -> None:
    reader = LookaheadLineReader(_FailingCloseSource("abc"))
    reader.read()
    with pytest.raises(OSError):
        reader.close()
    assert reader.closed
    assert reader.last_char is END_OF_STREAM
    reader.close()


def test_read_after_close_surfaces_source_error() -> None:
    reader = LookaheadLineReader.from_string("abc")
    reader.close()
    with pytest.raises(ReaderError) as exc:
        reader.read()
    assert exc.value.code == ErrorCode.IO_ERROR


def test_context_manager_closes_reader() -> None:
    with LookaheadLineReader.from_string("abc") as reader:
        reader.read()
    assert reader.closed


def test_snapshot_reflects_cursor_state() -> None:
    reader = LookaheadLineReader.from_string("ab\n")
    reader.read()
    assert reader.snapshot() == ReaderSnapshot(position=1, line_number=1, last_char="'a'", closed=False)
    reader.close()
    assert reader.snapshot() == ReaderSnapshot(
        position=1, line_number=0, last_char="end-of-stream", closed=True
    )


def test_invalid_max_lookahead_rejected() -> None:
    with pytest.raises(ReaderError):
        LookaheadLineReader(BufferedCharSource("abc"), max_lookahead=0)


def test_from_path_uses_configuration(tmp_path: Path) -> None:
    path = tmp_path / "data.csv"
    path.write_bytes("id;name\r\n1;\u0436\u0443\u043a\r\n".encode("cp1251"))
    config = ReaderConfig(
        global_settings=GlobalSettings(encoding="cp1251"),
        profile=ReaderSettings(buffer_size=4, max_lookahead=4),
    )
    with LookaheadLineReader.from_path(path, config) as reader:
        assert reader.name == str(path)
        assert reader.max_lookahead == 4
        assert list(reader) == ["id;name", "1;\u0436\u0443\u043a"]
        assert reader.eol_counter == 2


def _drain(reader: LookaheadLineReader) -> str:
    chars = []
    while (char := reader.read()) is not END_OF_STREAM:
        chars.append(char)
    return "".join(chars)


def _stream(text: str) -> io.StringIO:
    return io.StringIO(text)


class _RecordingSource(BufferedCharSource):
    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.calls: List[str] = []

    def read(self):
        self.calls.append("read")
        return super().read()

    def readinto(self, buffer, offset, length):
        self.calls.append("readinto")
        return super().readinto(buffer, offset, length)

    def mark(self, read_ahead_limit):
        self.calls.append("mark")
        super().mark(read_ahead_limit)

    def reset(self):
        self.calls.append("reset")
        super().reset()

    def close(self):
        self.calls.append("close")
        super().close()


class _ChunkedSource(BufferedCharSource):
    """Delivers block reads in short chunks, the way a pipe or socket may."""

    def __init__(self, text: str, chunks: List[int]) -> None:
        super().__init__(text)
        self._chunks = list(chunks)

    def readinto(self, buffer, offset, length):
        if self._chunks:
            length = min(length, self._chunks.pop(0))
        return super().readinto(buffer, offset, length)


class _FailingCloseSource(BufferedCharSource):
    def close(self) -> None:
        raise OSError("disk detached")
