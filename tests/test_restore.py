from __future__ import annotations

import io

from recase.config import DecodeConfig
from recase.restore import restore_stream
from recase.text.beam_decode import BeamSearchDecoder
from recase.utils.io import iter_lines


class _CountingBuffer(io.BytesIO):
    def __init__(self) -> None:
        super().__init__()
        self.flushes = 0

    def flush(self) -> None:
        self.flushes += 1
        super().flush()


def test_restore_stream_writes_one_line_per_input(small_vocab, table_oracle, zero_state) -> None:
    oracle = table_oracle({1: [-9, -9, -9, -2.0, -9], 2: [-9, -9, -9, -0.5, -9]}, width=5)
    dec = BeamSearchDecoder(oracle, small_vocab, zero_state, DecodeConfig.create(beam_size=2))
    out = _CountingBuffer()

    n = restore_stream(["ab", "", " ab  "], dec, out)

    assert n == 2
    assert out.getvalue() == b"Ab\nAb\n"
    assert out.flushes == 2


def test_undecodable_bytes_pass_through(small_vocab, table_oracle, zero_state) -> None:
    dec = BeamSearchDecoder(table_oracle({}, width=5), small_vocab, zero_state, DecodeConfig.create(beam_size=2))
    src = io.BytesIO(b"a\xffb\r\nb\n\nlast")
    out = io.BytesIO()

    restore_stream(iter_lines(src), dec, out)

    assert out.getvalue() == b"a\xffb\nb\nlast\n"


def test_iter_lines_strips_terminators() -> None:
    src = io.BytesIO("x\r\ny\n\nz".encode("utf-8"))
    assert list(iter_lines(src)) == ["x", "y", "", "z"]


def test_iter_lines_accepts_any_byte_iterable() -> None:
    assert list(iter_lines([b"one\n", b"t\xc3\xa9\r\n"])) == ["one", "té"]
