import struct

import pytest

from io_scene_bfres.core import yaz0
from io_scene_bfres.core.errors import BfresError, TruncatedError, WrongMagicError


def _wrap(size, body):
    return yaz0.YAZ0_MAGIC + struct.pack(">I", size) + bytes(8) + bytes(body)


def test_literals_only():
    data = _wrap(3, [0xE0, ord("a"), ord("b"), ord("c")])
    assert yaz0.looks_like_yaz0(data)
    assert yaz0.decompressed_size(data) == 3
    assert yaz0.decompress(data) == b"abc"


def test_short_back_reference():
    # one literal, then copy 5 bytes from distance 1
    data = _wrap(6, [0x80, ord("x"), 0x30, 0x00])
    assert yaz0.decompress(data) == b"xxxxxx"


def test_long_back_reference():
    data = _wrap(0x13, [0xC0, ord("a"), ord("b"), 0x00, 0x01, 0x00])
    assert yaz0.decompress(data) == b"ab" * 9 + b"a"


def test_reference_before_start():
    data = _wrap(4, [0x00, 0x10, 0x05])
    with pytest.raises(BfresError):
        yaz0.decompress(data)


def test_truncated_stream():
    data = _wrap(8, [0xFF, ord("a")])
    with pytest.raises(TruncatedError):
        yaz0.decompress(data)


def test_header_checks():
    assert not yaz0.looks_like_yaz0(b"FRES" + bytes(12))
    with pytest.raises(WrongMagicError):
        yaz0.decompressed_size(b"Yaz1" + bytes(12))
    with pytest.raises(TruncatedError):
        yaz0.decompressed_size(b"Yaz0")
