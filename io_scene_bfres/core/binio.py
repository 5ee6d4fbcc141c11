"""Big-endian random-access reader and self-relative pointers.

Everything in a BFRES container is reached through 32-bit signed offsets that
are relative to the position they were read from, so the reader is seeked
freely and each `Pointer` remembers its origin.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from .errors import (
    EncodingError,
    NonZeroReservedError,
    PointerOutOfRangeError,
    TruncatedError,
    WrongMagicError,
)


class ByteSource:
    __slots__ = ("_b", "_o")

    def __init__(self, data: bytes, offset: int = 0):
        self._b = memoryview(bytes(data)) if not isinstance(data, memoryview) else data
        self._o = 0
        self.seek(offset)

    def __len__(self) -> int:
        return len(self._b)

    @property
    def tell(self) -> int:
        return self._o

    @property
    def buffer(self) -> memoryview:
        return self._b

    def fork(self, offset: Optional[int] = None) -> "ByteSource":
        """Independent cursor over the same buffer."""
        return ByteSource(self._b, self._o if offset is None else offset)

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > len(self._b):
            raise TruncatedError(offset, 0, len(self._b))
        self._o = offset

    def skip(self, size: int) -> None:
        self.seek(self._o + size)

    def align(self, boundary: int = 4) -> None:
        mask = boundary - 1
        if (self._o & mask) != 0:
            self.seek(self._o + boundary - (self._o & mask))

    def _take(self, size: int) -> int:
        o = self._o
        if size < 0 or o + size > len(self._b):
            raise TruncatedError(o, size, len(self._b))
        self._o = o + size
        return o

    def read(self, size: int) -> bytes:
        o = self._take(size)
        return self._b[o : o + size].tobytes()

    def _unpack(self, fmt: str, size: int):
        o = self._take(size)
        return struct.unpack_from(fmt, self._b, o)[0]

    def u8(self) -> int:
        return int(self._b[self._take(1)])

    def s8(self) -> int:
        return int(self._unpack(">b", 1))

    def u16(self) -> int:
        return int(self._unpack(">H", 2))

    def s16(self) -> int:
        return int(self._unpack(">h", 2))

    def u32(self) -> int:
        return int(self._unpack(">I", 4))

    def s32(self) -> int:
        return int(self._unpack(">i", 4))

    def f16(self) -> float:
        return float(self._unpack(">e", 2))

    def f32(self) -> float:
        return float(self._unpack(">f", 4))

    def cstring(self) -> str:
        start = self._o
        end = start
        limit = len(self._b)
        while end < limit and self._b[end] != 0:
            end += 1
        if end >= limit:
            raise TruncatedError(start, end - start + 1, limit)
        raw = self._b[start:end].tobytes()
        self._o = end + 1
        return _decode_utf8(start, raw)

    def string(self, length: int) -> str:
        start = self._o
        return _decode_utf8(start, self.read(length))

    def magic(self, expected: bytes) -> None:
        start = self._o
        found = self.read(len(expected))
        if found != expected:
            raise WrongMagicError(expected, found, start)

    def reserved_zero(self, field: str, width: int = 4) -> None:
        if width == 1:
            value = self.u8()
        elif width == 2:
            value = self.u16()
        else:
            value = self.u32()
        if value != 0:
            raise NonZeroReservedError(field, value)


def _decode_utf8(position: int, raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise EncodingError(position, raw) from None


@dataclass(frozen=True)
class Pointer:
    origin: Optional[int]
    delta: int

    @classmethod
    def absolute(cls, target: int) -> "Pointer":
        return cls(None, int(target))

    @classmethod
    def relative(cls, origin: int, delta: int) -> "Pointer":
        return cls(int(origin), int(delta))

    @classmethod
    def read(cls, src: ByteSource) -> "Pointer":
        origin = src.tell
        return cls(origin, src.s32())

    @property
    def is_null(self) -> bool:
        return self.delta == 0

    def resolve(self, limit: int) -> int:
        target = (0 if self.origin is None else self.origin) + self.delta
        if target < 0 or target > limit:
            raise PointerOutOfRangeError(self.origin, self.delta, limit)
        return target

    def seek(self, src: ByteSource) -> int:
        target = self.resolve(len(src))
        src.seek(target)
        return target

    def __str__(self) -> str:
        base = 0 if self.origin is None else self.origin
        return f"0x{base + self.delta:X}"
