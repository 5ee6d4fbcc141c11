"""Exception types raised by the BFRES decoders.

Every decoder stops at the first problem and raises one of these. Callers
that walk a container lazily can catch `BfresError` per record and keep the
rest of the container.
"""

from __future__ import annotations

from typing import List, Optional


class BfresError(ValueError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.context: List[str] = []

    def add_context(self, what: str) -> "BfresError":
        self.context.append(what)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} ({'; '.join(self.context)})"


class TruncatedError(BfresError, EOFError):
    def __init__(self, position: int, size: int, limit: int):
        super().__init__(
            f"read of {size} byte(s) at 0x{position:X} runs past end (0x{limit:X})"
        )
        self.position = position
        self.size = size
        self.limit = limit


class EncodingError(BfresError):
    def __init__(self, position: int, raw: bytes):
        super().__init__(f"invalid UTF-8 string at 0x{position:X}: {raw[:32]!r}")
        self.position = position
        self.raw = raw


class WrongMagicError(BfresError):
    def __init__(self, expected: bytes, found: bytes, position: Optional[int] = None):
        where = "" if position is None else f" at 0x{position:X}"
        super().__init__(f"wrong magic{where}: expected {expected!r}, found {found!r}")
        self.expected = expected
        self.found = found
        self.position = position


class UnsupportedEndiannessError(BfresError):
    def __init__(self, bom: int):
        super().__init__(
            f"byte order mark 0x{bom:04X} is not 0xFEFF (only big-endian files are supported)"
        )
        self.bom = bom


class UnexpectedHeaderLengthError(BfresError):
    def __init__(self, length: int):
        super().__init__(f"header length 0x{length:04X} is not 0x0010")
        self.length = length


class NonZeroReservedError(BfresError):
    def __init__(self, field: str, value: int):
        super().__init__(f"{field} must be zero on disk, found 0x{value:X}")
        self.field = field
        self.value = value


class MipmapCountMismatchError(BfresError):
    def __init__(self, first: int, second: int):
        super().__init__(f"mipmap counts disagree: {first} != {second}")
        self.first = first
        self.second = second


class UnknownEnumValueError(BfresError):
    def __init__(self, kind: str, value: int):
        super().__init__(f"unrecognized {kind} value 0x{value:X}")
        self.kind = kind
        self.value = value


class PointerOutOfRangeError(BfresError):
    def __init__(self, origin: Optional[int], delta: int, limit: int):
        base = 0 if origin is None else origin
        super().__init__(
            f"pointer 0x{base:X}{delta:+d} resolves to {base + delta} outside [0, 0x{limit:X}]"
        )
        self.origin = origin
        self.delta = delta
        self.limit = limit


class IndexGroupOverrunError(BfresError):
    def __init__(self, end: int, position: int, count: Optional[int] = None):
        if count is not None and count < 0:
            message = f"index group at 0x{position:X} declares {count} entries"
        else:
            message = f"index group read up to 0x{position:X}, past its declared end 0x{end:X}"
        super().__init__(message)
        self.end = end
        self.position = position
        self.count = count


class ArrayOutOfRangeError(BfresError, IndexError):
    def __init__(self, index: int, count: int):
        super().__init__(f"data array index {index} out of range (count={count})")
        self.index = index
        self.count = count


class UnsupportedTextureFormatError(BfresError):
    def __init__(self, fmt: object):
        super().__init__(f"no pixel decoder for texture format {fmt}")
        self.fmt = fmt


def enum_from(cls, value: int):
    """`cls(value)` for an on-disk code, or `UnknownEnumValueError`."""
    try:
        return cls(value)
    except ValueError:
        raise UnknownEnumValueError(cls.__name__, value) from None
