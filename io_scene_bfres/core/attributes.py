"""Vertex attribute formats.

Every format code fixes the lane count, lane width, signedness and whether the
lanes are normalised to floats. Integer-to-float divisors are explicit per
format instead of being derived from the lane width.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from .binio import ByteSource
from .errors import TruncatedError, enum_from

if TYPE_CHECKING:
    from .groups import BufferInfo

Number = Union[int, float]

UNORM = "unorm"
UINT = "uint"
SNORM = "snorm"
SINT = "sint"
FLOAT = "float"
PACKED10 = "packed10"


@dataclass(frozen=True)
class AttributeLayout:
    lanes: int
    lane_bits: int
    kind: str
    to_float: bool
    divisor: Optional[int] = None

    @property
    def element_bytes(self) -> int:
        if self.kind == PACKED10:
            return 4
        return self.lanes * self.lane_bits // 8

    @property
    def struct_format(self) -> str:
        if self.kind == PACKED10:
            return ">I"
        if self.kind == FLOAT:
            code = "e" if self.lane_bits == 16 else "f"
        elif self.kind in (UNORM, UINT):
            code = {8: "B", 16: "H", 32: "I"}[self.lane_bits]
        else:
            code = {8: "b", 16: "h", 32: "i"}[self.lane_bits]
        return ">" + code * self.lanes


class AttributeFormat(enum.IntEnum):
    UNORM_8 = 0x000
    UNORM_8_8 = 0x004
    UNORM_16_16 = 0x007
    UNORM_8_8_8_8 = 0x00A
    UINT_8 = 0x100
    UINT_8_8 = 0x104
    UINT_8_8_8_8 = 0x10A
    SNORM_8 = 0x200
    SNORM_8_8 = 0x204
    SNORM_16_16 = 0x207
    SNORM_8_8_8_8 = 0x20A
    SNORM_10_10_10_2 = 0x20B
    SINT_8 = 0x300
    SINT_8_8 = 0x304
    SINT_8_8_8_8 = 0x30A
    FLOAT_32 = 0x806
    FLOAT_16_16 = 0x808
    FLOAT_32_32 = 0x80D
    FLOAT_16_16_16_16 = 0x80F
    FLOAT_32_32_32 = 0x811
    FLOAT_32_32_32_32 = 0x813

    @classmethod
    def from_code(cls, code: int) -> "AttributeFormat":
        return enum_from(cls, code)

    @property
    def layout(self) -> AttributeLayout:
        return _LAYOUTS[self]

    def decode_element(self, buf, offset: int) -> Tuple[Number, ...]:
        lay = self.layout
        raw = struct.unpack_from(lay.struct_format, buf, offset)
        if lay.kind == PACKED10:
            word = raw[0]
            lanes = (_sign10((word >> 20) & 0x3FF), _sign10((word >> 10) & 0x3FF), _sign10(word & 0x3FF))
            return tuple(v / lay.divisor for v in lanes)
        if lay.divisor is not None:
            return tuple(v / lay.divisor for v in raw)
        if lay.kind == FLOAT:
            return tuple(float(v) for v in raw)
        return tuple(int(v) for v in raw)

    def read_stream(
        self, src: ByteSource, start: int, stride: int, count: int
    ) -> List[Tuple[Number, ...]]:
        """`count` elements starting at `start`, `stride` bytes apart."""
        size = self.layout.element_bytes
        step = stride if stride > 0 else size
        buf = src.buffer
        out: List[Tuple[Number, ...]] = []
        for i in range(count):
            o = start + i * step
            if o < 0 or o + size > len(buf):
                raise TruncatedError(o, size, len(buf))
            out.append(self.decode_element(buf, o))
        return out

    def read_buffer(
        self,
        src: ByteSource,
        buffer_info: "BufferInfo",
        attribute_offset: int = 0,
        count: Optional[int] = None,
    ) -> List[Tuple[Number, ...]]:
        start = buffer_info.data_position(src)
        if count is None:
            count = buffer_info.size // buffer_info.stride if buffer_info.stride else 0
        return self.read_stream(src, start + attribute_offset, buffer_info.stride, count)

    def __str__(self) -> str:
        return f"{self.name} (0x{int(self):04X})"


def _sign10(v: int) -> int:
    return v - 0x400 if v & 0x200 else v


_LAYOUTS: Dict[AttributeFormat, AttributeLayout] = {
    AttributeFormat.UNORM_8: AttributeLayout(1, 8, UNORM, True, 255),
    AttributeFormat.UNORM_8_8: AttributeLayout(2, 8, UNORM, True, 255),
    AttributeFormat.UNORM_16_16: AttributeLayout(2, 16, UNORM, True, 65536),
    AttributeFormat.UNORM_8_8_8_8: AttributeLayout(4, 8, UNORM, True, 255),
    AttributeFormat.UINT_8: AttributeLayout(1, 8, UINT, False),
    AttributeFormat.UINT_8_8: AttributeLayout(2, 8, UINT, False),
    AttributeFormat.UINT_8_8_8_8: AttributeLayout(4, 8, UINT, False),
    AttributeFormat.SNORM_8: AttributeLayout(1, 8, SNORM, True, 127),
    AttributeFormat.SNORM_8_8: AttributeLayout(2, 8, SNORM, True, 127),
    AttributeFormat.SNORM_16_16: AttributeLayout(2, 16, SNORM, True, 32767),
    AttributeFormat.SNORM_8_8_8_8: AttributeLayout(4, 8, SNORM, True, 127),
    AttributeFormat.SNORM_10_10_10_2: AttributeLayout(3, 10, PACKED10, True, 512),
    AttributeFormat.SINT_8: AttributeLayout(1, 8, SINT, False),
    AttributeFormat.SINT_8_8: AttributeLayout(2, 8, SINT, False),
    AttributeFormat.SINT_8_8_8_8: AttributeLayout(4, 8, SINT, False),
    AttributeFormat.FLOAT_32: AttributeLayout(1, 32, FLOAT, True),
    AttributeFormat.FLOAT_16_16: AttributeLayout(2, 16, FLOAT, True),
    AttributeFormat.FLOAT_32_32: AttributeLayout(2, 32, FLOAT, True),
    AttributeFormat.FLOAT_16_16_16_16: AttributeLayout(4, 16, FLOAT, True),
    AttributeFormat.FLOAT_32_32_32: AttributeLayout(3, 32, FLOAT, True),
    AttributeFormat.FLOAT_32_32_32_32: AttributeLayout(4, 32, FLOAT, True),
}
