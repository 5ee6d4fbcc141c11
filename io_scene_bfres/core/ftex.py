"""FTEX texture sub-files (GX2 surface descriptors)."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .binio import ByteSource, Pointer
from .errors import MipmapCountMismatchError, enum_from


class Dimension(enum.IntEnum):
    D1 = 0
    D2 = 1
    D3 = 2
    CUBE = 3
    D1_ARRAY = 4
    D2_ARRAY = 5
    D2_MSAA = 6
    D2_MSAA_ARRAY = 7


class AAMode(enum.IntEnum):
    X1 = 0
    X2 = 1
    X4 = 2
    X8 = 3

    @property
    def samples(self) -> int:
        return 1 << int(self)


class TextureFormat(enum.IntEnum):
    R8_UNORM = 0x001
    R8_UINT = 0x101
    R8_SNORM = 0x201
    R8_SINT = 0x301
    R4_G4_UNORM = 0x002
    R16_UNORM = 0x005
    R16_UINT = 0x105
    R16_SNORM = 0x205
    R16_SINT = 0x305
    R16_FLOAT = 0x806
    R8_G8_UNORM = 0x007
    R8_G8_UINT = 0x107
    R8_G8_SNORM = 0x207
    R8_G8_SINT = 0x307
    R5_G6_B5_UNORM = 0x008
    R5_G5_B5_A1_UNORM = 0x00A
    R4_G4_B4_A4_UNORM = 0x00B
    A1_B5_G5_R5_UNORM = 0x00C
    R32_UINT = 0x10D
    R32_SINT = 0x30D
    R32_FLOAT = 0x80E
    R16_G16_UNORM = 0x00F
    R16_G16_UINT = 0x10F
    R16_G16_SNORM = 0x20F
    R16_G16_SINT = 0x30F
    R16_G16_FLOAT = 0x810
    X24_G8_UINT = 0x111
    D24_S8_FLOAT = 0x811
    R11_G11_B10_FLOAT = 0x816
    R10_G10_B10_A2_UNORM = 0x019
    R10_G10_B10_A2_UINT = 0x119
    R10_G10_B10_A2_SNORM = 0x219
    R10_G10_B10_A2_SINT = 0x319
    R8_G8_B8_A8_UNORM = 0x01A
    R8_G8_B8_A8_UINT = 0x11A
    R8_G8_B8_A8_SNORM = 0x21A
    R8_G8_B8_A8_SINT = 0x31A
    R8_G8_B8_A8_SRGB = 0x41A
    A2_B10_G10_R10_UNORM = 0x01B
    A2_B10_G10_R10_UINT = 0x11B
    X32_G8_UINT_X24 = 0x11C
    R32_G32_UINT = 0x11D
    R32_G32_SINT = 0x31D
    R32_G32_FLOAT = 0x81E
    R16_G16_B16_A16_UNORM = 0x01F
    R16_G16_B16_A16_UINT = 0x11F
    R16_G16_B16_A16_SNORM = 0x21F
    R16_G16_B16_A16_SINT = 0x31F
    R16_G16_B16_A16_FLOAT = 0x820
    R32_G32_B32_A32_UINT = 0x122
    R32_G32_B32_A32_SINT = 0x322
    R32_G32_B32_A32_FLOAT = 0x823
    BC1_UNORM = 0x031
    BC1_SRGB = 0x431
    BC2_UNORM = 0x032
    BC2_SRGB = 0x432
    BC3_UNORM = 0x033
    BC3_SRGB = 0x433
    BC4_UNORM = 0x034
    BC4_SNORM = 0x234
    BC5_UNORM = 0x035
    BC5_SNORM = 0x235
    NV12_UNORM = 0x081

    @property
    def base(self) -> int:
        """Low byte of the code: the storage layout without the numeric type."""
        return int(self) & 0xFF

    @property
    def is_block_compressed(self) -> bool:
        return 0x31 <= self.base <= 0x35

    @property
    def bits_per_pixel(self) -> int:
        """Bits per pixel, or per 4x4 block for BC formats."""
        return _BITS_PER_ELEMENT[self.base]

    @property
    def block_bytes(self) -> int:
        return self.bits_per_pixel // 8

    @property
    def is_srgb(self) -> bool:
        return (int(self) & 0x400) != 0


_BITS_PER_ELEMENT: Dict[int, int] = {
    0x01: 8,
    0x02: 8,
    0x05: 16,
    0x06: 16,
    0x07: 16,
    0x08: 16,
    0x0A: 16,
    0x0B: 16,
    0x0C: 16,
    0x0D: 32,
    0x0E: 32,
    0x0F: 32,
    0x10: 32,
    0x11: 32,
    0x16: 32,
    0x19: 32,
    0x1A: 32,
    0x1B: 32,
    0x1C: 64,
    0x1D: 64,
    0x1E: 64,
    0x1F: 64,
    0x20: 64,
    0x22: 128,
    0x23: 128,
    0x31: 64,
    0x32: 128,
    0x33: 128,
    0x34: 64,
    0x35: 128,
    0x81: 8,
}


class TileMode(enum.IntEnum):
    DEFAULT = 0x00
    LINEAR_ALIGNED = 0x01
    TILED_1D_THIN1 = 0x02
    TILED_1D_THICK = 0x03
    TILED_2D_THIN1 = 0x04
    TILED_2D_THIN2 = 0x05
    TILED_2D_THIN4 = 0x06
    TILED_2D_THICK = 0x07
    TILED_2B_THIN1 = 0x08
    TILED_2B_THIN2 = 0x09
    TILED_2B_THIN4 = 0x0A
    TILED_2B_THICK = 0x0B
    TILED_3D_THIN1 = 0x0C
    TILED_3D_THICK = 0x0D
    TILED_3B_THIN1 = 0x0E
    TILED_3B_THICK = 0x0F
    LINEAR_SPECIAL = 0x10

    @property
    def is_linear(self) -> bool:
        return self in (TileMode.DEFAULT, TileMode.LINEAR_ALIGNED)

    @property
    def is_micro_tiled(self) -> bool:
        return self in (TileMode.TILED_1D_THIN1, TileMode.TILED_1D_THICK)

    @property
    def is_bank_swapped(self) -> bool:
        return self in (
            TileMode.TILED_2B_THIN1,
            TileMode.TILED_2B_THIN2,
            TileMode.TILED_2B_THIN4,
            TileMode.TILED_2B_THICK,
            TileMode.TILED_3B_THIN1,
            TileMode.TILED_3B_THICK,
        )

    @property
    def is_thick(self) -> bool:
        return self in (
            TileMode.TILED_2D_THICK,
            TileMode.TILED_2B_THICK,
            TileMode.TILED_3D_THICK,
            TileMode.TILED_3B_THICK,
        )

    @property
    def aspect_ratio(self) -> int:
        if self in (TileMode.TILED_2D_THIN2, TileMode.TILED_2B_THIN2):
            return 2
        if self in (TileMode.TILED_2D_THIN4, TileMode.TILED_2B_THIN4):
            return 4
        return 1

    @property
    def surface_thickness(self) -> int:
        if self.is_thick or self == TileMode.TILED_1D_THICK:
            return 4
        if self == TileMode.LINEAR_SPECIAL:
            return 8
        return 1


class Channel(enum.IntEnum):
    RED = 0
    GREEN = 1
    BLUE = 2
    ALPHA = 3
    ZERO = 4
    ONE = 5


@dataclass(frozen=True)
class ComponentSelector:
    channels: Tuple[Channel, Channel, Channel, Channel]

    @classmethod
    def read(cls, src: ByteSource) -> "ComponentSelector":
        return cls(tuple(enum_from(Channel, src.u8()) for _ in range(4)))

    def __str__(self) -> str:
        return ", ".join(c.name.title() for c in self.channels)


@dataclass(frozen=True)
class Usage:
    raw: int
    texture: bool
    color_buffer: bool
    depth_buffer: bool
    scan_buffer: bool
    final_tv: bool

    @classmethod
    def from_bits(cls, raw: int) -> "Usage":
        return cls(
            raw=raw,
            texture=bool(raw & 1),
            color_buffer=bool(raw & 2),
            depth_buffer=bool(raw & 4),
            scan_buffer=bool(raw & 8),
            final_tv=bool(raw & (1 << 31)),
        )

    def names(self) -> List[str]:
        out = []
        for label, flag in (
            ("Texture", self.texture),
            ("Color Buffer", self.color_buffer),
            ("Depth Buffer", self.depth_buffer),
            ("Scan Buffer", self.scan_buffer),
            ("Final TV", self.final_tv),
        ):
            if flag:
                out.append(label)
        return out


@dataclass(frozen=True)
class FtexHeader:
    dimension: Dimension
    width: int
    height: int
    depth: int
    mipmap_count: int
    format: TextureFormat
    aa_mode: AAMode
    usage: Usage
    data_length: int
    mipmap_data_length: int
    tile_mode: TileMode
    swizzle: int
    alignment: int
    pitch: int
    mipmap_offsets: Tuple[int, ...]
    first_mipmap: int
    mipmap_count_duplicate: int
    slice_count: int
    component_selector: ComponentSelector
    texture_registers: Tuple[int, ...]
    array_length: int
    name_offset: Pointer
    path_offset: Pointer
    data_offset: Pointer
    mipmap_offset: Pointer
    user_data_index_group_offset: Pointer
    user_data_entry_count: int

    @classmethod
    def read(cls, src: ByteSource) -> "FtexHeader":
        src.magic(b"FTEX")
        dimension = enum_from(Dimension, src.u32())
        width = src.u32()
        height = src.u32()
        depth = src.u32()
        mipmap_count = src.u32()
        fmt = enum_from(TextureFormat, src.u32())
        aa_mode = enum_from(AAMode, src.u32())
        usage = Usage.from_bits(src.u32())
        data_length = src.u32()
        src.reserved_zero("FTEX.data_pointer")
        mipmap_data_length = src.u32()
        src.reserved_zero("FTEX.mipmap_pointer")
        tile_mode = enum_from(TileMode, src.u32())
        swizzle = src.u32()
        alignment = src.u32()
        pitch = src.u32()
        mipmap_offsets = tuple(src.u32() for _ in range(13))
        first_mipmap = src.u32()
        mipmap_count_duplicate = src.u32()
        if mipmap_count_duplicate != mipmap_count:
            raise MipmapCountMismatchError(mipmap_count, mipmap_count_duplicate)
        src.reserved_zero("FTEX.first_slice")
        slice_count = src.u32()
        component_selector = ComponentSelector.read(src)
        texture_registers = tuple(src.u32() for _ in range(5))
        src.reserved_zero("FTEX.texture_handle")
        array_length = src.u32()
        pointers = [Pointer.read(src) for _ in range(5)]
        user_data_entry_count = src.u16()
        return cls(
            dimension,
            width,
            height,
            depth,
            mipmap_count,
            fmt,
            aa_mode,
            usage,
            data_length,
            mipmap_data_length,
            tile_mode,
            swizzle,
            alignment,
            pitch,
            mipmap_offsets,
            first_mipmap,
            mipmap_count_duplicate,
            slice_count,
            component_selector,
            texture_registers,
            array_length,
            *pointers,
            user_data_entry_count,
        )


@dataclass(frozen=True)
class Ftex:
    header: FtexHeader

    @classmethod
    def read(cls, src: ByteSource) -> "Ftex":
        return cls(FtexHeader.read(src))

    def name(self, src: ByteSource) -> Optional[str]:
        ptr = self.header.name_offset
        if ptr.is_null:
            return None
        cur = src.fork()
        ptr.seek(cur)
        return cur.cstring()

    def data_position(self, src: ByteSource) -> int:
        return self.header.data_offset.resolve(len(src))

    def image_bytes(self, src: ByteSource) -> bytes:
        cur = src.fork()
        self.header.data_offset.seek(cur)
        return cur.read(self.header.data_length)

    def mipmap_bytes(self, src: ByteSource) -> bytes:
        h = self.header
        if h.mipmap_offset.is_null or h.mipmap_data_length == 0:
            return b""
        cur = src.fork()
        h.mipmap_offset.seek(cur)
        return cur.read(h.mipmap_data_length)
