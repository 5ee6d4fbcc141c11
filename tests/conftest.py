from __future__ import annotations

import struct
from typing import Dict, List, Optional, Sequence, Tuple

import pytest


class Blob:
    """Append-only big-endian writer with back-patched self-relative pointers."""

    def __init__(self, prefix: bytes = b""):
        self.buf = bytearray(prefix)

    @property
    def pos(self) -> int:
        return len(self.buf)

    def raw(self, data: bytes) -> "Blob":
        self.buf += data
        return self

    def u8(self, v: int) -> "Blob":
        return self.raw(struct.pack(">B", v))

    def u16(self, v: int) -> "Blob":
        return self.raw(struct.pack(">H", v))

    def s16(self, v: int) -> "Blob":
        return self.raw(struct.pack(">h", v))

    def u32(self, v: int) -> "Blob":
        return self.raw(struct.pack(">I", v))

    def s32(self, v: int) -> "Blob":
        return self.raw(struct.pack(">i", v))

    def f32(self, *vs: float) -> "Blob":
        for v in vs:
            self.raw(struct.pack(">f", v))
        return self

    def zeros(self, n: int) -> "Blob":
        return self.raw(bytes(n))

    def align(self, n: int = 4) -> "Blob":
        while self.pos % n:
            self.buf.append(0)
        return self

    def slot(self) -> int:
        pos = self.pos
        self.s32(0)
        return pos

    def point(self, slot: int, target: int) -> None:
        struct.pack_into(">i", self.buf, slot, target - slot)

    def put_u32(self, at: int, v: int) -> None:
        struct.pack_into(">I", self.buf, at, v)

    def cstring(self, s: str) -> int:
        pos = self.pos
        self.raw(s.encode("utf-8") + b"\0")
        return pos

    def table_string(self, s: str) -> int:
        """String-table record; returns the position name pointers target."""
        self.align(4)
        data = s.encode("utf-8")
        self.u32(len(data))
        key = self.pos
        self.raw(data + b"\0")
        self.align(4)
        return key

    def index_group(self, names: Sequence[int]) -> Tuple[int, List[int]]:
        """Index group with one entry per name key; returns data-pointer slots."""
        start = self.pos
        self.u32(4 + 0x10 * (len(names) + 1))
        self.s32(len(names))
        self.u32(0xFFFFFFFF).u16(1).u16(0).s32(0).s32(0)
        data_slots = []
        for i, key in enumerate(names):
            self.u32(i).u16(i + 1).u16(i + 1)
            self.point(self.slot(), key)
            data_slots.append(self.slot())
        return start, data_slots

    def buffer_info(self, size: int, stride: int) -> int:
        """Buffer-info record; returns its data-pointer slot."""
        self.u32(0).u32(size).u32(0).u16(stride).u16(1).u32(0)
        return self.slot()

    def bytes(self) -> bytes:
        return bytes(self.buf)


class FresBuilder:
    """Minimal FRES container: header, strings, then caller-written records."""

    HEADER_SIZE = 0x6C

    def __init__(self, file_name: Optional[str] = "demo", version: bytes = b"\x03\x04\x00\x00"):
        self.blob = Blob()
        b = self.blob
        b.raw(b"FRES").raw(version).u16(0xFEFF).u16(0x0010)
        self._file_length = b.slot()
        b.u32(0x2000)
        self._name_slot = b.slot()
        self._table_length = b.slot()
        self._table_slot = b.slot()
        self.slot_pointers = [b.slot() for _ in range(12)]
        self._counts_at = b.pos
        b.zeros(2 * 12)
        b.u32(0)
        self.strings: Dict[str, int] = {}
        self._file_name = file_name

    def write_strings(self, names: Sequence[str]) -> None:
        b = self.blob
        start = b.pos
        b.point(self._table_slot, start)
        all_names = list(names)
        if self._file_name is not None and self._file_name not in all_names:
            all_names.insert(0, self._file_name)
        for n in all_names:
            self.strings[n] = b.table_string(n)
        b.put_u32(self._table_length, b.pos - start)
        if self._file_name is not None:
            b.point(self._name_slot, self.strings[self._file_name])

    def directory(self, kind: int, names: Sequence[str]) -> List[int]:
        b = self.blob
        b.align(4)
        start, slots = b.index_group([self.strings[n] for n in names])
        b.point(self.slot_pointers[kind], start)
        struct.pack_into(">H", b.buf, self._counts_at + 2 * kind, len(names))
        return slots

    def finish(self) -> bytes:
        self.blob.align(4)
        self.blob.put_u32(self._file_length, self.blob.pos)
        return self.blob.bytes()


def write_bone(b: Blob, name_key: int, index: int, parent: int, flags: int,
               rotation=(0.0, 0.0, 0.0, 1.0), translation=(0.0, 0.0, 0.0)) -> int:
    pos = b.pos
    b.point(b.slot(), name_key)
    b.u16(index).u16(parent).s16(-1).s16(index).s16(-1).u16(0).u32(flags)
    b.f32(1.0, 1.0, 1.0)
    b.f32(*rotation)
    b.f32(*translation)
    b.s32(0)
    return pos


def build_model_fres() -> bytes:
    """One model (one triangle, two bones), one 4x4 RGBA8 texture, one blob."""
    fb = FresBuilder()
    fb.write_strings(["body", "_p0", "_u0", "mat0", "root", "arm", "tri", "tex0", "blob"])
    s = fb.strings
    b = fb.blob

    model_slots = fb.directory(0, ["body"])
    texture_slots = fb.directory(1, ["tex0"])
    embedded_slots = fb.directory(11, ["blob"])

    b.align(4)
    fmdl = b.pos
    b.point(model_slots[0], fmdl)
    b.raw(b"FMDL")
    fmdl_name = b.slot()
    b.s32(0)
    fskl_slot = b.slot()
    fvtx_slot = b.slot()
    fshp_slot = b.slot()
    fmat_slot = b.slot()
    b.s32(0)
    b.u16(1).u16(1).u16(1).u16(0).u32(3).u32(0)
    b.point(fmdl_name, s["body"])

    fvtx = b.pos
    b.point(fvtx_slot, fvtx)
    b.raw(b"FVTX").u8(2).u8(2).u16(0).u32(3).u8(0).zeros(3)
    attr_array_slot = b.slot()
    attr_group_slot = b.slot()
    buffer_array_slot = b.slot()
    b.u32(0)

    attr_array = b.pos
    b.point(attr_array_slot, attr_array)
    b.point(b.slot(), s["_p0"])
    b.u8(0).u8(0).u16(0).u32(0x811)
    uv_attr = b.pos
    b.point(b.slot(), s["_u0"])
    b.u8(1).u8(0).u16(0).u32(0x808)

    attr_group, attr_data = b.index_group([s["_p0"], s["_u0"]])
    b.point(attr_group_slot, attr_group)
    b.point(attr_data[0], attr_array)
    b.point(attr_data[1], uv_attr)

    b.point(buffer_array_slot, b.pos)
    pos_data_slot = b.buffer_info(36, 12)
    uv_data_slot = b.buffer_info(12, 4)

    b.point(pos_data_slot, b.pos)
    b.f32(0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
    b.point(uv_data_slot, b.pos)
    b.raw(struct.pack(">6e", 0.0, 0.0, 1.0, 0.0, 0.0, 1.0))

    mat_group, mat_data = b.index_group([s["mat0"]])
    b.point(fmat_slot, mat_group)
    b.point(mat_data[0], b.pos)
    b.raw(b"FMAT")
    b.point(b.slot(), s["mat0"])
    b.u32(1).u16(0).u16(0).u8(1).u8(0).u16(0).u16(0).u16(0).u16(0).u16(0)
    fmat_pointers = [b.slot() for _ in range(11)]
    b.u32(0)
    b.point(fmat_pointers[3], b.pos)
    b.point(b.slot(), s["tex0"])
    b.s32(0)

    fskl = b.pos
    b.point(fskl_slot, fskl)
    b.raw(b"FSKL").u32(0).u16(2).u16(0).u16(2).u16(0)
    bone_group_slot = b.slot()
    b.zeros(4 * 3).u32(0)
    bone_group, bone_data = b.index_group([s["root"], s["arm"]])
    b.point(bone_group_slot, bone_group)
    b.point(bone_data[0], write_bone(b, s["root"], 0, 0xFFFF, 0x1))
    b.point(
        bone_data[1],
        write_bone(b, s["arm"], 1, 0, 0x1 | 0x1000, rotation=(0.0, 0.0, 1.5, 1.0),
                   translation=(0.0, 2.0, 0.0)),
    )

    shape_group, shape_data = b.index_group([s["tri"]])
    b.point(fshp_slot, shape_group)
    b.point(shape_data[0], b.pos)
    b.raw(b"FSHP")
    b.point(b.slot(), s["tri"])
    b.u32(2).u16(0).u16(0).u16(0).u16(0).u16(0).u8(1).u8(1).u8(0).u8(0).u16(0).u32(0)
    b.point(b.slot(), fvtx)
    lod_slot = b.slot()
    b.zeros(4 * 5).u32(0)

    b.point(lod_slot, b.pos)
    b.u32(0x04).u32(4).u32(3).u16(0).u16(0).s32(0)
    index_buffer_slot = b.slot()
    b.u32(0)
    b.point(index_buffer_slot, b.pos)
    index_data_slot = b.buffer_info(6, 2)
    b.point(index_data_slot, b.pos)
    b.u16(0).u16(1).u16(2)

    b.align(4)
    b.point(texture_slots[0], b.pos)
    b.raw(b"FTEX").u32(1).u32(4).u32(4).u32(1).u32(1).u32(0x1A).u32(0).u32(1)
    b.u32(64).u32(0).u32(0).u32(0)
    b.u32(0x01).u32(0).u32(0x200).u32(4)
    b.zeros(4 * 13)
    b.u32(0).u32(1).u32(0).u32(1)
    b.u8(0).u8(1).u8(2).u8(3)
    b.zeros(4 * 5).u32(0).u32(1)
    b.point(b.slot(), s["tex0"])
    b.s32(0)
    tex_data_slot = b.slot()
    b.s32(0).s32(0).u16(0)
    b.align(4)
    b.point(tex_data_slot, b.pos)
    b.raw(bytes(range(64)))

    b.point(embedded_slots[0], b.pos)
    blob_slot = b.slot()
    b.u32(5)
    b.point(blob_slot, b.pos)
    b.raw(b"hello")

    return fb.finish()


@pytest.fixture
def model_bfres() -> bytes:
    return build_model_fres()
