"""FRES container header, string table and sub-file directory."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from . import yaz0
from .binio import ByteSource, Pointer
from .errors import (
    BfresError,
    UnexpectedHeaderLengthError,
    UnsupportedEndiannessError,
)
from .groups import Decoder, IndexGroup

FRES_MAGIC = b"FRES"
FRES_BOM = 0xFEFF
FRES_HEADER_LENGTH = 0x0010
SUB_FILE_SLOTS = 12


class StringTable:
    """Position -> string map of the shared name pool.

    Keys are the position of the first byte after each record's length field,
    which is where name pointers elsewhere in the file point.
    """

    __slots__ = ("start", "length", "_map")

    def __init__(self, start: int, length: int, strings: Dict[int, str]):
        self.start = start
        self.length = length
        self._map = strings

    @classmethod
    def read(cls, src: ByteSource, start: int, length: int) -> "StringTable":
        strings: Dict[int, str] = {}
        end = start + length
        src.seek(start)
        while src.tell < end:
            src.align(4)
            if src.tell >= end:
                break
            size = src.u32()
            key = src.tell
            if size == 0:
                continue
            strings[key] = src.string(size)
        return cls(start, length, strings)

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, position: int) -> bool:
        return position in self._map

    def __iter__(self) -> Iterator[int]:
        return iter(self._map)

    def items(self):
        return self._map.items()

    def get(self, position: int) -> Optional[str]:
        return self._map.get(position)

    def lookup(self, pointer: Pointer, limit: int) -> Optional[str]:
        return self._map.get(pointer.resolve(limit))


@dataclass(frozen=True)
class FresVersion:
    numbers: Tuple[int, int, int, int]

    @classmethod
    def read(cls, src: ByteSource) -> "FresVersion":
        return cls(tuple(src.read(4)))

    def __str__(self) -> str:
        a, b, c, d = self.numbers
        return f"v{a}.{b}.{c}.{d}"


class SubFileKind(enum.Enum):
    MODEL = 0
    TEXTURE = 1
    SKELETON_ANIMATION = 2
    SHADER_PARAMETERS = 3
    COLOR_ANIMATION = 4
    TEXTURE_SRT_ANIMATION = 5
    TEXTURE_PATTERN_ANIMATION = 6
    BONE_VISIBILITY_ANIMATION = 7
    MATERIAL_VISIBILITY_ANIMATION = 8
    SHAPE_ANIMATION = 9
    SCENE_ANIMATION = 10
    EMBEDDED_FILE = 11

    @property
    def field_name(self) -> str:
        return _FIELD_NAMES[self.value]

    @property
    def decoder(self) -> Decoder:
        from . import fmdl, ftex, subfiles

        return (
            fmdl.Fmdl.read,
            ftex.Ftex.read,
            subfiles.Fska.read,
            subfiles.Fshu.read,
            subfiles.Fshu.read,
            subfiles.Fshu.read,
            subfiles.Ftxp.read,
            subfiles.Fvis.read,
            subfiles.Fvis.read,
            subfiles.Fsha.read,
            subfiles.Fscn.read,
            subfiles.Embedded.read,
        )[self.value]


_FIELD_NAMES = (
    "model_data",
    "texture_data",
    "skeleton_animation",
    "shader_parameters",
    "color_animation",
    "texture_srt_animation",
    "texture_pattern_animation",
    "bone_visibility_animation",
    "material_visibility_animation",
    "shape_animation",
    "scene_animation",
    "embedded_file",
)


@dataclass(frozen=True)
class FresHeader:
    version: FresVersion
    file_length: int
    file_alignment: int
    file_name_offset: Pointer
    string_table_length: int
    string_table_offset: Pointer
    sub_file_index_group_offsets: Tuple[Optional[Pointer], ...]
    sub_file_index_group_counts: Tuple[int, ...]

    @classmethod
    def read(cls, src: ByteSource) -> "FresHeader":
        src.magic(FRES_MAGIC)
        version = FresVersion.read(src)
        bom = src.u16()
        if bom != FRES_BOM:
            raise UnsupportedEndiannessError(bom)
        header_length = src.u16()
        if header_length != FRES_HEADER_LENGTH:
            raise UnexpectedHeaderLengthError(header_length)
        file_length = src.u32()
        file_alignment = src.u32()
        file_name_offset = Pointer.read(src)
        string_table_length = src.s32()
        string_table_offset = Pointer.read(src)

        offsets: List[Optional[Pointer]] = []
        for _ in range(SUB_FILE_SLOTS):
            p = Pointer.read(src)
            offsets.append(None if p.is_null else p)
        counts = tuple(src.u16() for _ in range(SUB_FILE_SLOTS))
        src.reserved_zero("FRES.user_pointer")

        return cls(
            version=version,
            file_length=file_length,
            file_alignment=file_alignment,
            file_name_offset=file_name_offset,
            string_table_length=string_table_length,
            string_table_offset=string_table_offset,
            sub_file_index_group_offsets=tuple(offsets),
            sub_file_index_group_counts=counts,
        )

    def total_sub_file_count(self) -> int:
        return sum(self.sub_file_index_group_counts)

    def count(self, kind: SubFileKind) -> int:
        return self.sub_file_index_group_counts[kind.value]


@dataclass(frozen=True)
class SubFileIndexGroups:
    model_data: Optional[IndexGroup] = None
    texture_data: Optional[IndexGroup] = None
    skeleton_animation: Optional[IndexGroup] = None
    shader_parameters: Optional[IndexGroup] = None
    color_animation: Optional[IndexGroup] = None
    texture_srt_animation: Optional[IndexGroup] = None
    texture_pattern_animation: Optional[IndexGroup] = None
    bone_visibility_animation: Optional[IndexGroup] = None
    material_visibility_animation: Optional[IndexGroup] = None
    shape_animation: Optional[IndexGroup] = None
    scene_animation: Optional[IndexGroup] = None
    embedded_file: Optional[IndexGroup] = None

    @classmethod
    def read(cls, src: ByteSource, header: FresHeader) -> "SubFileIndexGroups":
        groups: Dict[str, IndexGroup] = {}
        for kind in SubFileKind:
            ptr = header.sub_file_index_group_offsets[kind.value]
            if ptr is None:
                continue
            try:
                groups[kind.field_name] = IndexGroup.read_at(src, ptr, kind.decoder)
            except BfresError as exc:
                raise exc.add_context(f"while reading {kind.field_name} index group")
        return cls(**groups)

    def by_kind(self, kind: SubFileKind) -> Optional[IndexGroup]:
        return getattr(self, kind.field_name)

    def present(self) -> List[Tuple[SubFileKind, IndexGroup]]:
        out: List[Tuple[SubFileKind, IndexGroup]] = []
        for kind in SubFileKind:
            group = self.by_kind(kind)
            if group is not None:
                out.append((kind, group))
        return out


@dataclass(frozen=True)
class Fres:
    header: FresHeader
    string_table: StringTable
    sub_file_index_groups: SubFileIndexGroups
    source: ByteSource

    @classmethod
    def read(cls, src: ByteSource) -> "Fres":
        src.seek(0)
        header = FresHeader.read(src)
        table_start = header.string_table_offset.resolve(len(src))
        string_table = StringTable.read(src.fork(), table_start, header.string_table_length)
        groups = SubFileIndexGroups.read(src, header)
        return cls(header, string_table, groups, src)

    def file_name(self) -> Optional[str]:
        ptr = self.header.file_name_offset
        if ptr.is_null:
            return None
        name = self.string_table.lookup(ptr, len(self.source))
        if name is not None:
            return name
        cur = self.source.fork()
        ptr.seek(cur)
        return cur.cstring()

    def total_sub_file_count(self) -> int:
        return self.header.total_sub_file_count()

    def count_mismatches(self) -> List[Tuple[SubFileKind, int, int]]:
        """Slots whose header count differs from their index group's length.

        Such files are still decoded; the index group is what gets walked.
        """
        out: List[Tuple[SubFileKind, int, int]] = []
        for kind in SubFileKind:
            group = self.sub_file_index_groups.by_kind(kind)
            actual = 0 if group is None else len(group)
            declared = self.header.count(kind)
            if declared != actual:
                out.append((kind, declared, actual))
        return out

    def entries(self, kind: SubFileKind) -> List[Tuple[str, object]]:
        """`(name, decoded sub-file)` pairs of one directory slot."""
        group = self.sub_file_index_groups.by_kind(kind)
        if group is None:
            return []
        return group.items(self.source)


def load_bfres(data: bytes, *, decompress: bool = True) -> Fres:
    """Decode a BFRES container, removing a Yaz0 envelope first if present."""
    raw = bytes(data)
    if decompress and yaz0.looks_like_yaz0(raw):
        raw = yaz0.decompress(raw)
    return Fres.read(ByteSource(raw))
