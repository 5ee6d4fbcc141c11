"""FMDL model sub-files: vertex buffers, materials, skeleton and shapes.

Layout notes (all big-endian, pointers self-relative unless stated):

- FMDL header is followed by a fixed-stride (0x20) array of FVTX headers.
- FVTX points at an attribute index group and a 0x18-stride buffer-info array.
- FSKL bones are reached through the bone index group.
- FSHP carries a 0x1C-stride LOD array; each LOD has its own index buffer and
  an optional 0x18-stride visibility-group array.
- FMAT texture references are a 0x8-stride array of (name, FTEX) pointer pairs.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .attributes import AttributeFormat, Number
from .binio import ByteSource, Pointer
from .errors import BfresError, TruncatedError, enum_from
from .groups import BufferInfo, DataArray, IndexGroup

FVTX_STRIDE = 0x20
BUFFER_INFO_STRIDE = 0x18
LOD_MODEL_STRIDE = 0x1C
VISIBILITY_GROUP_STRIDE = 0x18
TEXTURE_REFERENCE_STRIDE = 0x8


def _fork_at(src: ByteSource, pointer: Pointer) -> ByteSource:
    cur = src.fork()
    pointer.seek(cur)
    return cur


def _group(src: ByteSource, pointer: Pointer, count: int, decoder) -> IndexGroup:
    if pointer.is_null and count == 0:
        return IndexGroup(pointer.resolve(len(src)), 0, ())
    return IndexGroup.read_at(src, pointer, decoder)


@dataclass(frozen=True)
class FvtxAttribute:
    name_offset: Pointer
    buffer_index: int
    offset: int
    format: AttributeFormat

    @classmethod
    def read(cls, src: ByteSource) -> "FvtxAttribute":
        name_offset = Pointer.read(src)
        buffer_index = src.u8()
        src.skip(1)
        offset = src.u16()
        fmt = AttributeFormat.from_code(src.u32())
        return cls(name_offset, buffer_index, offset, fmt)

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.name_offset).cstring()


@dataclass(frozen=True)
class FvtxHeader:
    attribute_count: int
    buffer_info_count: int
    section_index: int
    vertex_count: int
    vertex_skin_count: int
    attribute_array_offset: Pointer
    attribute_index_group_offset: Pointer
    buffer_info_array_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "FvtxHeader":
        src.magic(b"FVTX")
        attribute_count = src.u8()
        buffer_info_count = src.u8()
        section_index = src.u16()
        vertex_count = src.u32()
        vertex_skin_count = src.u8()
        src.skip(3)
        attribute_array_offset = Pointer.read(src)
        attribute_index_group_offset = Pointer.read(src)
        buffer_info_array_offset = Pointer.read(src)
        src.reserved_zero("FVTX.user_pointer")
        return cls(
            attribute_count,
            buffer_info_count,
            section_index,
            vertex_count,
            vertex_skin_count,
            attribute_array_offset,
            attribute_index_group_offset,
            buffer_info_array_offset,
        )


@dataclass(frozen=True)
class Fvtx:
    header: FvtxHeader
    attributes_index_group: IndexGroup
    buffer_info_array: DataArray

    @classmethod
    def read(cls, src: ByteSource) -> "Fvtx":
        header = FvtxHeader.read(src)
        attributes = _group(
            src, header.attribute_index_group_offset, header.attribute_count, FvtxAttribute.read
        )
        buffers = DataArray.read_at(
            src,
            header.buffer_info_array_offset,
            BUFFER_INFO_STRIDE,
            header.buffer_info_count,
            BufferInfo.read,
        )
        return cls(header, attributes, buffers)

    def attributes(self, src: ByteSource) -> Dict[str, FvtxAttribute]:
        return dict(self.attributes_index_group.items(src))

    def buffers(self, src: ByteSource) -> List[BufferInfo]:
        return [e.data(src) for e in self.buffer_info_array]

    def read_attribute(self, src: ByteSource, attribute: FvtxAttribute) -> List[Tuple[Number, ...]]:
        buffer = self.buffer_info_array.data(src, attribute.buffer_index)
        return attribute.format.read_buffer(src, buffer, attribute.offset)

    def stream(self, src: ByteSource, name: str) -> Optional[List[Tuple[Number, ...]]]:
        """Decoded stream of the attribute called `name` (`_p0`, `_n0`, `_u0`...)."""
        entry = self.attributes_index_group.find(src, name)
        if entry is None:
            return None
        return self.read_attribute(src, entry.data(src))


@dataclass(frozen=True)
class FmatHeader:
    name_offset: Pointer
    flags: int
    section_index: int
    render_info_parameter_count: int
    texture_reference_count: int
    texture_sampler_count: int
    material_parameter_count: int
    volatile_parameter_count: int
    material_parameter_data_length: int
    raw_parameter_data_length: int
    user_data_entry_count: int
    render_info_parameter_index_group_offset: Pointer
    render_state_offset: Pointer
    shader_assign_offset: Pointer
    texture_reference_array_offset: Pointer
    texture_sampler_offset: Pointer
    texture_sampler_index_group_offset: Pointer
    material_parameter_array_offset: Pointer
    material_parameter_index_group_offset: Pointer
    material_parameter_data_offset: Pointer
    user_data_index_group_offset: Pointer
    volatile_flags_data_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "FmatHeader":
        src.magic(b"FMAT")
        name_offset = Pointer.read(src)
        flags = src.u32()
        section_index = src.u16()
        render_info_parameter_count = src.u16()
        texture_reference_count = src.u8()
        texture_sampler_count = src.u8()
        material_parameter_count = src.u16()
        volatile_parameter_count = src.u16()
        material_parameter_data_length = src.u16()
        raw_parameter_data_length = src.u16()
        user_data_entry_count = src.u16()
        pointers = [Pointer.read(src) for _ in range(11)]
        src.reserved_zero("FMAT.user_pointer")
        return cls(
            name_offset,
            flags,
            section_index,
            render_info_parameter_count,
            texture_reference_count,
            texture_sampler_count,
            material_parameter_count,
            volatile_parameter_count,
            material_parameter_data_length,
            raw_parameter_data_length,
            user_data_entry_count,
            *pointers,
        )


@dataclass(frozen=True)
class TextureReference:
    name_offset: Pointer
    ftex_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "TextureReference":
        return cls(Pointer.read(src), Pointer.read(src))

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.name_offset).cstring()


@dataclass(frozen=True)
class Fmat:
    header: FmatHeader

    @classmethod
    def read(cls, src: ByteSource) -> "Fmat":
        return cls(FmatHeader.read(src))

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.header.name_offset).cstring()

    def texture_references(self, src: ByteSource) -> DataArray:
        h = self.header
        if h.texture_reference_array_offset.is_null:
            return DataArray(0, TEXTURE_REFERENCE_STRIDE, 0, TextureReference.read)
        return DataArray.read_at(
            src,
            h.texture_reference_array_offset,
            TEXTURE_REFERENCE_STRIDE,
            h.texture_reference_count,
            TextureReference.read,
        )

    def texture_names(self, src: ByteSource) -> List[str]:
        return [entry.data(src).name(src) for entry in self.texture_references(src)]


class RotationMode(enum.IntEnum):
    QUATERNION = 0
    EULER_XYZ = 1


class BillboardMode(enum.IntEnum):
    NONE = 0
    CHILD = 1
    WORLD_VIEW_VECTOR = 2
    WORLD_VIEW_POINT = 3
    SCREEN_VIEW_VECTOR = 4
    SCREEN_VIEW_POINT = 5
    Y_AXIS_VIEW_VECTOR = 6
    Y_AXIS_VIEW_POINT = 7


@dataclass(frozen=True)
class TransformationFlags:
    segment_scale_compensate: bool
    scale_uniform: bool
    scale_volume_by_one: bool
    no_rotation: bool
    no_translation: bool

    @classmethod
    def from_bits(cls, bits: int) -> "TransformationFlags":
        return cls(
            bool(bits & 0x01),
            bool(bits & 0x02),
            bool(bits & 0x04),
            bool(bits & 0x08),
            bool(bits & 0x10),
        )


@dataclass(frozen=True)
class BoneHierarchyFlags:
    scale_uniform: bool
    scale_volume_by_one: bool
    no_rotation: bool
    no_translation: bool

    @classmethod
    def from_bits(cls, bits: int) -> "BoneHierarchyFlags":
        return cls(bool(bits & 0x1), bool(bits & 0x2), bool(bits & 0x4), bool(bits & 0x8))


@dataclass(frozen=True)
class BoneFlags:
    raw: int
    visible: bool
    rotation_mode: RotationMode
    billboard_mode: BillboardMode
    transformation: TransformationFlags
    hierarchy: BoneHierarchyFlags

    @classmethod
    def from_bits(cls, raw: int) -> "BoneFlags":
        return cls(
            raw=raw,
            visible=bool(raw & 1),
            rotation_mode=RotationMode((raw >> 12) & 1),
            billboard_mode=enum_from(BillboardMode, (raw >> 16) & 0x7),
            transformation=TransformationFlags.from_bits((raw >> 23) & 0x1F),
            hierarchy=BoneHierarchyFlags.from_bits((raw >> 28) & 0xF),
        )


@dataclass(frozen=True)
class Bone:
    name_offset: Pointer
    index: int
    parent_index: int
    smooth_matrix_index: int
    rigid_matrix_index: int
    billboard_index: int
    user_data_entry_count: int
    flags: BoneFlags
    scale: Tuple[float, float, float]
    rotation: Tuple[float, float, float, float]
    translation: Tuple[float, float, float]
    user_data_index_group_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "Bone":
        name_offset = Pointer.read(src)
        index = src.u16()
        parent_index = src.u16()
        smooth = src.s16()
        rigid = src.s16()
        billboard = src.s16()
        user_data_entry_count = src.u16()
        flags = BoneFlags.from_bits(src.u32())
        scale = (src.f32(), src.f32(), src.f32())
        rotation = (src.f32(), src.f32(), src.f32(), src.f32())
        translation = (src.f32(), src.f32(), src.f32())
        user_data = Pointer.read(src)
        return cls(
            name_offset,
            index,
            parent_index,
            smooth,
            rigid,
            billboard,
            user_data_entry_count,
            flags,
            scale,
            rotation,
            translation,
            user_data,
        )

    @property
    def has_parent(self) -> bool:
        return self.parent_index != 0xFFFF

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.name_offset).cstring()


@dataclass(frozen=True)
class FsklHeader:
    flags: int
    bone_count: int
    smooth_index_count: int
    rigid_index_count: int
    bone_index_group_offset: Pointer
    bone_array_offset: Pointer
    smooth_index_array_offset: Pointer
    smooth_matrix_array_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "FsklHeader":
        src.magic(b"FSKL")
        flags = src.u32()
        bone_count = src.u16()
        smooth_index_count = src.u16()
        rigid_index_count = src.u16()
        src.skip(2)
        pointers = [Pointer.read(src) for _ in range(4)]
        src.reserved_zero("FSKL.user_pointer")
        return cls(flags, bone_count, smooth_index_count, rigid_index_count, *pointers)


@dataclass(frozen=True)
class Fskl:
    header: FsklHeader
    bones: IndexGroup

    @classmethod
    def read(cls, src: ByteSource) -> "Fskl":
        header = FsklHeader.read(src)
        bones = _group(src, header.bone_index_group_offset, header.bone_count, Bone.read)
        return cls(header, bones)

    def bone_list(self, src: ByteSource) -> List[Bone]:
        return [e.data(src) for e in self.bones]


class PrimitiveType(enum.IntEnum):
    POINTS = 0x01
    LINES = 0x02
    LINE_STRIP = 0x03
    TRIANGLES = 0x04
    TRIANGLE_FAN = 0x05
    TRIANGLE_STRIP = 0x06
    LINES_ADJACENCY = 0x0A
    LINE_STRIP_ADJACENCY = 0x0B
    TRIANGLES_ADJACENCY = 0x0C
    TRIANGLE_STRIP_ADJACENCY = 0x0D
    RECTANGLES = 0x11
    LINE_LOOP = 0x12
    QUADS = 0x13
    QUAD_STRIP = 0x14
    TESSELLATE_LINES = 0x82
    TESSELLATE_LINE_STRIP = 0x83
    TESSELLATE_TRIANGLES = 0x84
    TESSELLATE_TRIANGLE_STRIP = 0x86
    TESSELLATE_QUADS = 0x93
    TESSELLATE_QUAD_STRIP = 0x94


class IndexFormat(enum.IntEnum):
    U16_LE = 0
    U32_LE = 1
    U16_BE = 4
    U32_BE = 9

    @property
    def struct_code(self) -> str:
        return {0: "<H", 1: "<I", 4: ">H", 9: ">I"}[int(self)]

    @property
    def index_bytes(self) -> int:
        return 2 if self in (IndexFormat.U16_LE, IndexFormat.U16_BE) else 4


@dataclass(frozen=True)
class VisibilityGroup:
    index_buffer_offset: Pointer
    point_count: int

    @classmethod
    def read(cls, src: ByteSource) -> "VisibilityGroup":
        return cls(Pointer.read(src), src.u32())

    def index_buffer(self, src: ByteSource) -> BufferInfo:
        return BufferInfo.read(_fork_at(src, self.index_buffer_offset))


@dataclass(frozen=True)
class LodModel:
    primitive_type: PrimitiveType
    index_format: IndexFormat
    point_count: int
    visibility_group_count: int
    visibility_group_offset: Pointer
    index_buffer_offset: Pointer
    skip_vertices: int

    @classmethod
    def read(cls, src: ByteSource) -> "LodModel":
        primitive_type = enum_from(PrimitiveType, src.u32())
        index_format = enum_from(IndexFormat, src.u32())
        point_count = src.u32()
        visibility_group_count = src.u16()
        src.skip(2)
        visibility_group_offset = Pointer.read(src)
        index_buffer_offset = Pointer.read(src)
        skip_vertices = src.u32()
        return cls(
            primitive_type,
            index_format,
            point_count,
            visibility_group_count,
            visibility_group_offset,
            index_buffer_offset,
            skip_vertices,
        )

    def visibility_groups(self, src: ByteSource) -> DataArray:
        return DataArray.read_at(
            src,
            self.visibility_group_offset,
            VISIBILITY_GROUP_STRIDE,
            self.visibility_group_count,
            VisibilityGroup.read,
        )

    def direct_buffer_info(self, src: ByteSource) -> BufferInfo:
        return BufferInfo.read(_fork_at(src, self.index_buffer_offset))

    def read_indices(self, src: ByteSource) -> List[int]:
        """`point_count` indices from the index buffer, in the LOD's index format."""
        buffer = self.direct_buffer_info(src)
        start = buffer.data_position(src)
        width = self.index_format.index_bytes
        need = self.point_count * width
        if need > buffer.size:
            raise TruncatedError(start, need, start + buffer.size)
        code = self.index_format.struct_code
        fmt = code[0] + code[1] * self.point_count
        return list(struct.unpack_from(fmt, src.buffer, start))

    def triangles(self, src: ByteSource) -> List[Tuple[int, int, int]]:
        idx = self.read_indices(src)
        prim = self.primitive_type
        if prim == PrimitiveType.TRIANGLES:
            return [(idx[i], idx[i + 1], idx[i + 2]) for i in range(0, len(idx) - 2, 3)]
        if prim == PrimitiveType.TRIANGLE_STRIP:
            out: List[Tuple[int, int, int]] = []
            for i in range(len(idx) - 2):
                a, b, c = idx[i], idx[i + 1], idx[i + 2]
                if a == b or b == c or a == c:
                    continue
                out.append((a, b, c) if (i & 1) == 0 else (b, a, c))
            return out
        if prim == PrimitiveType.TRIANGLE_FAN:
            return [(idx[0], idx[i], idx[i + 1]) for i in range(1, len(idx) - 1)]
        raise BfresError(f"primitive type {prim.name} has no triangle form")


@dataclass(frozen=True)
class FshpHeader:
    name_offset: Pointer
    flags: int
    section_index: int
    fmat_index: int
    fskl_index: int
    fvtx_index: int
    fskl_bone_skin_index: int
    vertex_skin_count: int
    lod_model_count: int
    key_shape_count: int
    target_attribute_count: int
    visibility_group_tree_node_count: int
    bounding_box_radius: int
    fvtx_offset: Pointer
    lod_model_offset: Pointer
    fskl_index_array_offset: Pointer
    key_shape_index_group_offset: Pointer
    visibility_group_tree_nodes_offset: Pointer
    visibility_group_tree_ranges_offset: Pointer
    visibility_group_tree_indices_offset: Pointer

    @classmethod
    def read(cls, src: ByteSource) -> "FshpHeader":
        src.magic(b"FSHP")
        name_offset = Pointer.read(src)
        flags = src.u32()
        section_index = src.u16()
        fmat_index = src.u16()
        fskl_index = src.u16()
        fvtx_index = src.u16()
        fskl_bone_skin_index = src.u16()
        vertex_skin_count = src.u8()
        lod_model_count = src.u8()
        key_shape_count = src.u8()
        target_attribute_count = src.u8()
        visibility_group_tree_node_count = src.u16()
        bounding_box_radius = src.u32()
        pointers = [Pointer.read(src) for _ in range(7)]
        # the user pointer that follows is not always zero in shipped files
        return cls(
            name_offset,
            flags,
            section_index,
            fmat_index,
            fskl_index,
            fvtx_index,
            fskl_bone_skin_index,
            vertex_skin_count,
            lod_model_count,
            key_shape_count,
            target_attribute_count,
            visibility_group_tree_node_count,
            bounding_box_radius,
            *pointers,
        )


@dataclass(frozen=True)
class Fshp:
    header: FshpHeader
    lod_model_array: DataArray

    @classmethod
    def read(cls, src: ByteSource) -> "Fshp":
        header = FshpHeader.read(src)
        lods = DataArray.read_at(
            src, header.lod_model_offset, LOD_MODEL_STRIDE, header.lod_model_count, LodModel.read
        )
        return cls(header, lods)

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.header.name_offset).cstring()

    def lod(self, src: ByteSource, level: int = 0) -> LodModel:
        return self.lod_model_array.data(src, level)


@dataclass(frozen=True)
class FmdlHeader:
    name_offset: Pointer
    path_offset: Pointer
    fskl_offset: Pointer
    fvtx_array_offset: Pointer
    fshp_index_group_offset: Pointer
    fmat_index_group_offset: Pointer
    user_data_index_group_offset: Pointer
    fvtx_count: int
    fshp_count: int
    fmat_count: int
    user_data_entry_count: int
    total_vertex_count: int

    @classmethod
    def read(cls, src: ByteSource) -> "FmdlHeader":
        src.magic(b"FMDL")
        pointers = [Pointer.read(src) for _ in range(7)]
        fvtx_count = src.u16()
        fshp_count = src.u16()
        fmat_count = src.u16()
        user_data_entry_count = src.u16()
        total_vertex_count = src.u32()
        src.reserved_zero("FMDL.user_pointer")
        return cls(
            *pointers,
            fvtx_count=fvtx_count,
            fshp_count=fshp_count,
            fmat_count=fmat_count,
            user_data_entry_count=user_data_entry_count,
            total_vertex_count=total_vertex_count,
        )


@dataclass(frozen=True)
class Fmdl:
    header: FmdlHeader
    fvtx_array: DataArray
    fmat_index_group: IndexGroup
    fskl: Fskl
    fshp_index_group: IndexGroup

    @classmethod
    def read(cls, src: ByteSource) -> "Fmdl":
        header = FmdlHeader.read(src)
        fvtx_array = DataArray.read_at(
            src, header.fvtx_array_offset, FVTX_STRIDE, header.fvtx_count, Fvtx.read
        )
        fmat_index_group = _group(src, header.fmat_index_group_offset, header.fmat_count, Fmat.read)
        try:
            fskl = Fskl.read(_fork_at(src, header.fskl_offset))
        except BfresError as exc:
            raise exc.add_context("while reading FSKL")
        fshp_index_group = _group(src, header.fshp_index_group_offset, header.fshp_count, Fshp.read)
        return cls(header, fvtx_array, fmat_index_group, fskl, fshp_index_group)

    def name(self, src: ByteSource) -> str:
        return _fork_at(src, self.header.name_offset).cstring()

    def vertex_buffers(self, src: ByteSource) -> List[Fvtx]:
        return [e.data(src) for e in self.fvtx_array]

    def materials(self, src: ByteSource) -> List[Tuple[str, Fmat]]:
        return self.fmat_index_group.items(src)

    def shapes(self, src: ByteSource) -> List[Tuple[str, Fshp]]:
        return self.fshp_index_group.items(src)
