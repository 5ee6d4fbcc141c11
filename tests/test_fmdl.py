import struct

import pytest

from io_scene_bfres.core.attributes import AttributeFormat
from io_scene_bfres.core.binio import ByteSource, Pointer
from io_scene_bfres.core.errors import ArrayOutOfRangeError, BfresError, TruncatedError
from io_scene_bfres.core.fmdl import (
    BillboardMode,
    BoneFlags,
    IndexFormat,
    LodModel,
    PrimitiveType,
    RotationMode,
)
from io_scene_bfres.core.fres import SubFileKind, load_bfres

from conftest import Blob


@pytest.fixture
def model(model_bfres):
    fres = load_bfres(model_bfres)
    [(name, fmdl)] = fres.entries(SubFileKind.MODEL)
    assert name == "body"
    return fres.source, fmdl


def test_model_header(model):
    src, fmdl = model
    assert fmdl.name(src) == "body"
    assert fmdl.header.fvtx_count == len(fmdl.fvtx_array) == 1
    assert fmdl.header.fshp_count == 1
    assert fmdl.header.fmat_count == 1
    assert fmdl.header.total_vertex_count == 3


def test_vertex_buffer_streams(model):
    src, fmdl = model
    [fvtx] = fmdl.vertex_buffers(src)
    assert fvtx.header.vertex_count == 3
    attrs = fvtx.attributes(src)
    assert sorted(attrs) == ["_p0", "_u0"]
    assert attrs["_p0"].format is AttributeFormat.FLOAT_32_32_32
    assert attrs["_u0"].buffer_index == 1
    assert fvtx.stream(src, "_p0") == [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
    assert fvtx.stream(src, "_u0") == [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]
    assert fvtx.stream(src, "_n0") is None
    assert [b.stride for b in fvtx.buffers(src)] == [12, 4]


def test_materials(model):
    src, fmdl = model
    [(name, fmat)] = fmdl.materials(src)
    assert name == "mat0"
    assert fmat.name(src) == "mat0"
    assert fmat.header.flags == 1
    assert fmat.header.texture_reference_count == 1
    assert fmat.texture_names(src) == ["tex0"]


def test_skeleton(model):
    src, fmdl = model
    bones = fmdl.fskl.bone_list(src)
    assert [b.name(src) for b in bones] == ["root", "arm"]
    root, arm = bones
    assert not root.has_parent
    assert arm.has_parent and arm.parent_index == 0
    assert root.flags.visible
    assert root.flags.rotation_mode is RotationMode.QUATERNION
    assert arm.flags.rotation_mode is RotationMode.EULER_XYZ
    assert arm.translation == (0.0, 2.0, 0.0)
    assert arm.rotation[2] == 1.5


def test_shape_lod(model):
    src, fmdl = model
    [(name, fshp)] = fmdl.shapes(src)
    assert name == "tri"
    assert fshp.name(src) == "tri"
    assert fshp.header.fvtx_index == 0
    assert fshp.header.lod_model_count == 1
    lod = fshp.lod(src)
    assert lod.primitive_type is PrimitiveType.TRIANGLES
    assert lod.index_format is IndexFormat.U16_BE
    assert lod.read_indices(src) == [0, 1, 2]
    assert lod.triangles(src) == [(0, 1, 2)]
    assert len(lod.visibility_groups(src)) == 0
    with pytest.raises(ArrayOutOfRangeError):
        fshp.lod(src, 1)


def _lod(prim, fmt, indices, declared=None):
    b = Blob()
    data = struct.pack(fmt.struct_code[0] + fmt.struct_code[1] * len(indices), *indices)
    slot = b.buffer_info(len(data), fmt.index_bytes)
    b.point(slot, b.pos)
    b.raw(data)
    count = len(indices) if declared is None else declared
    lod = LodModel(prim, fmt, count, 0, Pointer.absolute(0), Pointer.absolute(0), 0)
    return ByteSource(b.bytes()), lod


def test_index_formats():
    for fmt in IndexFormat:
        src, lod = _lod(PrimitiveType.TRIANGLES, fmt, [3, 0x102, 7])
        assert lod.read_indices(src) == [3, 0x102, 7]


def test_index_buffer_too_small():
    src, lod = _lod(PrimitiveType.TRIANGLES, IndexFormat.U16_BE, [0, 1, 2], declared=6)
    with pytest.raises(TruncatedError):
        lod.read_indices(src)


def test_strip_and_fan():
    src, strip = _lod(PrimitiveType.TRIANGLE_STRIP, IndexFormat.U16_BE, [0, 1, 2, 3, 3, 4])
    assert strip.triangles(src) == [(0, 1, 2), (2, 1, 3)]
    src, fan = _lod(PrimitiveType.TRIANGLE_FAN, IndexFormat.U32_BE, [0, 1, 2, 3])
    assert fan.triangles(src) == [(0, 1, 2), (0, 2, 3)]
    src, lines = _lod(PrimitiveType.LINES, IndexFormat.U16_BE, [0, 1])
    with pytest.raises(BfresError):
        lines.triangles(src)


def test_bone_flags():
    flags = BoneFlags.from_bits(0x1 | 0x1000 | (3 << 16) | (0x1 << 23) | (0x2 << 28))
    assert flags.visible
    assert flags.rotation_mode is RotationMode.EULER_XYZ
    assert flags.billboard_mode is BillboardMode.WORLD_VIEW_POINT
    assert flags.transformation.segment_scale_compensate
    assert not flags.transformation.no_translation
    assert flags.hierarchy.scale_volume_by_one
    assert not flags.hierarchy.scale_uniform

    hidden = BoneFlags.from_bits(0)
    assert not hidden.visible
    assert hidden.billboard_mode is BillboardMode.NONE
