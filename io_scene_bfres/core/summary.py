"""JSON-serialisable overview of a decoded container."""

from __future__ import annotations

from typing import Any, Dict, List

from .binio import ByteSource
from .fmdl import Fmdl
from .fres import Fres, SubFileKind
from .ftex import Ftex


def _summarize_model(src: ByteSource, name: str, fmdl: Fmdl) -> Dict[str, Any]:
    vertex_buffers: List[Dict[str, Any]] = []
    for fvtx in fmdl.vertex_buffers(src):
        attributes = []
        for attr_name, attr in fvtx.attributes_index_group.items(src):
            attributes.append(
                {
                    "name": attr_name,
                    "format": attr.format.name,
                    "format_code": int(attr.format),
                    "buffer_index": attr.buffer_index,
                    "offset": attr.offset,
                }
            )
        buffers = [
            {"size": b.size, "stride": b.stride, "buffering_count": b.buffering_count}
            for b in fvtx.buffers(src)
        ]
        vertex_buffers.append(
            {
                "vertex_count": fvtx.header.vertex_count,
                "attributes": attributes,
                "buffers": buffers,
            }
        )

    materials = [
        {
            "name": mat_name,
            "texture_reference_count": fmat.header.texture_reference_count,
            "textures": fmat.texture_names(src),
        }
        for mat_name, fmat in fmdl.materials(src)
    ]

    shapes = []
    for shape_name, fshp in fmdl.shapes(src):
        lods = []
        for entry in fshp.lod_model_array:
            lod = entry.data(src)
            lods.append(
                {
                    "primitive_type": lod.primitive_type.name,
                    "index_format": lod.index_format.name,
                    "points": lod.point_count,
                    "visibility_groups": lod.visibility_group_count,
                }
            )
        shapes.append(
            {
                "name": shape_name,
                "flags": fshp.header.flags,
                "fvtx_index": fshp.header.fvtx_index,
                "fmat_index": fshp.header.fmat_index,
                "lods": lods,
            }
        )

    return {
        "name": name,
        "total_vertex_count": fmdl.header.total_vertex_count,
        "vertex_buffers": vertex_buffers,
        "materials": materials,
        "bone_count": fmdl.fskl.header.bone_count,
        "shapes": shapes,
    }


def _summarize_texture(src: ByteSource, name: str, ftex: Ftex) -> Dict[str, Any]:
    h = ftex.header
    return {
        "name": name,
        "width": h.width,
        "height": h.height,
        "depth": h.depth,
        "dimension": h.dimension.name,
        "aa_mode": h.aa_mode.name,
        "usage": h.usage.names(),
        "tile_mode": h.tile_mode.name,
        "component_selector": [c.name for c in h.component_selector.channels],
        "format": h.format.name,
        "alignment": h.alignment,
        "mipmaps": h.mipmap_count,
        "array_length": h.array_length,
        "slices": h.slice_count,
        "swizzle": h.swizzle,
        "pitch": h.pitch,
        "data_offset": ftex.data_position(src),
        "data_length": h.data_length,
    }


def summarize(fres: Fres) -> Dict[str, Any]:
    src = fres.source
    groups = fres.sub_file_index_groups
    out: Dict[str, Any] = {
        "file_name": fres.file_name(),
        "version": str(fres.header.version),
        "sub_file_count": fres.total_sub_file_count(),
        "string_count": len(fres.string_table),
        "slots": {kind.field_name: len(group) for kind, group in groups.present()},
        "count_mismatches": {
            kind.field_name: {"header": declared, "index_group": actual}
            for kind, declared, actual in fres.count_mismatches()
        },
        "models": [],
        "textures": [],
        "embedded_files": [],
    }

    for name, fmdl in fres.entries(SubFileKind.MODEL):
        out["models"].append(_summarize_model(src, name, fmdl))
    for name, ftex in fres.entries(SubFileKind.TEXTURE):
        out["textures"].append(_summarize_texture(src, name, ftex))
    for name, blob in fres.entries(SubFileKind.EMBEDDED_FILE):
        out["embedded_files"].append(
            {"name": name, "offset": blob.position(src), "length": blob.length}
        )
    return out
