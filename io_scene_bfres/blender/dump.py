"""Debug dump operators for the BFRES Blender add-on."""

from __future__ import annotations

import json
import os

import bpy
from bpy.props import BoolProperty, IntProperty, StringProperty
from bpy_extras.io_utils import ExportHelper

from ..core.errors import BfresError
from ..core.fres import SubFileKind, load_bfres
from ..core.summary import summarize


def _read_last_import(operator: bpy.types.Operator, context: bpy.types.Context):
    path = str(context.scene.get("bfres_last_import_path", ""))
    if not path:
        operator.report({"ERROR"}, "No last import path stored; import a BFRES file first")
        return None, None
    try:
        with open(path, "rb") as f:
            return path, f.read()
    except OSError as e:
        operator.report({"ERROR"}, f"Failed to read: {path} ({e})")
        return None, None


class BFRES_OT_dump_summary_json(bpy.types.Operator, ExportHelper):
    bl_idname = "bfres.dump_summary_json"
    bl_label = "BFRES: Dump Summary JSON"
    bl_options = {"UNDO"}

    filename_ext = ".json"
    filter_glob: StringProperty(default="*.json", options={"HIDDEN"})

    include_strings: BoolProperty(
        name="Include String Table",
        default=False,
        description="Also write every string-table entry keyed by its file offset",
    )

    def execute(self, context: bpy.types.Context):
        path, data = _read_last_import(self, context)
        if data is None:
            return {"CANCELLED"}
        try:
            fres = load_bfres(data)
            out = summarize(fres)
        except BfresError as e:
            self.report({"ERROR"}, f"Failed to decode: {path} ({e})")
            return {"CANCELLED"}
        out["source_path"] = path
        if self.include_strings:
            out["strings"] = {f"0x{pos:X}": s for pos, s in fres.string_table.items()}

        os.makedirs(os.path.dirname(self.filepath) or ".", exist_ok=True)
        with open(self.filepath, "w", encoding="utf-8") as f:
            json.dump(out, f, indent=2)
        self.report({"INFO"}, f"Wrote {self.filepath}")
        return {"FINISHED"}


class BFRES_OT_dump_vertices_json(bpy.types.Operator, ExportHelper):
    bl_idname = "bfres.dump_vertices_json"
    bl_label = "BFRES: Dump Vertices JSON"
    bl_options = {"UNDO"}

    filename_ext = ".json"
    filter_glob: StringProperty(default="*.json", options={"HIDDEN"})

    model_index: IntProperty(name="Model Index", default=0, min=0)
    max_vertices: IntProperty(
        name="Max Vertices",
        default=64,
        min=0,
        description="Vertices written per attribute stream (0 = all)",
    )

    def execute(self, context: bpy.types.Context):
        path, data = _read_last_import(self, context)
        if data is None:
            return {"CANCELLED"}
        try:
            fres = load_bfres(data)
            models = fres.entries(SubFileKind.MODEL)
        except BfresError as e:
            self.report({"ERROR"}, f"Failed to decode: {path} ({e})")
            return {"CANCELLED"}

        mi = int(self.model_index)
        if mi >= len(models):
            self.report({"ERROR"}, f"Model index out of range: {mi} (models={len(models)})")
            return {"CANCELLED"}
        name, fmdl = models[mi]
        src = fres.source
        limit = int(self.max_vertices)

        buffers_out = []
        for fvtx_index, fvtx in enumerate(fmdl.vertex_buffers(src)):
            streams = {}
            for attr_name, attr in fvtx.attributes_index_group.items(src):
                try:
                    values = fvtx.read_attribute(src, attr)
                except BfresError as e:
                    streams[attr_name] = {"format": attr.format.name, "error": str(e)}
                    continue
                if limit > 0:
                    values = values[:limit]
                streams[attr_name] = {
                    "format": attr.format.name,
                    "values": [list(v) for v in values],
                }
            buffers_out.append(
                {
                    "fvtx_index": fvtx_index,
                    "vertex_count": fvtx.header.vertex_count,
                    "streams": streams,
                }
            )

        out = {
            "type": "bfres_vertices",
            "source_path": path,
            "model_index": mi,
            "model": name,
            "vertex_buffers": buffers_out,
        }
        os.makedirs(os.path.dirname(self.filepath) or ".", exist_ok=True)
        with open(self.filepath, "w", encoding="utf-8") as f:
            json.dump(out, f, indent=2)
        self.report({"INFO"}, f"Wrote {self.filepath}")
        return {"FINISHED"}


_CLASSES = (
    BFRES_OT_dump_summary_json,
    BFRES_OT_dump_vertices_json,
)


def register() -> None:
    for c in _CLASSES:
        bpy.utils.register_class(c)


def unregister() -> None:
    for c in reversed(_CLASSES):
        bpy.utils.unregister_class(c)
