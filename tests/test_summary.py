import json

from io_scene_bfres.core.fres import load_bfres
from io_scene_bfres.core.summary import summarize


def test_summary_of_model_container(model_bfres):
    out = summarize(load_bfres(model_bfres))
    assert out["file_name"] == "demo"
    assert out["version"] == "v3.4.0.0"
    assert out["sub_file_count"] == 3
    assert out["slots"] == {"model_data": 1, "texture_data": 1, "embedded_file": 1}
    assert out["count_mismatches"] == {}

    [model] = out["models"]
    assert model["name"] == "body"
    assert model["bone_count"] == 2
    assert model["materials"] == [
        {"name": "mat0", "texture_reference_count": 1, "textures": ["tex0"]}
    ]
    [vb] = model["vertex_buffers"]
    assert [a["name"] for a in vb["attributes"]] == ["_p0", "_u0"]
    assert vb["attributes"][0]["format"] == "FLOAT_32_32_32"
    [shape] = model["shapes"]
    assert shape["lods"] == [
        {"primitive_type": "TRIANGLES", "index_format": "U16_BE", "points": 3, "visibility_groups": 0}
    ]

    [texture] = out["textures"]
    assert texture["name"] == "tex0"
    assert texture["format"] == "R8_G8_B8_A8_UNORM"
    assert texture["tile_mode"] == "LINEAR_ALIGNED"
    assert texture["component_selector"] == ["RED", "GREEN", "BLUE", "ALPHA"]

    [blob] = out["embedded_files"]
    assert blob == {"name": "blob", "offset": blob["offset"], "length": 5}
    assert model_bfres[blob["offset"] : blob["offset"] + 5] == b"hello"

    assert json.loads(json.dumps(out)) == out
