import io_scene_bfres


def test_bl_info():
    info = io_scene_bfres.bl_info
    assert info["author"] == "io_scene_bfres contributors"
    assert info["category"] == "Import-Export"
    assert info["version"] == (0, 1, 0)
