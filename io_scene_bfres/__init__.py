bl_info = {
    "name": "BFRES (Wii U) Importer",
    "author": "io_scene_bfres contributors",
    "version": (0, 1, 0),
    "blender": (4, 0, 0),
    "location": "File > Import > BFRES (Wii U) (.bfres/.szs)",
    "description": "Import Wii U BFRES resource containers: models, skeletons and textures",
    "category": "Import-Export",
}

try:
    import bpy

    from .bfres_impl import register, unregister
except ModuleNotFoundError:

    def register() -> None:
        raise RuntimeError("This add-on must be registered from within Blender (bpy).")

    def unregister() -> None:
        raise RuntimeError("This add-on must be unregistered from within Blender (bpy).")
