"""Blender import implementation for BFRES.

Builds armatures, meshes, materials and packed images from a decoded container.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import bpy
from bpy.props import BoolProperty, EnumProperty, FloatProperty, IntProperty, StringProperty
from bpy_extras.io_utils import ImportHelper, axis_conversion
from mathutils import Euler, Matrix, Quaternion, Vector

from ..core.binio import ByteSource
from ..core.errors import BfresError
from ..core.fmdl import Bone, Fmat, Fmdl, Fshp, RotationMode
from ..core.fres import Fres, SubFileKind, load_bfres
from ..core.ftex import Ftex
from ..core.texture import bgra_to_rgba_floats, decode_texture_bgra, flip_bgra_y


def _bone_rotation(bone: Bone) -> Quaternion:
    x, y, z, w = bone.rotation
    if bone.flags.rotation_mode == RotationMode.EULER_XYZ:
        return Euler((x, y, z), "XYZ").to_quaternion()
    return Quaternion((w, x, y, z))


def _transform_quat_basis(q: Quaternion, conv3: Matrix) -> Quaternion:
    m = conv3 @ q.to_matrix() @ conv3.inverted()
    return m.to_quaternion()


def _rest_world_mats(
    bones: Sequence[Bone], conv: Matrix, global_scale: float
) -> List[Matrix]:
    conv3 = conv.to_3x3()
    local: List[Matrix] = []
    for b in bones:
        t = Matrix.Translation(conv @ (Vector(b.translation) * global_scale))
        r = _transform_quat_basis(_bone_rotation(b), conv3).to_matrix().to_4x4()
        local.append(t @ r)

    world: List[Optional[Matrix]] = [None] * len(bones)

    def world_for(i: int, depth: int = 0) -> Matrix:
        cached = world[i]
        if cached is not None:
            return cached
        b = bones[i]
        parent = b.parent_index
        if b.has_parent and parent < len(bones) and parent != i and depth < len(bones):
            m = world_for(parent, depth + 1) @ local[i]
        else:
            m = local[i]
        world[i] = m
        return m

    return [world_for(i) for i in range(len(bones))]


def _build_armature(
    src: ByteSource,
    name: str,
    fmdl: Fmdl,
    conv: Matrix,
    global_scale: float,
    collection: bpy.types.Collection,
) -> Optional[bpy.types.Object]:
    bones = fmdl.fskl.bone_list(src)
    if not bones:
        return None
    names = [b.name(src) for b in bones]

    arm_data = bpy.data.armatures.new(f"{name}_Armature")
    arm_obj = bpy.data.objects.new(arm_data.name, arm_data)
    collection.objects.link(arm_obj)

    bpy.context.view_layer.objects.active = arm_obj
    bpy.ops.object.mode_set(mode="EDIT")

    edit_bones: List[bpy.types.EditBone] = [arm_data.edit_bones.new(n) for n in names]
    for i, b in enumerate(bones):
        if b.has_parent and b.parent_index < len(edit_bones) and b.parent_index != i:
            edit_bones[i].parent = edit_bones[b.parent_index]

    length = max(0.01, 0.05 * global_scale)
    for eb, mw in zip(edit_bones, _rest_world_mats(bones, conv, global_scale)):
        loc, rot, _sca = mw.decompose()
        rot3 = rot.to_matrix()
        y_axis = rot3 @ Vector((0.0, 1.0, 0.0))
        if y_axis.length == 0:
            y_axis = Vector((0.0, 1.0, 0.0))
        else:
            y_axis.normalize()
        eb.head = loc
        eb.tail = loc + y_axis * length
        z_axis = rot3 @ Vector((0.0, 0.0, 1.0))
        if z_axis.length != 0:
            z_axis.normalize()
            eb.align_roll(z_axis)

    bpy.ops.object.mode_set(mode="OBJECT")

    for b, n in zip(bones, names):
        pb = arm_obj.pose.bones.get(n)
        if pb is not None:
            pb.bone.hide = not b.flags.visible
    return arm_obj


def _make_image(src: ByteSource, name: str, ftex: Ftex) -> bpy.types.Image:
    img = bpy.data.images.get(name)
    if img is not None:
        return img
    h = ftex.header
    bgra = decode_texture_bgra(h, ftex.image_bytes(src))
    bgra = flip_bgra_y(bgra, h.width, h.height)
    img = bpy.data.images.new(name, width=h.width, height=h.height, alpha=True)
    img.pixels = bgra_to_rgba_floats(bgra)
    img.pack()
    return img


def _make_material(name: str) -> bpy.types.Material:
    mat = bpy.data.materials.get(name)
    if mat is not None:
        return mat
    mat = bpy.data.materials.new(name=name)
    mat.use_nodes = True
    return mat


def _material_image(
    src: ByteSource, mat_name: str, fmat: Fmat, images: Dict[str, bpy.types.Image]
) -> Optional[bpy.types.Image]:
    """First referenced texture that was imported, else a texture named like the material."""
    if not images:
        return None
    try:
        names = fmat.texture_names(src)
    except BfresError as exc:
        print(f"[BFRES] Texture references of {mat_name} skipped: {exc}")
        names = []
    for tex_name in names:
        image = images.get(tex_name)
        if image is not None:
            return image
    return images.get(mat_name)


def _build_mesh(
    src: ByteSource,
    model_name: str,
    shape_name: str,
    fshp: Fshp,
    fmdl: Fmdl,
    lod_index: int,
    conv: Matrix,
    global_scale: float,
) -> Optional[bpy.types.Mesh]:
    fvtx = fmdl.fvtx_array.data(src, fshp.header.fvtx_index)
    positions = fvtx.stream(src, "_p0")
    if not positions:
        return None
    level = min(lod_index, len(fshp.lod_model_array) - 1)
    if level < 0:
        return None
    tris = fshp.lod(src, level).triangles(src)
    vertex_count = len(positions)
    tris = [t for t in tris if max(t) < vertex_count]
    if not tris:
        return None

    verts = [conv @ (Vector(p[:3]) * global_scale) for p in positions]
    mesh = bpy.data.meshes.new(f"{model_name}_{shape_name}")
    mesh.from_pydata([tuple(v) for v in verts], [], [list(t) for t in tris])
    mesh.validate(verbose=False)
    mesh.update()

    normals = fvtx.stream(src, "_n0")
    if normals and len(normals) == vertex_count:
        conv3 = conv.to_3x3()
        mesh.normals_split_custom_set_from_vertices(
            [tuple((conv3 @ Vector(n[:3])).normalized()) for n in normals]
        )
        if hasattr(mesh, "use_auto_smooth"):
            mesh.use_auto_smooth = True

    uvs = fvtx.stream(src, "_u0")
    if uvs:
        uv_layer = mesh.uv_layers.new(name="UVMap")
        for poly in mesh.polygons:
            for li in poly.loop_indices:
                vi = mesh.loops[li].vertex_index
                u, v = uvs[vi][:2] if vi < len(uvs) else (0.0, 0.0)
                uv_layer.data[li].uv = (u, 1.0 - v)
    return mesh


def _import_model_to_blender(
    ctx: bpy.types.Context,
    fres: Fres,
    name: str,
    fmdl: Fmdl,
    images: Dict[str, bpy.types.Image],
    *,
    import_skeleton: bool,
    lod_index: int,
    global_scale: float,
    axis_forward: str,
    axis_up: str,
) -> int:
    src = fres.source
    conv = axis_conversion(
        from_forward=axis_forward, from_up=axis_up, to_forward="-Y", to_up="Z"
    ).to_4x4()

    coll = bpy.data.collections.new(f"BFRES_{name}")
    ctx.scene.collection.children.link(coll)

    mats_by_index: List[bpy.types.Material] = []
    image_by_material: Dict[str, bpy.types.Image] = {}
    for mat_name, fmat in fmdl.materials(src):
        mats_by_index.append(_make_material(mat_name))
        image = _material_image(src, mat_name, fmat, images)
        if image is not None:
            image_by_material[mat_name] = image

    arm_obj = None
    if import_skeleton:
        try:
            arm_obj = _build_armature(src, name, fmdl, conv, global_scale, coll)
        except BfresError as exc:
            print(f"[BFRES] Skeleton of {name} skipped: {exc}")

    created = 0
    for shape_name, fshp in fmdl.shapes(src):
        try:
            mesh = _build_mesh(src, name, shape_name, fshp, fmdl, lod_index, conv, global_scale)
        except BfresError as exc:
            print(f"[BFRES] Shape {name}/{shape_name} skipped: {exc}")
            continue
        if mesh is None:
            continue
        obj = bpy.data.objects.new(mesh.name, mesh)
        coll.objects.link(obj)
        obj["bfres_model_name"] = name
        obj["bfres_shape_name"] = shape_name
        obj["bfres_fvtx_index"] = int(fshp.header.fvtx_index)
        obj["bfres_fmat_index"] = int(fshp.header.fmat_index)
        created += 1

        mat_index = fshp.header.fmat_index
        if mat_index < len(mats_by_index):
            mat = mats_by_index[mat_index]
            mesh.materials.append(mat)
            image = image_by_material.get(mat.name)
            if image is not None:
                _link_image(mat, image)

        if arm_obj is not None:
            obj.parent = arm_obj
            mod = obj.modifiers.new(name="Armature", type="ARMATURE")
            mod.object = arm_obj
    return created


def _link_image(mat: bpy.types.Material, image: bpy.types.Image) -> None:
    nt = mat.node_tree
    if nt is None:
        return
    bsdf = nt.nodes.get("Principled BSDF")
    if bsdf is None:
        return
    if any(n.type == "TEX_IMAGE" and n.image == image for n in nt.nodes):
        return
    tex = nt.nodes.new("ShaderNodeTexImage")
    tex.image = image
    tex.location = (-300, 0)
    nt.links.new(tex.outputs["Color"], bsdf.inputs["Base Color"])


def _import_textures(fres: Fres) -> Dict[str, bpy.types.Image]:
    images: Dict[str, bpy.types.Image] = {}
    for name, ftex in fres.entries(SubFileKind.TEXTURE):
        try:
            images[name] = _make_image(fres.source, name, ftex)
        except BfresError as exc:
            print(f"[BFRES] Texture {name} skipped: {exc}")
    return images


def _import_bfres_bytes(
    context: bpy.types.Context,
    data: bytes,
    *,
    source_path: str,
    import_textures: bool,
    import_skeleton: bool = True,
    lod_index: int = 0,
    global_scale: float = 1.0,
    axis_forward: str = "-Z",
    axis_up: str = "Y",
) -> bool:
    fres = load_bfres(data)
    context.scene["bfres_last_import_path"] = str(source_path)

    models = fres.entries(SubFileKind.MODEL)
    print(
        f"[BFRES] Loaded {fres.file_name()} {fres.header.version}: "
        f"models={len(models)} textures={fres.header.count(SubFileKind.TEXTURE)} "
        f"sub_files={fres.total_sub_file_count()}"
    )
    for kind, declared, actual in fres.count_mismatches():
        print(f"[BFRES] {kind.field_name}: header count {declared}, index group has {actual}")
    if not models:
        return False

    images = _import_textures(fres) if import_textures else {}
    created = 0
    for name, fmdl in models:
        created += _import_model_to_blender(
            context,
            fres,
            name,
            fmdl,
            images,
            import_skeleton=bool(import_skeleton),
            lod_index=int(lod_index),
            global_scale=float(global_scale),
            axis_forward=str(axis_forward),
            axis_up=str(axis_up),
        )
    print(f"[BFRES] Created {created} mesh object(s)")
    return True


class IMPORT_SCENE_OT_bfres(bpy.types.Operator, ImportHelper):
    bl_idname = "import_scene.bfres"
    bl_label = "Import BFRES (Wii U)"
    bl_options = {"UNDO"}

    filename_ext = ".bfres"
    filter_glob: StringProperty(default="*.bfres;*.szs", options={"HIDDEN"})

    import_textures: BoolProperty(name="Import Textures", default=True)
    import_skeleton: BoolProperty(name="Import Skeleton", default=True)
    lod_index: IntProperty(
        name="LOD",
        default=0,
        min=0,
        description="Level of detail to build meshes from; clamped to the last available level",
    )
    global_scale: FloatProperty(name="Scale", default=1.0, min=0.0001, max=1000.0)

    axis_forward: EnumProperty(
        name="Forward",
        items=[(a, a, "") for a in ("X", "Y", "Z", "-X", "-Y", "-Z")],
        default="-Z",
    )
    axis_up: EnumProperty(
        name="Up",
        items=[(a, a, "") for a in ("X", "Y", "Z", "-X", "-Y", "-Z")],
        default="Y",
    )

    def execute(self, context: bpy.types.Context):
        with open(self.filepath, "rb") as f:
            data = f.read()
        try:
            ok = _import_bfres_bytes(
                context,
                data,
                source_path=str(self.filepath),
                import_textures=bool(self.import_textures),
                import_skeleton=bool(self.import_skeleton),
                lod_index=int(self.lod_index),
                global_scale=float(self.global_scale),
                axis_forward=str(self.axis_forward),
                axis_up=str(self.axis_up),
            )
        except BfresError as exc:
            self.report({"ERROR"}, f"Not a readable BFRES file: {exc}")
            return {"CANCELLED"}
        if not ok:
            self.report({"ERROR"}, "No FMDL models found in file")
            return {"CANCELLED"}
        return {"FINISHED"}


def menu_func_import(self, context):
    self.layout.operator(IMPORT_SCENE_OT_bfres.bl_idname, text="BFRES (Wii U) (.bfres/.szs)")


_CLASSES = (IMPORT_SCENE_OT_bfres,)


def register() -> None:
    for c in _CLASSES:
        bpy.utils.register_class(c)
    bpy.types.TOPBAR_MT_file_import.append(menu_func_import)


def unregister() -> None:
    bpy.types.TOPBAR_MT_file_import.remove(menu_func_import)
    for c in reversed(_CLASSES):
        bpy.utils.unregister_class(c)
