import io
import struct

import pytest

from dmsview.mathutil import identity_matrix
from dmsview.model import (
    DMS_MAGIC,
    Animation,
    DmsFormatError,
    Mesh,
    Model,
    Transform,
    load_model,
    read_model,
)
from dmsview.primitives import split_indices

IDENTITY_TRANSFORM = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0)


def _transform(tx=0.0, ty=0.0, tz=0.0):
    return struct.pack("<10f", tx, ty, tz, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0)


def _bone(name, parent):
    return struct.pack("<64si", name, parent) + struct.pack("<10f", *IDENTITY_TRANSFORM) + struct.pack(
        "<16f", *identity_matrix()
    )


def _header(mesh_count, bone_count, magic=DMS_MAGIC, version=1):
    return struct.pack("<IIII", magic, version, mesh_count, bone_count)


def _static_model(meshes):
    data = _header(len(meshes), 0) + struct.pack("<I", 0)
    for vertices, indices, texture_id in meshes:
        data += struct.pack("<IIi", len(vertices), len(indices), texture_id)
        for v in vertices:
            data += struct.pack("<8f", *v)
        data += b"".join(struct.pack("<I", i) for i in indices)
    return data


def _skinned_model(bones, animations, vertices, indices=(0, 1, 2)):
    data = _header(1, len(bones))
    for name, parent in bones:
        data += _bone(name, parent)
    data += struct.pack("<I", len(animations))
    for name, frames, duration, poses in animations:
        data += struct.pack("<32siif", name, len(bones), frames, duration)
        data += b"".join(poses)
    data += struct.pack("<IIi", len(vertices), len(indices), 0)
    for x, y, z, bone_id, weight in vertices:
        data += struct.pack("<3f3bx2fB3xf", x, y, z, 0, 0, 127, 0.5, 0.5, bone_id, weight)
    data += b"".join(struct.pack("<I", i) for i in indices)
    return data


def _translating_model():
    poses = [_transform(0.0, 0.0, 0.0), _transform(2.0, 0.0, 0.0)]
    return read_model(
        io.BytesIO(
            _skinned_model(
                bones=[(b"root", -1)],
                animations=[(b"walk", 2, 1.0, poses), (b"idle", 2, 1.0, [_transform(), _transform()])],
                vertices=[(0.0, 0.0, 0.0, 0, 1.0), (0.0, 3.0, 0.0, 0, 0.0)],
            )
        )
    )


def test_literal_dmst_magic_is_accepted():
    data = b"DMST" + struct.pack("<III", 1, 0, 0) + struct.pack("<I", 0)
    model = read_model(io.BytesIO(data))
    assert model.meshes == []
    assert model.texture_count == 0
    assert model.skeleton is None


def test_bad_magic_raises():
    data = _header(0, 0, magic=0x12345678) + struct.pack("<I", 0)
    with pytest.raises(DmsFormatError):
        read_model(io.BytesIO(data))


def test_truncated_file_raises():
    data = _static_model([([(0.0,) * 8] * 3, [0, 1, 2], 0)])
    with pytest.raises(DmsFormatError):
        read_model(io.BytesIO(data[:-6]))


def test_static_model_packs_normals_and_counts_textures():
    vertices = [
        (1.0, 2.0, 3.0, 1.0, -1.0, 0.0, 0.25, 0.75),
        (4.0, 5.0, 6.0, 0.0, 0.0, 1.0, 0.0, 1.0),
        (7.0, 8.0, 9.0, 0.0, 1.0, 0.0, 1.0, 0.0),
    ]
    model = read_model(io.BytesIO(_static_model([(vertices, [0, 1, 2], 0), (vertices, [2, 1, 0], 2)])))
    assert model.skeleton is None
    assert len(model.meshes) == 2
    assert model.texture_count == 3
    assert model.textures == [None, None, None]
    first = model.meshes[0].vertices[0]
    assert first.position == (1.0, 2.0, 3.0)
    assert (first.nx, first.ny, first.nz) == (127, -127, 0)
    assert (first.u, first.v) == (0.25, 0.75)
    assert first.bone_weight == 0.0
    assert model.meshes[0].animated_vertices is None
    assert model.meshes[1].indices == [2, 1, 0]


def test_static_model_without_skeleton_reports_no_animations():
    model = read_model(io.BytesIO(_static_model([])))
    assert model.animation_count() == 0
    assert model.current_animation() == -1
    assert model.animation_name(0) is None
    assert model.set_animation(0) is False
    assert model.texture_count == 0


def test_skinned_model_reads_skeleton_and_animations():
    model = _translating_model()
    assert model.skeleton.bone_count == 1
    assert model.skeleton.bones[0].name == "root"
    assert model.skeleton.bones[0].parent == -1
    assert model.skeleton.bones[0].inverse_bind_matrix == identity_matrix()
    assert model.animation_count() == 2
    assert model.animation_name(1) == "idle"
    assert model.animation_name(2) is None
    assert model.current_animation() == 0
    mesh = model.meshes[0]
    assert mesh.animated_vertices == mesh.vertices
    assert mesh.vertices[0].bone_id == 0 and mesh.vertices[0].bone_weight == 1.0


def test_set_animation_resets_time():
    model = _translating_model()
    model.update_animation(0.3)
    assert model.set_animation(1) is True
    assert model.current_animation() == 1
    assert model.skeleton.current_time == 0.0
    assert model.set_animation(5) is False
    assert model.current_animation() == 1


def test_animation_interpolates_and_skins():
    model = _translating_model()
    model.update_animation(0.25)
    bone = model.skeleton.bones[0]
    assert bone.local_pose.translation == pytest.approx((1.0, 0.0, 0.0))
    model.update_skinning()
    posed = model.meshes[0].animated_vertices
    assert posed[0].position == pytest.approx((1.0, 0.0, 0.0))
    # Vertices without bone weight keep their bind position.
    assert posed[1].position == model.meshes[0].vertices[1].position


def test_animation_time_wraps_around_duration():
    model = _translating_model()
    model.update_animation(1.25)
    assert model.skeleton.current_time == pytest.approx(0.25)
    assert model.skeleton.current_time < model.skeleton.animations[0].duration


def test_child_bone_composes_parent_world_pose():
    poses = [_transform(1.0, 0.0, 0.0), _transform(0.0, 1.0, 0.0)] * 2
    model = read_model(
        io.BytesIO(
            _skinned_model(
                bones=[(b"root", -1), (b"child", 0)],
                animations=[(b"still", 2, 1.0, poses)],
                vertices=[(0.0, 0.0, 0.0, 1, 1.0)],
            )
        )
    )
    model.update_animation(0.1)
    world = model.skeleton.bones[1].world_pose
    assert (world[3], world[7], world[11]) == pytest.approx((1.0, 1.0, 0.0))
    model.update_skinning()
    assert model.meshes[0].animated_vertices[0].position == pytest.approx((1.0, 1.0, 0.0))


def test_animation_pose_lookup():
    poses = [Transform(translation=(float(i), 0.0, 0.0)) for i in range(6)]
    anim = Animation("run", bone_count=2, frame_count=3, duration=1.0, poses=poses)
    assert anim.pose(2, 1) is poses[5]
    assert anim.pose(1, 0) is poses[2]
    with pytest.raises(IndexError):
        anim.pose(3, 0)


def test_mesh_batches_match_split_indices():
    indices = [0x80000000 | 0, 0x80000000 | 1, 0x80000000 | 2, 3, 4, 5]
    mesh = Mesh(indices=indices)
    assert mesh.batches() == split_indices(indices)
    assert mesh.index_count == 6


def test_skinning_ignored_for_static_mesh():
    model = read_model(io.BytesIO(_static_model([([(0.0,) * 8] * 3, [0, 1, 2], 0)])))
    model.update_animation(1.0)
    model.update_skinning()
    assert model.meshes[0].animated_vertices is None


def test_load_model_from_file_matches_stream(tmp_path):
    data = _skinned_model(
        bones=[(b"root", -1)],
        animations=[(b"walk", 2, 1.0, [_transform(), _transform(2.0)])],
        vertices=[(0.0, 0.0, 0.0, 0, 1.0)],
    )
    path = tmp_path / "thing.dms"
    path.write_bytes(data)
    assert load_model(path) == read_model(io.BytesIO(data))


def _dtex_bytes():
    return struct.pack("<4sHHII", b"DTEX", 8, 8, 1 << 27, 128) + bytes(128)


def test_load_textures_with_fallback(tmp_path):
    (tmp_path / "texture0.tex").write_bytes(_dtex_bytes())
    fallback = tmp_path / "default.tex"
    fallback.write_bytes(_dtex_bytes())
    model = Model(texture_count=2)
    assert model.load_textures(tmp_path, fallback) == 2
    assert all(t is not None and t.width == 8 for t in model.textures)


def test_load_textures_without_fallback(tmp_path):
    (tmp_path / "texture0.tex").write_bytes(_dtex_bytes())
    model = Model(texture_count=2)
    assert model.load_textures(tmp_path, None) == 1
    assert model.textures[1] is None
    assert model.textures[0].height == 8


def test_load_textures_with_no_slots(tmp_path):
    model = Model()
    assert model.load_textures(tmp_path, None) == 0
    assert model.textures == []