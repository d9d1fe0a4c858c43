"""DMS model files: meshes, an optional skeleton with animations, and CPU skinning."""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass, field, replace
from typing import BinaryIO, List, Optional, Sequence, Union

from .dtex import DtexError, DtexImage, load_dtex
from .mathutil import (
    Matrix,
    Quaternion,
    Vector3,
    matrix_multiply,
    matrix_scale,
    matrix_translate,
    quaternion_slerp,
    quaternion_to_matrix,
    transform_point,
    vector_lerp,
)
from .primitives import IndexBatches, split_indices

log = logging.getLogger(__name__)

DMS_MAGIC = 0x54534D44

_HEADER = struct.Struct("<IIII")
_COUNT = struct.Struct("<I")
_TRANSFORM = struct.Struct("<10f")
_BONE = struct.Struct("<64si10f16f")
_ANIMATION = struct.Struct("<32siif")
_MESH = struct.Struct("<IIi")
_SKINNED_VERTEX = struct.Struct("<3f3bx2fB3xf")
_STATIC_VERTEX = struct.Struct("<8f")
_INDEX = struct.Struct("<I")

_ZERO_MATRIX: Matrix = (0.0,) * 16


class DmsFormatError(ValueError):
    """Raised when a DMS stream is not a DMS model or ends too early."""


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Transform:
    """Translation, rotation (x, y, z, w) and scale of a bone."""

    translation: Vector3 = (0.0, 0.0, 0.0)
    rotation: Quaternion = (0.0, 0.0, 0.0, 1.0)
    scale: Vector3 = (1.0, 1.0, 1.0)

    @classmethod
    def _from_floats(cls, values: Sequence[float]) -> "Transform":
        return cls(
            translation=tuple(values[0:3]),  # type: ignore[arg-type]
            rotation=tuple(values[3:7]),  # type: ignore[arg-type]
            scale=tuple(values[7:10]),  # type: ignore[arg-type]
        )


@dataclass
class Bone:
    """A skeleton joint with its bind pose and the pose of the current frame."""

    name: str
    parent: int
    bind_pose: Transform
    inverse_bind_matrix: Matrix
    local_pose: Transform = field(default_factory=Transform)
    world_pose: Matrix = _ZERO_MATRIX


@dataclass
class Animation:
    """Sampled bone poses, stored frame by frame."""

    name: str
    bone_count: int
    frame_count: int
    duration: float
    poses: List[Transform] = field(default_factory=list)

    def pose(self, frame: int, bone: int) -> Transform:
        """The pose of one bone in one frame."""
        if not (0 <= frame < self.frame_count and 0 <= bone < self.bone_count):
            raise IndexError(f"no pose for frame {frame}, bone {bone}")
        return self.poses[frame * self.bone_count + bone]


@dataclass
class Skeleton:
    """Bones, animations and the playback state."""

    bones: List[Bone]
    animations: List[Animation] = field(default_factory=list)
    current_anim: int = 0
    current_time: float = 0.0

    @property
    def bone_count(self) -> int:
        return len(self.bones)


@dataclass(frozen=True)
class Vertex:
    """A mesh vertex with a packed normal and a single bone influence."""

    x: float
    y: float
    z: float
    nx: int = 0
    ny: int = 0
    nz: int = 0
    u: float = 0.0
    v: float = 0.0
    bone_id: int = 0
    bone_weight: float = 0.0

    @property
    def position(self) -> Vector3:
        return (self.x, self.y, self.z)


@dataclass
class Mesh:
    """Bind-pose vertices, packed indices and, for skinned meshes, posed vertices."""

    vertices: List[Vertex] = field(default_factory=list)
    indices: List[int] = field(default_factory=list)
    texture_id: int = -1
    animated_vertices: Optional[List[Vertex]] = None

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def index_count(self) -> int:
        return len(self.indices)

    def update_skinning(self, skeleton: Optional[Skeleton]) -> None:
        """Recompute posed vertex positions from the skeleton's world poses."""
        if skeleton is None or self.animated_vertices is None:
            return
        bones = skeleton.bones
        posed = []
        for vertex in self.vertices:
            if vertex.bone_weight > 0.0 and vertex.bone_id < len(bones):
                bone = bones[vertex.bone_id]
                bone_space = transform_point(vertex.position, bone.inverse_bind_matrix)
                x, y, z = transform_point(bone_space, bone.world_pose)
                vertex = replace(vertex, x=x, y=y, z=z)
            posed.append(vertex)
        self.animated_vertices = posed

    def batches(self) -> IndexBatches:
        """The mesh's indices split into strips and loose triangles."""
        return split_indices(self.indices)


@dataclass
class Model:
    """A loaded DMS model."""

    meshes: List[Mesh] = field(default_factory=list)
    skeleton: Optional[Skeleton] = None
    texture_count: int = 0
    textures: List[Optional[DtexImage]] = field(default_factory=list)
    version: int = 0

    def animation_count(self) -> int:
        """Number of animations, 0 without a skeleton."""
        return len(self.skeleton.animations) if self.skeleton else 0

    def current_animation(self) -> int:
        """Index of the animation playing, -1 without a skeleton."""
        return self.skeleton.current_anim if self.skeleton else -1

    def animation_name(self, index: int) -> Optional[str]:
        """Name of an animation, or None if there is no such animation."""
        if self.skeleton and 0 <= index < len(self.skeleton.animations):
            return self.skeleton.animations[index].name
        return None

    def set_animation(self, index: int) -> bool:
        """Start playing an animation from its beginning; False if it does not exist."""
        if self.skeleton and 0 <= index < len(self.skeleton.animations):
            self.skeleton.current_anim = index
            self.skeleton.current_time = 0.0
            return True
        return False

    def update_animation(self, delta_time: float) -> None:
        """Advance playback and recompute every bone's local and world pose."""
        skeleton = self.skeleton
        if skeleton is None or not skeleton.animations:
            return
        anim = skeleton.animations[skeleton.current_anim]

        skeleton.current_time += delta_time
        if anim.duration <= 0.0:
            skeleton.current_time = 0.0
            return
        while skeleton.current_time >= anim.duration:
            skeleton.current_time -= anim.duration

        if anim.frame_count < 2:
            return

        time_per_frame = anim.duration / anim.frame_count
        frame = min(int(skeleton.current_time / time_per_frame), anim.frame_count - 1)
        next_frame = (frame + 1) % anim.frame_count
        alpha = (skeleton.current_time % time_per_frame) / time_per_frame

        stride = skeleton.bone_count
        for i, bone in enumerate(skeleton.bones):
            curr = anim.poses[frame * stride + i]
            nxt = anim.poses[next_frame * stride + i]
            pose = Transform(
                translation=vector_lerp(curr.translation, nxt.translation, alpha),
                rotation=quaternion_slerp(curr.rotation, nxt.rotation, alpha),
                scale=vector_lerp(curr.scale, nxt.scale, alpha),
            )
            bone.local_pose = pose
            local = matrix_multiply(
                matrix_multiply(matrix_scale(*pose.scale), quaternion_to_matrix(pose.rotation)),
                matrix_translate(*pose.translation),
            )
            if bone.parent >= 0:
                bone.world_pose = matrix_multiply(local, skeleton.bones[bone.parent].world_pose)
            else:
                bone.world_pose = local

    def update_skinning(self) -> None:
        """Recompute posed vertices of every mesh."""
        for mesh in self.meshes:
            mesh.update_skinning(self.skeleton)

    def load_textures(
        self,
        base_path: Union[str, "os.PathLike[str]"],
        default_texture: Optional[Union[str, "os.PathLike[str]"]],
    ) -> int:
        """Load ``texture<N>.tex`` for each texture slot; return how many loaded."""
        if self.texture_count <= 0:
            return 0
        self.textures = [None] * self.texture_count
        loaded = 0
        for i in range(self.texture_count):
            path = os.path.join(os.fspath(base_path), f"texture{i}.tex")
            texture = _try_load(path)
            if texture is None and default_texture is not None:
                log.info("falling back to default texture for slot %d", i)
                texture = _try_load(default_texture)
            self.textures[i] = texture
            if texture is not None:
                loaded += 1
        return loaded


def _try_load(path: Union[str, "os.PathLike[str]"]) -> Optional[DtexImage]:
    try:
        return load_dtex(path)
    except (OSError, DtexError) as exc:
        log.info("failed to load texture %s: %s", path, exc)
        return None


class _Reader:
    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read(self, size: int, what: str) -> bytes:
        data = self._stream.read(size)
        if len(data) < size:
            raise DmsFormatError(f"truncated DMS file while reading {what}")
        return data

    def one(self, layout: struct.Struct, what: str) -> tuple:
        return layout.unpack(self._read(layout.size, what))

    def many(self, layout: struct.Struct, count: int, what: str) -> List[tuple]:
        return list(layout.iter_unpack(self._read(layout.size * count, what)))


def _packed_normal(value: float) -> int:
    return max(-128, min(127, int(value * 127.0)))


def _read_skeleton(reader: _Reader, bone_count: int) -> Skeleton:
    bones = []
    for _ in range(bone_count):
        fields = reader.one(_BONE, "bone")
        bones.append(
            Bone(
                name=_decode_name(fields[0]),
                parent=fields[1],
                bind_pose=Transform._from_floats(fields[2:12]),
                inverse_bind_matrix=tuple(fields[12:28]),
            )
        )
    (anim_count,) = reader.one(_COUNT, "animation count")
    animations = []
    for _ in range(anim_count):
        name, anim_bones, frames, duration = reader.one(_ANIMATION, "animation")
        total = max(frames * anim_bones, 0)
        poses = [Transform._from_floats(v) for v in reader.many(_TRANSFORM, total, "poses")]
        animations.append(Animation(_decode_name(name), anim_bones, frames, duration, poses))
        log.info("animation %s: %d frames, duration %.2fs", animations[-1].name, frames, duration)
    return Skeleton(bones=bones, animations=animations)


def _read_mesh(reader: _Reader, skinned: bool) -> Mesh:
    vertex_count, index_count, texture_id = reader.one(_MESH, "mesh header")
    mesh = Mesh(texture_id=texture_id)
    if vertex_count > 0:
        if skinned:
            mesh.vertices = [
                Vertex(*values) for values in reader.many(_SKINNED_VERTEX, vertex_count, "vertices")
            ]
            mesh.animated_vertices = list(mesh.vertices)
        else:
            mesh.vertices = [
                Vertex(
                    x, y, z,
                    _packed_normal(nx), _packed_normal(ny), _packed_normal(nz),
                    u, v,
                )
                for x, y, z, nx, ny, nz, u, v in reader.many(_STATIC_VERTEX, vertex_count, "vertices")
            ]
    if index_count > 0:
        mesh.indices = [raw for (raw,) in reader.many(_INDEX, index_count, "indices")]
    return mesh


def read_model(stream: BinaryIO) -> Model:
    """Read a DMS model from a binary stream."""
    reader = _Reader(stream)
    magic, version, mesh_count, bone_count = reader.one(_HEADER, "header")
    if magic != DMS_MAGIC:
        raise DmsFormatError(
            f"Invalid file format: magic mismatch 0x{magic:08X} vs 0x{DMS_MAGIC:08X}"
        )

    if bone_count > 0:
        skeleton: Optional[Skeleton] = _read_skeleton(reader, bone_count)
    else:
        skeleton = None
        reader.one(_COUNT, "animation count")

    meshes = [_read_mesh(reader, skeleton is not None) for _ in range(mesh_count)]
    max_texture = max((mesh.texture_id for mesh in meshes), default=-1)
    texture_count = max_texture + 1 if max_texture >= 0 else 0
    return Model(
        meshes=meshes,
        skeleton=skeleton,
        texture_count=texture_count,
        textures=[None] * texture_count,
        version=version,
    )


def load_model(path: Union[str, "os.PathLike[str]"]) -> Model:
    """Load a DMS model from a file."""
    with open(path, "rb") as stream:
        return read_model(stream)