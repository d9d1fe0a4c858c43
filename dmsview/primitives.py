"""Decoding of packed mesh indices into triangle strips and loose triangles.

Each raw index keeps the vertex number in its low 24 bits. When bit 31 is
set the index belongs to a triangle strip whose id sits in bits 24-30.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import groupby
from typing import List, Optional, Sequence, Tuple

_STRIP_FLAG = 0x80000000
_STRIP_ID_MASK = 0x7F
_VERTEX_MASK = 0x00FFFFFF


def is_strip_index(raw: int) -> bool:
    """Whether a raw index belongs to a triangle strip."""
    return bool(raw & _STRIP_FLAG)


def strip_id(raw: int) -> int:
    """The strip id carried by a raw index."""
    return (raw >> 24) & _STRIP_ID_MASK


def vertex_index(raw: int) -> int:
    """The vertex number carried by a raw index."""
    return raw & _VERTEX_MASK


@dataclass(frozen=True)
class IndexBatches:
    """Draw batches of a mesh: strips of three or more indices and a triangle list."""

    strips: List[Tuple[int, ...]] = field(default_factory=list)
    triangles: List[int] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles) // 3


def _strip_key(raw: int) -> Optional[int]:
    return strip_id(raw) if is_strip_index(raw) else None


def _collect_strips(indices: Sequence[int]) -> List[Tuple[int, ...]]:
    strips = []
    for key, run in groupby(indices, key=_strip_key):
        if key is None:
            continue
        members = tuple(vertex_index(raw) for raw in run)
        if len(members) >= 3:
            strips.append(members)
    return strips


def _collect_triangles(indices: Sequence[int]) -> List[int]:
    triangles: List[int] = []
    count = len(indices)
    pos = 0
    while pos < count:
        raw = indices[pos]
        if not is_strip_index(raw):
            if pos + 2 < count:
                triangles.extend(vertex_index(r) for r in indices[pos:pos + 3])
                pos += 3
            else:
                pos += 1
            continue
        current = strip_id(raw)
        while pos < count and is_strip_index(indices[pos]) and strip_id(indices[pos]) == current:
            pos += 1
    return triangles


def split_indices(indices: Sequence[int]) -> IndexBatches:
    """Split packed indices into strips and a batch of loose triangles."""
    return IndexBatches(strips=_collect_strips(indices), triangles=_collect_triangles(indices))