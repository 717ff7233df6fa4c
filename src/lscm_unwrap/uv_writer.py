"""
UV write-back.

Solved per-UV-vertex coordinates are folded back onto the polygon mesh:
every mesh vertex gets one UV entry per distinct (quantised) coordinate, and
every face corner is pointed at the right entry through the back references
recorded while splitting.
"""

from __future__ import annotations

import logging

import numpy as np

from .lscm_solver import LscmResult
from .mesh_loader import PolyMesh
from .seam_splitter import SplitResult

_LOGGER = logging.getLogger(__name__)

UV_QUANTIZATION = 100000


def quantize_uv(u: float, v: float) -> tuple[int, int]:
    """Integer key for approximate UV equality (about 1e-5 resolution)."""
    return int(round(float(u) * UV_QUANTIZATION)), int(round(float(v) * UV_QUANTIZATION))


def apply_uvs(mesh: PolyMesh, split: SplitResult, result: LscmResult) -> bool:
    """
    LSCM 결과를 메쉬의 Vertex.uvs / Face.uv_indices에 기록

    Args:
        mesh: split을 만든 원본 메쉬 (in-place 수정)
        split: seam 분할 결과
        result: LSCM 결과

    Returns:
        bool: 기록했으면 True (실패한 결과면 메쉬를 건드리지 않고 False)
    """
    if mesh is None:
        raise ValueError("mesh is None")
    if result is None or not result.success or result.uvs is None:
        return False

    uvs = np.asarray(result.uvs, dtype=np.float64)
    if uvs.shape != (split.vertex_count, 2):
        raise ValueError(
            f"UV array shape {uvs.shape} does not match split vertex count {split.vertex_count}"
        )

    for vert in mesh.vertices:
        vert.uvs.clear()

    # UV 정점 -> 원본 정점 UV 목록 내 서브 인덱스
    uv_vert_to_sub = np.zeros((split.vertex_count,), dtype=np.int64)
    vert_uv_map: dict[int, dict[tuple[int, int], int]] = {}

    for uv_idx in range(split.vertex_count):
        orig = int(split.uv_to_orig_vertex[uv_idx])
        u, v = float(uvs[uv_idx, 0]), float(uvs[uv_idx, 1])
        known = vert_uv_map.setdefault(orig, {})
        key = quantize_uv(u, v)
        sub = known.get(key)
        if sub is None:
            sub = mesh.vertices[orig].add_uv((u, v))
            known[key] = sub
        uv_vert_to_sub[uv_idx] = sub

    for face in mesh.faces:
        face.uv_indices = [0] * face.vertex_count

    # 부채꼴 분할로 한 face가 여러 삼각형에 나뉘므로 코너의 로컬 인덱스로 기록
    corner_count = split.triangle_count * 3
    n_faces = mesh.n_faces
    for c in range(corner_count):
        fi = int(split.tri_to_orig_face[c // 3])
        local = int(split.tri_corner_to_face_local[c])
        if fi < 0 or fi >= n_faces:
            continue
        face = mesh.faces[fi]
        if local < 0 or local >= face.vertex_count:
            continue
        face.uv_indices[local] = int(uv_vert_to_sub[int(split.corner_to_uv_vertex[c])])

    # hidden face만 참조하는 정점도 uv_indices[0]이 유효하도록 채움
    padded = 0
    for face in mesh.faces:
        for vi in face.vertex_indices:
            vert = mesh.vertices[vi]
            if not vert.uvs:
                vert.add_uv((0.0, 0.0))
                padded += 1

    _LOGGER.debug(
        "Applied %d UV vertices to %d mesh vertices (%d placeholder UVs)",
        split.vertex_count, mesh.n_vertices, padded,
    )
    return True
