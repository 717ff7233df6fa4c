"""
Seam Splitter Module
Seam 기준 코너 분할 - UV 펼침용 삼각형 메쉬 생성

Faces are fan-triangulated from their first vertex. Every triangle corner
starts as its own UV vertex; corners on both sides of a shared non-seam edge
that reference the same mesh vertex are merged with a disjoint set, so a
mesh vertex is duplicated only where a seam actually separates its corners.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from .mesh_loader import EdgeKey, PolyMesh, edge_key, normalize_edges
from .union_find import DisjointSet

_LOGGER = logging.getLogger(__name__)


@dataclass
class SplitResult:
    """
    Seam 분할 결과

    Attributes:
        positions: (N, 3) UV 정점의 3D 좌표 (분할 후)
        triangles: (T, 3) UV 정점 인덱스로 표현한 삼각형
        uv_to_orig_vertex: (N,) UV 정점 -> 원본 메쉬 정점
        corner_to_uv_vertex: (T*3,) 코너 -> UV 정점
        vertex_island_id: (N,) UV 정점별 island ID
        island_count: island 개수
        tri_to_orig_face: (T,) 삼각형 -> 원본 face
        tri_corner_to_face_local: (T*3,) 코너 -> 원본 face 내 로컬 인덱스
    """
    positions: np.ndarray
    triangles: np.ndarray
    uv_to_orig_vertex: np.ndarray
    corner_to_uv_vertex: np.ndarray
    vertex_island_id: np.ndarray
    island_count: int
    tri_to_orig_face: np.ndarray
    tri_corner_to_face_local: np.ndarray

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)
        self.uv_to_orig_vertex = np.asarray(self.uv_to_orig_vertex, dtype=np.int64).reshape(-1)
        self.corner_to_uv_vertex = np.asarray(self.corner_to_uv_vertex, dtype=np.int64).reshape(-1)
        self.vertex_island_id = np.asarray(self.vertex_island_id, dtype=np.int64).reshape(-1)
        self.island_count = int(self.island_count)
        self.tri_to_orig_face = np.asarray(self.tri_to_orig_face, dtype=np.int64).reshape(-1)
        self.tri_corner_to_face_local = np.asarray(
            self.tri_corner_to_face_local, dtype=np.int64
        ).reshape(-1)

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])

    def island_vertices(self, island_id: int) -> np.ndarray:
        return np.flatnonzero(self.vertex_island_id == int(island_id))

    def island_triangles(self, island_id: int) -> np.ndarray:
        """Triangles of an island; a triangle's island is its first vertex's."""
        if self.triangle_count == 0:
            return np.zeros((0,), dtype=np.int64)
        return np.flatnonzero(self.vertex_island_id[self.triangles[:, 0]] == int(island_id))


def _triangulate(mesh: PolyMesh) -> tuple[list[int], list[int], list[int]]:
    """Fan-triangulate visible faces; returns per-corner vertex, face and face-local index."""
    tri_verts: list[int] = []
    tri_faces: list[int] = []
    tri_locals: list[int] = []

    for fi, face in enumerate(mesh.faces):
        if face is None or face.hidden or not face.is_valid:
            continue
        idx = face.vertex_indices
        for local_tri in face.fan_triangles():
            for local in local_tri:
                tri_verts.append(idx[local])
                tri_faces.append(fi)
                tri_locals.append(local)

    return tri_verts, tri_faces, tri_locals


def _union_vertex_corners(
    uf: DisjointSet,
    tri_verts: Sequence[int],
    tri_i: int,
    tri_j: int,
    edge: EdgeKey,
) -> None:
    """Union the corners of two triangles that reference the same endpoint of a shared edge."""
    for li in range(3):
        vi = tri_verts[tri_i * 3 + li]
        if vi != edge[0] and vi != edge[1]:
            continue
        for lj in range(3):
            if tri_verts[tri_j * 3 + lj] == vi:
                uf.union(tri_i * 3 + li, tri_j * 3 + lj)


def build_split(
    mesh: PolyMesh,
    seam_edges: Optional[Iterable[Sequence[int]]] = None,
    include_boundary_as_seam: bool = False,
) -> SplitResult:
    """
    메쉬와 seam 엣지 집합으로 UV 펼침용 삼각형 메쉬 생성

    Args:
        mesh: 대상 메쉬
        seam_edges: seam으로 지정된 엣지 (정점 인덱스 쌍, 방향 무관)
        include_boundary_as_seam: 경계 엣지도 seam으로 취급할지 여부

    Returns:
        SplitResult: 분할 결과 (hidden face / 3정점 미만 face는 제외)
    """
    if mesh is None:
        raise ValueError("mesh is None")

    seams = normalize_edges(seam_edges)

    # 1) N-gon -> 삼각형 (v0 기준 부채꼴 분할)
    tri_verts, tri_faces, tri_locals = _triangulate(mesh)
    corner_count = len(tri_verts)
    tri_count = corner_count // 3

    # 2) 엣지 -> 코너 목록 (해당 엣지를 outgoing edge로 갖는 코너)
    edge_corners: dict[EdgeKey, list[int]] = {}
    for c in range(corner_count):
        tri = c // 3
        nxt = tri * 3 + (c % 3 + 1) % 3
        edge_corners.setdefault(edge_key(tri_verts[c], tri_verts[nxt]), []).append(c)

    boundary_edges: set[EdgeKey] = set()
    if include_boundary_as_seam:
        boundary_edges = {e for e, corners in edge_corners.items() if len(corners) == 1}

    unknown = [e for e in seams if e not in edge_corners]
    if unknown:
        _LOGGER.debug("Ignoring %d seam edge(s) not present in the mesh", len(unknown))

    # 3) seam이 아닌 공유 엣지를 사이에 둔 코너끼리 union
    uf = DisjointSet(corner_count)
    for edge, corners in edge_corners.items():
        if len(corners) < 2:
            continue
        if edge in seams or edge in boundary_edges:
            continue
        for i in range(len(corners)):
            for j in range(i + 1, len(corners)):
                _union_vertex_corners(uf, tri_verts, corners[i] // 3, corners[j] // 3, edge)

    # 4) 대표 코너 -> UV 정점 번호 (코너 순서대로 부여)
    rep_to_uv: dict[int, int] = {}
    uv_to_orig: list[int] = []
    corner_to_uv = np.zeros((corner_count,), dtype=np.int64)
    for c in range(corner_count):
        rep = uf.find(c)
        uv_idx = rep_to_uv.get(rep)
        if uv_idx is None:
            uv_idx = len(uv_to_orig)
            rep_to_uv[rep] = uv_idx
            uv_to_orig.append(tri_verts[c])
        corner_to_uv[c] = uv_idx

    uv_to_orig_arr = np.asarray(uv_to_orig, dtype=np.int64)
    all_positions = mesh.positions
    positions = (all_positions[uv_to_orig_arr] if uv_to_orig_arr.size
                 else np.zeros((0, 3), dtype=np.float64))
    triangles = corner_to_uv.reshape(tri_count, 3)

    # 5) island 검출 (삼각형 연결 성분)
    uv_count = len(uv_to_orig)
    island_uf = DisjointSet(uv_count)
    for a, b, c in triangles:
        island_uf.union(int(a), int(b))
        island_uf.union(int(b), int(c))

    # island 번호 = 가장 작은 UV 정점 순서
    islands = island_uf.groups()
    vertex_island = np.zeros((uv_count,), dtype=np.int64)
    for island_id, members in enumerate(islands):
        vertex_island[members] = island_id

    tri_to_face = np.asarray(tri_faces[0::3], dtype=np.int64)

    _LOGGER.debug(
        "Seam split: %d triangles, %d corners -> %d UV vertices, %d islands (%d seam edges)",
        tri_count, corner_count, uv_count, len(islands), len(seams),
    )

    return SplitResult(
        positions=positions,
        triangles=triangles,
        uv_to_orig_vertex=uv_to_orig_arr,
        corner_to_uv_vertex=corner_to_uv,
        vertex_island_id=vertex_island,
        island_count=len(islands),
        tri_to_orig_face=tri_to_face,
        tri_corner_to_face_local=np.asarray(tri_locals, dtype=np.int64),
    )
