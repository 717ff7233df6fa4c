"""
LSCM (Least Squares Conformal Maps) Solver Module
등각 매핑 UV 펼침 - island별 희소 정규방정식 + CG 풀이

Based on: "Least Squares Conformal Maps for Automatic Texture Atlas
Generation" (Levy et al., 2002)

Each island is solved independently. Two boundary vertices are pinned at
(0, 0) and (1, 0) to remove the translation/rotation/scale freedom of the
conformal energy; every other vertex contributes an interleaved (u, v) pair
of unknowns to the normal equations.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Sequence

import numpy as np
from scipy.sparse.linalg import spsolve

from .logging_utils import log_once
from .seam_splitter import SplitResult
from .sparse_solver import DROP_THRESHOLD, SymmetricSparseMatrix, conjugate_gradient

_LOGGER = logging.getLogger(__name__)

MIN_TRIANGLE_AREA = 1e-20
MIN_EDGE_LENGTH = 1e-12
PACK_PADDING = 0.02

PIN_A_UV = (0.0, 0.0)
PIN_B_UV = (1.0, 0.0)


@dataclass
class LscmResult:
    """
    LSCM 펼침 결과

    Attributes:
        uvs: (N, 2) UV 정점별 좌표 (실패 시 None)
        success: 성공 여부
        error: 실패 사유
        island_count: island 개수
    """
    uvs: Optional[np.ndarray]
    success: bool
    error: Optional[str] = None
    island_count: int = 0


def local_frame_2d(
    v0: np.ndarray, v1: np.ndarray, v2: np.ndarray
) -> Optional[tuple[np.ndarray, np.ndarray, np.ndarray, float]]:
    """
    삼각형을 첫 번째 엣지 기준 로컬 2D 좌표계로 펼침

    Returns:
        (p0, p1, p2, area2) 또는 퇴화 삼각형이면 None.
        area2는 2D 부호 면적의 2배.
    """
    e1 = v1 - v0
    e2 = v2 - v0
    len1 = float(np.linalg.norm(e1))
    if len1 < MIN_EDGE_LENGTH:
        return None

    x_axis = e1 / len1
    x2 = float(np.dot(e2, x_axis))
    y2 = float(np.linalg.norm(e2 - x2 * x_axis))

    p0 = np.array([0.0, 0.0])
    p1 = np.array([len1, 0.0])
    p2 = np.array([x2, y2])

    area2 = (p1[0] - p0[0]) * (p2[1] - p0[1]) - (p2[0] - p0[0]) * (p1[1] - p0[1])
    if abs(area2) <= MIN_TRIANGLE_AREA:
        return None
    return p0, p1, p2, float(area2)


def barycentric_gradients(
    p0: np.ndarray, p1: np.ndarray, p2: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Gradients of the three barycentric coordinates of a 2D triangle."""
    a2 = (p1[0] - p0[0]) * (p2[1] - p0[1]) - (p2[0] - p0[0]) * (p1[1] - p0[1])
    inv = 1.0 / a2
    g0 = np.array([(p1[1] - p2[1]) * inv, (p2[0] - p1[0]) * inv])
    g1 = np.array([(p2[1] - p0[1]) * inv, (p0[0] - p2[0]) * inv])
    g2 = np.array([(p0[1] - p1[1]) * inv, (p1[0] - p0[0]) * inv])
    return g0, g1, g2


def find_boundary_vertices(triangles: np.ndarray) -> list[int]:
    """
    경계 정점 목록 (정렬됨)

    경계 엣지 = 주어진 삼각형들 중 하나에만 속하는 엣지.
    """
    edge_count: dict[tuple[int, int], int] = {}
    for tri in np.asarray(triangles, dtype=np.int64).reshape(-1, 3):
        for e in range(3):
            a = int(tri[e])
            b = int(tri[(e + 1) % 3])
            key = (a, b) if a < b else (b, a)
            edge_count[key] = edge_count.get(key, 0) + 1

    boundary: set[int] = set()
    for (a, b), count in edge_count.items():
        if count == 1:
            boundary.add(a)
            boundary.add(b)
    return sorted(boundary)


def find_farthest_pair(positions: np.ndarray, candidates: Sequence[int]) -> tuple[int, int]:
    """
    후보 정점 중 3D 거리가 가장 먼 쌍

    O(n^2)이지만 경계 정점 수는 보통 작다.
    """
    cand = np.asarray(candidates, dtype=np.int64)
    best_a = int(cand[0])
    best_b = int(cand[1]) if cand.size > 1 else int(cand[0])
    best = -1.0
    pts = positions[cand]
    for i in range(cand.size - 1):
        d = np.sum((pts[i + 1:] - pts[i]) ** 2, axis=1)
        j = int(np.argmax(d))
        if float(d[j]) > best:
            best = float(d[j])
            best_a = int(cand[i])
            best_b = int(cand[i + 1 + j])
    return best_a, best_b


def find_farthest_from(positions: np.ndarray, candidates: Sequence[int], origin: int) -> int:
    cand = np.asarray(candidates, dtype=np.int64)
    d = np.sum((positions[cand] - positions[int(origin)]) ** 2, axis=1)
    return int(cand[int(np.argmax(d))])


def pack_islands(
    uvs: np.ndarray,
    vertex_island_id: np.ndarray,
    island_count: int,
    padding: float = PACK_PADDING,
) -> np.ndarray:
    """
    Island 정규화 + 가로 배치 (in-place)

    Each island is scaled uniformly by the larger side of its bounding box
    and moved to the origin, then islands are laid out left to right with
    ``padding`` between them. With more than one island the whole layout is
    rescaled uniformly into the unit square.
    """
    island_count = int(island_count)
    if island_count <= 0 or uvs.shape[0] == 0:
        return uvs

    ids = np.asarray(vertex_island_id, dtype=np.int64)
    mins = np.full((island_count, 2), np.inf)
    maxs = np.full((island_count, 2), -np.inf)
    np.minimum.at(mins, ids, uvs)
    np.maximum.at(maxs, ids, uvs)
    present = np.zeros((island_count,), dtype=bool)
    present[ids] = True

    scales = np.ones((island_count,), dtype=np.float64)
    offsets = np.zeros((island_count,), dtype=np.float64)
    offset_u = 0.0
    for island in range(island_count):
        if not present[island]:
            continue
        size = maxs[island] - mins[island]
        scale = float(max(size[0], size[1]))
        if scale < 1e-8:
            scale = 1.0
        scales[island] = scale
        offsets[island] = offset_u
        offset_u += float(size[0]) / scale + float(padding)

    uvs -= mins[ids]
    uvs /= scales[ids][:, None]
    uvs[:, 0] += offsets[ids]

    if island_count > 1:
        g_min = uvs.min(axis=0)
        g_size = uvs.max(axis=0) - g_min
        g_scale = float(max(g_size[0], g_size[1]))
        if g_scale < 1e-8:
            g_scale = 1.0
        uvs -= g_min
        uvs /= g_scale

    return uvs


class LscmSolver:
    """
    LSCM 기반 UV 펼침

    SeamSplitter 결과를 받아 island마다 등각 매핑을 계산합니다.
    """

    BACKENDS = ("cg", "direct")

    def __init__(self, max_iterations: int = 3000, tolerance: float = 1e-10,
                 backend: str = "cg"):
        """
        Args:
            max_iterations: CG 최대 반복 횟수
            tolerance: CG 수렴 판정 임계값 (상대 잔차)
            backend: 'cg' (켤레 기울기) 또는 'direct' (scipy spsolve)
        """
        backend = str(backend or "cg").lower().strip()
        if backend not in self.BACKENDS:
            raise ValueError(f"Unknown backend: {backend!r} (expected one of {self.BACKENDS})")
        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)
        self.backend = backend

    def solve(self, split: SplitResult, pack: bool = True) -> LscmResult:
        """
        전체 island에 대해 LSCM 실행

        Args:
            split: seam 분할 결과
            pack: island 정규화/배치 여부

        Returns:
            LscmResult: 삼각형이 하나도 없으면 success=False
        """
        if split is None:
            raise ValueError("split is None")

        if split.triangle_count == 0:
            return LscmResult(uvs=None, success=False, error="no triangles to unwrap",
                              island_count=split.island_count)

        uvs = np.zeros((split.vertex_count, 2), dtype=np.float64)
        for island in range(split.island_count):
            self.solve_island(split, island, uvs)

        if pack:
            pack_islands(uvs, split.vertex_island_id, split.island_count)

        return LscmResult(uvs=uvs, success=True, island_count=split.island_count)

    def solve_island(self, split: SplitResult, island_id: int, uvs: np.ndarray) -> None:
        """단일 island의 LSCM을 풀어 uvs에 기록합니다."""
        island_verts = split.island_vertices(island_id)
        if island_verts.size < 3:
            uvs[island_verts] = 0.0
            return

        island_tris = split.island_triangles(island_id)
        if island_tris.size == 0:
            uvs[island_verts] = 0.0
            return

        positions = split.positions
        tris = split.triangles[island_tris]
        n = int(island_verts.size)
        global_to_local = {int(g): i for i, g in enumerate(island_verts)}

        pin_a, pin_b = self._select_pins(positions, tris, island_verts)
        pinned = {
            global_to_local[pin_a]: PIN_A_UV,
            global_to_local[pin_b]: PIN_B_UV,
        }

        free_map = np.full((n,), -1, dtype=np.int64)
        n_free = 0
        for i in range(n):
            if i not in pinned:
                free_map[i] = n_free
                n_free += 1

        if n_free == 0:
            uvs[pin_a] = PIN_A_UV
            uvs[pin_b] = PIN_B_UV
            return

        M = SymmetricSparseMatrix(2 * n_free)
        rhs = np.zeros((2 * n_free,), dtype=np.float64)
        used = self._assemble(positions, tris, global_to_local, pinned, free_map, M, rhs)

        if used == 0:
            log_once(
                _LOGGER,
                "lscm_solver:island_all_degenerate",
                logging.WARNING,
                "Island %d has no triangle with usable area; assigning UV (0, 0)",
                int(island_id),
            )
            uvs[island_verts] = 0.0
            return

        x = self._solve_system(M, rhs)

        for i, g in enumerate(island_verts):
            pin_uv = pinned.get(i)
            if pin_uv is not None:
                uvs[g] = pin_uv
            else:
                fi = int(free_map[i])
                uvs[g, 0] = x[2 * fi]
                uvs[g, 1] = x[2 * fi + 1]

        _LOGGER.debug(
            "Island %d: %d vertices (%d free), %d/%d triangles used, %d matrix entries",
            int(island_id), n, n_free, used, int(tris.shape[0]), M.nnz,
        )

    def _select_pins(
        self, positions: np.ndarray, tris: np.ndarray, island_verts: np.ndarray
    ) -> tuple[int, int]:
        """경계 위 최원거리 쌍을 pin으로 선택 (경계가 없으면 임의 정점과 그 최원점)"""
        boundary = find_boundary_vertices(tris)
        if len(boundary) >= 2:
            pin_a, pin_b = find_farthest_pair(positions, boundary)
        else:
            # 닫힌 곡면: 결과 품질은 보장되지 않음
            pin_a = int(island_verts[0])
            pin_b = find_farthest_from(positions, island_verts, pin_a)

        if pin_b == pin_a:
            # all candidates coincide; any other member works as the second pin
            pin_b = int(island_verts[1]) if int(island_verts[0]) == pin_a else int(island_verts[0])

        dist = float(np.linalg.norm(positions[pin_a] - positions[pin_b]))
        _LOGGER.debug("Pins %d/%d (3D separation %.6g)", pin_a, pin_b, dist)
        return pin_a, pin_b

    def _assemble(
        self,
        positions: np.ndarray,
        tris: np.ndarray,
        global_to_local: dict[int, int],
        pinned: dict[int, tuple[float, float]],
        free_map: np.ndarray,
        M: SymmetricSparseMatrix,
        rhs: np.ndarray,
    ) -> int:
        """정규방정식 조립. 사용된 삼각형 수를 반환합니다."""
        used = 0
        skipped = 0
        for tri in tris:
            g0, g1, g2 = int(tri[0]), int(tri[1]), int(tri[2])
            frame = local_frame_2d(positions[g0], positions[g1], positions[g2])
            if frame is None:
                skipped += 1
                continue
            p0, p1, p2, area2 = frame

            w = abs(area2) * 0.5
            if w < MIN_TRIANGLE_AREA:
                skipped += 1
                continue

            d0, d1, d2 = barycentric_gradients(p0, p1, p2)
            l0, l1, l2 = global_to_local[g0], global_to_local[g1], global_to_local[g2]

            # Cauchy-Riemann (1): du/dx - dv/dy = 0
            self._add_row(
                w,
                ((l0, d0[0], -d0[1]), (l1, d1[0], -d1[1]), (l2, d2[0], -d2[1])),
                pinned, free_map, M, rhs,
            )
            # Cauchy-Riemann (2): du/dy + dv/dx = 0
            self._add_row(
                w,
                ((l0, d0[1], d0[0]), (l1, d1[1], d1[0]), (l2, d2[1], d2[0])),
                pinned, free_map, M, rhs,
            )
            used += 1

        if skipped:
            _LOGGER.debug("Skipped %d degenerate triangle(s)", skipped)
        return used

    @staticmethod
    def _add_row(
        w: float,
        entries: Sequence[tuple[int, float, float]],
        pinned: dict[int, tuple[float, float]],
        free_map: np.ndarray,
        M: SymmetricSparseMatrix,
        rhs: np.ndarray,
    ) -> None:
        """Add w * c c^T for one residual row; pinned terms go to the right-hand side."""
        terms: list[tuple[int, float]] = []
        constant = 0.0

        for local, cu, cv in entries:
            pin_uv = pinned.get(local)
            if pin_uv is not None:
                constant += cu * pin_uv[0] + cv * pin_uv[1]
                continue
            fi = int(free_map[local])
            if fi < 0:
                continue
            if abs(cu) > DROP_THRESHOLD:
                terms.append((2 * fi, float(cu)))
            if abs(cv) > DROP_THRESHOLD:
                terms.append((2 * fi + 1, float(cv)))

        for i, (ii, ci) in enumerate(terms):
            rhs[ii] += -w * ci * constant
            for jj, cj in terms[:i + 1]:
                M.add(ii, jj, w * ci * cj)

    def _solve_system(self, M: SymmetricSparseMatrix, rhs: np.ndarray) -> np.ndarray:
        if self.backend == "direct":
            x = np.asarray(spsolve(M.to_scipy().tocsc(), rhs), dtype=np.float64).reshape(-1)
            if np.all(np.isfinite(x)):
                return x
            log_once(
                _LOGGER,
                "lscm_solver:direct_fallback",
                logging.WARNING,
                "Direct sparse solve returned non-finite values; falling back to conjugate gradient",
            )
        return conjugate_gradient(M, rhs, self.max_iterations, self.tolerance)
