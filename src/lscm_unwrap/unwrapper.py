"""
Unwrap pipeline: seam split -> LSCM solve -> UV write-back.

The mesh is only touched by the final write-back, after a successful solve.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import time
from typing import Iterable, Optional, Sequence

from .lscm_solver import LscmSolver
from .mesh_loader import PolyMesh
from .runtime_defaults import DEFAULTS, MAX_ITERATIONS, MIN_ITERATIONS
from .seam_splitter import build_split
from .uv_writer import apply_uvs

_LOGGER = logging.getLogger(__name__)


@dataclass
class UnwrapSettings:
    include_boundary_as_seam: bool = DEFAULTS.include_boundary_as_seam
    max_iterations: int = DEFAULTS.max_iterations
    tolerance: float = DEFAULTS.tolerance
    backend: str = "cg"

    def clamped(self) -> "UnwrapSettings":
        """반복 횟수를 허용 범위로 제한한 사본"""
        iters = min(max(int(self.max_iterations), MIN_ITERATIONS), MAX_ITERATIONS)
        return replace(self, max_iterations=iters)


@dataclass
class UnwrapReport:
    """
    UV 펼침 결과 요약

    Attributes:
        success: 성공 여부 (실패 시 메쉬는 변경되지 않음)
        message: 실패 사유 또는 빈 문자열
        uv_vertex_count: 분할 후 UV 정점 수
        triangle_count: 삼각형 수
        island_count: island 수
        elapsed_ms: 소요 시간 (ms)
    """
    success: bool
    message: str = ""
    uv_vertex_count: int = 0
    triangle_count: int = 0
    island_count: int = 0
    elapsed_ms: float = 0.0

    def status_text(self) -> str:
        if not self.success:
            return f"LSCM unwrap failed: {self.message}"
        return (
            f"Done ({self.elapsed_ms:.0f}ms)  "
            f"UV vertices: {self.uv_vertex_count}  Tris: {self.triangle_count}  "
            f"Islands: {self.island_count}"
        )


def describe_target(mesh: PolyMesh) -> dict:
    """메쉬 요약 (정점/면/삼각형/경계 엣지 수, 크기)"""
    return {
        "name": mesh.name,
        "n_vertices": mesh.n_vertices,
        "n_faces": mesh.n_faces,
        "n_triangles": mesh.n_triangles,
        "n_boundary_edges": len(mesh.get_boundary_edges()),
        "extents": tuple(float(x) for x in mesh.extents),
    }


def unwrap_mesh(
    mesh: PolyMesh,
    seam_edges: Optional[Iterable[Sequence[int]]] = None,
    settings: Optional[UnwrapSettings] = None,
) -> UnwrapReport:
    """
    Seam 기준 LSCM UV 펼침 실행

    Args:
        mesh: 대상 메쉬 (성공 시 UV가 in-place로 기록됨)
        seam_edges: seam 엣지 (정점 인덱스 쌍)
        settings: 펼침 설정 (None이면 runtime 기본값)

    Returns:
        UnwrapReport: 실행 결과
    """
    if mesh is None:
        raise ValueError("mesh is None")

    settings = (settings or UnwrapSettings()).clamped()
    started = time.perf_counter()

    if mesh.n_faces == 0 or mesh.n_vertices < 3:
        return UnwrapReport(success=False, message="mesh is empty or insufficient")

    split = build_split(mesh, seam_edges, settings.include_boundary_as_seam)
    if split.vertex_count == 0 or split.triangle_count == 0:
        return UnwrapReport(success=False, message="split result is empty")

    solver = LscmSolver(
        max_iterations=settings.max_iterations,
        tolerance=settings.tolerance,
        backend=settings.backend,
    )
    result = solver.solve(split)
    if not result.success:
        return UnwrapReport(
            success=False,
            message=result.error or "unknown error",
            uv_vertex_count=split.vertex_count,
            triangle_count=split.triangle_count,
            island_count=result.island_count,
        )

    apply_uvs(mesh, split, result)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    report = UnwrapReport(
        success=True,
        uv_vertex_count=split.vertex_count,
        triangle_count=split.triangle_count,
        island_count=result.island_count,
        elapsed_ms=elapsed_ms,
    )
    _LOGGER.info("LSCM unwrap of %r: %s", mesh.name, report.status_text())
    return report
