"""
LscmUnwrap - seam-aware conformal UV unwrapping

Command-line entry point.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .logging_utils import current_log_path, format_failure_message, setup_logging
from .lscm_solver import LscmSolver
from .mesh_loader import MeshLoader, save_unwrapped_mesh
from .runtime_defaults import DEFAULTS
from .seam_file import SeamFileError, load_seams
from .unwrapper import UnwrapSettings, describe_target, unwrap_mesh
from .uv_layout_image import save_uv_layout

_LOGGER = logging.getLogger(__name__)

UNWRAPPED_SUFFIX = ".unwrapped.obj"
UV_LAYOUT_SUFFIX = ".uvlayout.png"


def output_path(input_path: str | Path, explicit: Optional[str | Path], suffix: str) -> Path:
    """명시한 경로가 없으면 입력 파일 옆에 `<stem><suffix>`로 저장"""
    if explicit:
        return Path(explicit)
    return Path(input_path).with_suffix(suffix)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lscm-unwrap",
        description="Unwrap a mesh to UV space with Least Squares Conformal Maps.",
    )
    parser.add_argument("mesh", help="Input mesh (obj/ply/stl/off/gltf/glb).")
    parser.add_argument("output", nargs="?", default=None,
                        help="Output mesh path (default: <mesh>.unwrapped.obj).")
    parser.add_argument("--info", action="store_true", help="Show file info and exit.")
    parser.add_argument("--seams", default=None, help="Seam edge file (JSON).")
    parser.add_argument("--no-boundary-seam", action="store_true",
                        help="Do not treat open boundary edges as seams.")
    parser.add_argument("--max-iterations", type=int, default=DEFAULTS.max_iterations,
                        help="Conjugate gradient iteration cap (clamped to 100..50000).")
    parser.add_argument("--tolerance", type=float, default=DEFAULTS.tolerance,
                        help="Conjugate gradient relative residual tolerance.")
    parser.add_argument("--backend", choices=LscmSolver.BACKENDS, default="cg",
                        help="Linear solver backend.")
    parser.add_argument("--layout", nargs="?", const="", default=None,
                        help="Also save a UV layout PNG (optional path).")
    parser.add_argument("--layout-resolution", type=int, default=DEFAULTS.layout_resolution,
                        help="UV layout image size in pixels.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debug details to the log file and stderr.")
    return parser


def show_file_info(filepath: str) -> int:
    """파일 정보 표시"""
    print(f"\nFile Info: {filepath}")
    print("-" * 40)
    try:
        info = MeshLoader().get_file_info(filepath)
    except FileNotFoundError as e:
        print(f"  Error: {e}")
        return 1
    for key, value in info.items():
        print(f"  {key}: {value}")
    return 0


def unwrap_file(args: argparse.Namespace) -> int:
    """메쉬 로드 -> UV 펼침 -> 저장"""
    print(f"\nUnwrapping: {args.mesh}")
    print("-" * 40)

    try:
        mesh = MeshLoader().load(args.mesh)
        seams = load_seams(args.seams) if args.seams else set()
    except (FileNotFoundError, ValueError, TypeError, SeamFileError) as e:
        _LOGGER.warning("Failed to load inputs for %s: %s", args.mesh, e)
        print(format_failure_message(f"Error: {e}", log_path=current_log_path()))
        return 1

    target = describe_target(mesh)
    print(f"  Loaded: {target['n_vertices']:,} vertices, {target['n_faces']:,} faces, "
          f"{target['n_triangles']:,} triangles")
    ex, ey, ez = target['extents']
    print(f"  Extents: {ex:.4g} x {ey:.4g} x {ez:.4g}  "
          f"Boundary: {target['n_boundary_edges']:,} edges")
    print(f"  Seams: {len(seams):,} edges")

    settings = UnwrapSettings(
        include_boundary_as_seam=not args.no_boundary_seam,
        max_iterations=args.max_iterations,
        tolerance=args.tolerance,
        backend=args.backend,
    )
    report = unwrap_mesh(mesh, seams, settings)
    if not report.success:
        print(f"  {format_failure_message(report.status_text(), log_path=current_log_path())}")
        return 1
    print(f"  {report.status_text()}")

    out_path = save_unwrapped_mesh(mesh, output_path(args.mesh, args.output, UNWRAPPED_SUFFIX))
    print(f"  Saved: {out_path}")

    if args.layout is not None:
        layout_path = save_uv_layout(
            mesh, output_path(args.mesh, args.layout, UV_LAYOUT_SUFFIX), args.layout_resolution
        )
        print(f"  Layout: {layout_path}")
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    """커맨드라인 인터페이스 실행"""
    args = build_parser().parse_args(argv)

    if args.verbose:
        log_path = setup_logging(log_level="DEBUG", console_level="DEBUG")
    else:
        log_path = setup_logging()
    if log_path is None:
        _LOGGER.debug("File logging unavailable; continuing without it")

    if args.info:
        return show_file_info(args.mesh)

    if not Path(args.mesh).exists():
        print(f"Error: file not found: {args.mesh}")
        return 1

    return unwrap_file(args)


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
