"""
LscmUnwrap: seam-aware conformal (LSCM) UV unwrapping
"""

from .union_find import DisjointSet
from .mesh_loader import (
    PolyMesh, Vertex, Face, MeshLoader, edge_key, normalize_edges, save_unwrapped_mesh,
)
from .seam_splitter import SplitResult, build_split
from .sparse_solver import SymmetricSparseMatrix, conjugate_gradient
from .lscm_solver import LscmSolver, LscmResult, pack_islands
from .uv_writer import apply_uvs
from .unwrapper import UnwrapSettings, UnwrapReport, unwrap_mesh, describe_target
from .seam_file import SeamFileError, load_seams, save_seams
from .uv_layout_image import render_uv_layout, save_uv_layout

__version__ = "0.1.0"

__all__ = [
    '__version__',
    # Union-find
    'DisjointSet',
    # Mesh model / loading
    'PolyMesh',
    'Vertex',
    'Face',
    'MeshLoader',
    'edge_key',
    'normalize_edges',
    'save_unwrapped_mesh',
    # Seam splitting
    'SplitResult',
    'build_split',
    # Sparse system
    'SymmetricSparseMatrix',
    'conjugate_gradient',
    # LSCM
    'LscmSolver',
    'LscmResult',
    'pack_islands',
    # Write-back
    'apply_uvs',
    # Pipeline
    'UnwrapSettings',
    'UnwrapReport',
    'unwrap_mesh',
    'describe_target',
    # Seam files
    'SeamFileError',
    'load_seams',
    'save_seams',
    # Preview
    'render_uv_layout',
    'save_uv_layout',
]
