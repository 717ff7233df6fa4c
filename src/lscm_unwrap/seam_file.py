"""
Seam file I/O (.json)

A seam file is a JSON document listing seam edges as vertex-index pairs:

    {"format": "lscm_unwrap_seams", "version": 1, "edges": [[0, 2], [5, 7]]}

A bare JSON list of pairs is accepted too, which is handy when seams come
from another tool's selection dump.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Sequence

from .mesh_loader import EdgeKey, normalize_edges


SEAM_FORMAT = "lscm_unwrap_seams"
SEAM_VERSION = 1


class SeamFileError(RuntimeError):
    pass


def save_seams(path: str | Path, edges: Iterable[Sequence[int]]) -> str:
    """
    Save seam edges.

    Edges are normalised (sorted endpoints, duplicates dropped) and written in
    sorted order so the file is stable under re-saving.
    """
    out_path = Path(path)
    doc: dict[str, Any] = {
        "format": SEAM_FORMAT,
        "version": SEAM_VERSION,
        "edges": [list(e) for e in sorted(normalize_edges(edges))],
    }
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
    return str(out_path)


def load_seams(path: str | Path) -> set[EdgeKey]:
    """
    Load seam edges.

    Returns:
        Set of normalised edge keys.
    """
    in_path = Path(path)
    if not in_path.exists():
        raise FileNotFoundError(str(in_path))

    raw = in_path.read_text(encoding="utf-8", errors="replace")
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SeamFileError(f"Invalid JSON: {e}") from e

    if isinstance(doc, list):
        edges = doc
    elif isinstance(doc, dict):
        fmt = str(doc.get("format", "")).strip()
        ver = doc.get("version", None)
        if fmt != SEAM_FORMAT:
            raise SeamFileError(f"Unsupported seam format: {fmt!r}")
        if ver != SEAM_VERSION:
            raise SeamFileError(f"Unsupported seam file version: {ver!r}")
        edges = doc.get("edges", None)
        if not isinstance(edges, list):
            raise SeamFileError("Invalid seam document: missing 'edges' list")
    else:
        raise SeamFileError("Invalid seam document (expected JSON object or list)")

    try:
        return normalize_edges(edges)
    except (TypeError, ValueError) as e:
        raise SeamFileError(f"Invalid seam edge: {e}") from e
