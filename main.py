"""
LscmUnwrap - seam-aware conformal UV unwrapping

Main entry point
"""

import sys
from pathlib import Path

# Ensure src/ is on sys.path so "lscm_unwrap" is importable without installing.
SRC_DIR = Path(__file__).resolve().parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from lscm_unwrap.cli import run_cli  # noqa: E402


if __name__ == '__main__':
    sys.exit(run_cli())
