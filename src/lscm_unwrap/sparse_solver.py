"""
Symmetric sparse matrix and conjugate gradient solver.

Only the lower triangle (row >= col) is stored. Entries live in an
insertion-ordered dict keyed by (row, col), so accumulation and the
matrix-vector product sum in the same order on every run.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np
from scipy import sparse

from .logging_utils import log_once

_LOGGER = logging.getLogger(__name__)

DROP_THRESHOLD = 1e-30


class SymmetricSparseMatrix:
    """대칭 희소 행렬 (하삼각만 저장)"""

    def __init__(self, size: int):
        size = int(size)
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        self._size = size
        self._data: dict[tuple[int, int], float] = {}
        self._coo: Optional[tuple[np.ndarray, np.ndarray, np.ndarray]] = None

    @property
    def size(self) -> int:
        return self._size

    @property
    def nnz(self) -> int:
        """Stored (lower-triangle) entries."""
        return len(self._data)

    def add(self, i: int, j: int, value: float) -> None:
        value = float(value)
        if abs(value) < DROP_THRESHOLD:
            return
        i = int(i)
        j = int(j)
        if i < j:
            i, j = j, i
        key = (i, j)
        self._data[key] = self._data.get(key, 0.0) + value
        self._coo = None

    def get(self, i: int, j: int) -> float:
        i = int(i)
        j = int(j)
        if i < j:
            i, j = j, i
        return self._data.get((i, j), 0.0)

    def _arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self._coo is None:
            n = len(self._data)
            rows = np.fromiter((k[0] for k in self._data), dtype=np.int64, count=n)
            cols = np.fromiter((k[1] for k in self._data), dtype=np.int64, count=n)
            vals = np.fromiter(self._data.values(), dtype=np.float64, count=n)
            self._coo = (rows, cols, vals)
        return self._coo

    def multiply(self, x: np.ndarray) -> np.ndarray:
        """y = A x, mirroring every off-diagonal entry."""
        x = np.asarray(x, dtype=np.float64).reshape(-1)
        if x.shape[0] != self._size:
            raise ValueError(f"vector length {x.shape[0]} does not match matrix size {self._size}")

        y = np.zeros((self._size,), dtype=np.float64)
        rows, cols, vals = self._arrays()
        if vals.size == 0:
            return y
        np.add.at(y, rows, vals * x[cols])
        off = rows != cols
        np.add.at(y, cols[off], vals[off] * x[rows[off]])
        return y

    def to_scipy(self) -> sparse.csr_matrix:
        """Full symmetric matrix (both triangles) as CSR."""
        rows, cols, vals = self._arrays()
        off = rows != cols
        all_rows = np.concatenate([rows, cols[off]])
        all_cols = np.concatenate([cols, rows[off]])
        all_vals = np.concatenate([vals, vals[off]])
        return sparse.coo_matrix(
            (all_vals, (all_rows, all_cols)), shape=(self._size, self._size)
        ).tocsr()


def conjugate_gradient(
    A: SymmetricSparseMatrix,
    b: np.ndarray,
    max_iterations: int = 3000,
    tolerance: float = 1e-10,
    callback: Optional[Callable[[np.ndarray], None]] = None,
) -> np.ndarray:
    """
    Unpreconditioned conjugate gradient for a symmetric positive (semi)definite system.

    Stops when the search direction has numerically zero curvature or when
    ``||r|| < tolerance * ||b||``. If neither happens within
    ``max_iterations`` the last iterate is returned as is; callers that need
    the tolerance guaranteed must check the residual themselves.

    Args:
        A: 시스템 행렬
        b: 우변 벡터
        max_iterations: 최대 반복 횟수
        tolerance: 상대 잔차 허용치
        callback: 반복마다 현재 해 벡터로 호출 (선택)

    Returns:
        (n,) 해 벡터 (x0 = 0에서 시작)
    """
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    n = A.size
    if b.shape[0] != n:
        raise ValueError(f"rhs length {b.shape[0]} does not match matrix size {n}")

    x = np.zeros((n,), dtype=np.float64)
    r = b.copy()
    p = r.copy()

    rs_old = float(r @ r)
    b_norm = float(np.sqrt(max(float(b @ b), 1e-30)))
    tol_abs = float(tolerance) * b_norm

    converged = False
    iterations = 0
    for k in range(int(max_iterations)):
        iterations = k + 1
        Ap = A.multiply(p)
        pAp = float(p @ Ap)
        if abs(pAp) < 1e-30:
            converged = True
            break

        alpha = rs_old / pAp
        x += alpha * p
        r -= alpha * Ap
        if callback is not None:
            callback(x)

        rs_new = float(r @ r)
        if np.sqrt(rs_new) < tol_abs:
            converged = True
            break

        beta = rs_new / max(rs_old, 1e-30)
        p = r + beta * p
        rs_old = rs_new

    if not converged and n > 0:
        log_once(
            _LOGGER,
            "sparse_solver:cg_iteration_cap",
            logging.WARNING,
            "Conjugate gradient hit the iteration cap (%d) before reaching tolerance %.3g; "
            "returning the last iterate",
            int(max_iterations),
            float(tolerance),
        )
    else:
        _LOGGER.debug("Conjugate gradient finished after %d iteration(s) (n=%d)", iterations, n)

    return x
