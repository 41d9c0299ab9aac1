# -*- coding: utf-8 -*-
"""Linear algebra helpers shared by the linearizer and the backward pass.

Numerical robustness note
------------------------
Nothing here falls back to an SVD least-squares solve. When a matrix is
ill-conditioned or contains NaNs/Infs, `np.linalg.lstsq` can crash with

  LinAlgError: SVD did not converge in Linear Least Squares

so `chol_solve` does a plain Cholesky solve and `checked_inverse` rejects
matrices with a condition number above 1e12. Both raise `LinAlgError`
(non-finite input raises `FloatingPointError`); callers turn that into a
`BackwardPassFailure` / `LinearizationFailure` for the current step.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np


# =============================================================================
# Small helpers
# =============================================================================

def _sym(A: np.ndarray) -> np.ndarray:
    """Symmetrize a matrix."""
    return 0.5 * (A + A.T)


def _assert_finite(name: str, X: np.ndarray):
    if not np.all(np.isfinite(X)):
        raise FloatingPointError(f"Non-finite values in {name}")


def _finite(x) -> bool:
    return bool(np.all(np.isfinite(x)))


# =============================================================================
# Weight helper
# =============================================================================

def as_weight_matrix(weight, n: int) -> np.ndarray:
    """Convert scalar/diag vector/matrix weight into an (n,n) matrix."""
    W = np.asarray(weight, dtype=float)
    if W.ndim == 0:
        return float(W) * np.eye(n)
    if W.ndim == 1:
        if W.shape[0] != n:
            raise ValueError(f"weight vector has shape {W.shape}, expected ({n},)")
        return np.diag(W)
    if W.ndim == 2:
        if W.shape != (n, n):
            raise ValueError(f"weight matrix has shape {W.shape}, expected ({n},{n})")
        return _sym(W)
    raise ValueError(f"unsupported weight ndim={W.ndim}")


# =============================================================================
# Cholesky / eigen based linear algebra
# =============================================================================

def chol_solve(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """Solve A X = B for symmetric positive definite A via Cholesky.

    Raises LinAlgError when A is not positive definite.
    """
    A = _sym(np.asarray(A, dtype=float))
    B = np.asarray(B, dtype=float)
    _assert_finite("chol_solve(A)", A)
    _assert_finite("chol_solve(B)", B)

    L = np.linalg.cholesky(A)
    Y = np.linalg.solve(L, B)
    X = np.linalg.solve(L.T, Y)
    _assert_finite("chol_solve(X)", X)
    return X


def clamped_eig(A: np.ndarray, floor: float) -> Tuple[np.ndarray, np.ndarray, float]:
    """Eigen-decompose symmetric A and clamp the eigenvalues from below.

    Returns (V, lam_clamped, lam_min_raw) such that V diag(lam_clamped) V^T is
    the corrected matrix.
    """
    A = _sym(np.asarray(A, dtype=float))
    _assert_finite("clamped_eig(A)", A)
    lam, V = np.linalg.eigh(A)
    return V, np.maximum(lam, float(floor)), float(lam.min())


def checked_inverse(M: np.ndarray, max_cond: float = 1e12) -> np.ndarray:
    """Inverse of a general square matrix with a conditioning guard."""
    M = np.asarray(M, dtype=float)
    _assert_finite("checked_inverse(M)", M)
    cond = float(np.linalg.cond(M))
    if not np.isfinite(cond) or cond > max_cond:
        raise np.linalg.LinAlgError(f"matrix ill-conditioned (cond={cond:g})")
    return np.linalg.solve(M, np.eye(M.shape[0]))
