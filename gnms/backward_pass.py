# -*- coding: utf-8 -*-
"""Riccati-like backward recursion producing the policy update.

Per step (value function S, s of step t+1 propagated backwards):

  Qx  = qx  + A^T s          Qu  = ru  + B^T s
  Qxx = qxx + A^T S A        Quu = ruu + B^T S B        Qux = rux + B^T S A

Quu is regularized into H before inversion:

- fixed Hessian correction:  H = Quu + epsilon I  (Cholesky inverse)
- otherwise:                 eigenvalues of Quu clamped from below at epsilon

then  k = -H^-1 Qu,  K = -H^-1 Qux  and

  S <- Qxx + K^T H K + K^T Qux + Qux^T K
  s <- Qx  + K^T H k + K^T Qu  + Qux^T k

The recursion is sequential in time and runs on the calling thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .containers import LinearizationArrays, QuadraticCostModel
from .exceptions import BackwardPassFailure
from .settings import GNMSSettings
from .utils import _finite, _sym, chol_solve, clamped_eig


@dataclass
class PolicyUpdate:
    feedforward: np.ndarray   # k, (N, m)
    feedback: np.ndarray      # K, (N, m, n)
    dV1: float = 0.0          # sum_t k^T Qu
    dV2: float = 0.0          # sum_t 0.5 k^T H k
    smallest_eigenvalue: Optional[float] = None

    def expected_change(self, alpha: float) -> float:
        """Predicted cost change of the quadratic model for step size alpha."""
        return float(alpha) * self.dV1 + float(alpha) ** 2 * self.dV2


def _regularize(
    Quu: np.ndarray,
    settings: GNMSSettings,
    t: int,
) -> Tuple[np.ndarray, np.ndarray, Optional[float]]:
    """Return (H, H^-1, smallest eigenvalue or None)."""
    m = Quu.shape[0]
    eps = float(settings.epsilon)
    Quu = _sym(Quu)
    I = np.eye(m)

    if settings.fixed_hessian_correction:
        H = Quu + eps * I if eps > 1e-10 else Quu
        try:
            H_inv = chol_solve(H, I)
        except (np.linalg.LinAlgError, FloatingPointError) as e:
            raise BackwardPassFailure(f"Quu not positive definite after fixed correction ({e})", step=t) from e
        lam_min = None
        if settings.record_smallest_eigenvalue:
            lam_min = float(np.linalg.eigvalsh(H).min())
        return H, H_inv, lam_min

    try:
        V, lam, lam_min_raw = clamped_eig(Quu, eps)
    except (np.linalg.LinAlgError, FloatingPointError) as e:
        raise BackwardPassFailure(f"eigen-decomposition of Quu failed ({e})", step=t) from e
    if not np.all(lam > 0.0):
        raise BackwardPassFailure(
            f"Quu not positive definite after eigenvalue clamping (lambda_min={lam_min_raw:g}, "
            f"epsilon={eps:g})",
            step=t,
        )
    H = _sym((V * lam) @ V.T)
    H_inv = _sym((V / lam) @ V.T)
    lam_min = lam_min_raw if settings.record_smallest_eigenvalue else None
    return H, H_inv, lam_min


def backward_pass(
    lin: LinearizationArrays,
    cm: QuadraticCostModel,
    settings: GNMSSettings,
) -> PolicyUpdate:
    """Standard Gauss-Newton backward pass over the full horizon."""
    N = lin.n_steps
    n = lin.A.shape[1]
    m = lin.B.shape[2]

    k_ff = np.zeros((N, m), dtype=float)
    K_fb = np.zeros((N, m, n), dtype=float)

    S = _sym(cm.qxx[N])
    s = cm.qx[N].copy()
    if not (_finite(S) and _finite(s)):
        raise BackwardPassFailure("non-finite terminal cost expansion", step=N)

    dV1 = 0.0
    dV2 = 0.0
    smallest = None

    for t in reversed(range(N)):
        A, B = lin.A[t], lin.B[t]

        Qx = cm.qx[t] + A.T @ s
        Qu = cm.ru[t] + B.T @ s
        Qxx = cm.qxx[t] + A.T @ S @ A
        Quu = cm.ruu[t] + B.T @ S @ B
        Qux = cm.rux[t] + B.T @ S @ A

        if not (_finite(Qx) and _finite(Qu) and _finite(Qxx) and _finite(Quu) and _finite(Qux)):
            raise BackwardPassFailure("non-finite Q terms", step=t)

        H, H_inv, lam_min = _regularize(Quu, settings, t)
        if lam_min is not None:
            smallest = lam_min if smallest is None else min(smallest, lam_min)

        kappa = -H_inv @ Qu
        Kt = -H_inv @ Qux

        k_ff[t] = kappa
        K_fb[t] = Kt

        S = _sym(Qxx + Kt.T @ H @ Kt + Kt.T @ Qux + Qux.T @ Kt)
        s = Qx + Kt.T @ H @ kappa + Kt.T @ Qu + Qux.T @ kappa

        dV1 += float(kappa @ Qu)
        dV2 += 0.5 * float(kappa @ (H @ kappa))

        if not (_finite(S) and _finite(s)):
            raise BackwardPassFailure("non-finite value function", step=t)

    return PolicyUpdate(
        feedforward=k_ff,
        feedback=K_fb,
        dV1=dV1,
        dV2=dV2,
        smallest_eigenvalue=smallest,
    )
