# -*- coding: utf-8 -*-
"""Linearization of the dynamics along a nominal trajectory.

For every step t we obtain continuous-time Jacobians (A_c, B_c) at
(x_t, u_t, t*dt), either from an analytic `LinearSystem` or by central
differences of `ControlledSystem.compute_derivative`, and convert them to
discrete time:

  FORWARD_EULER   A_d = I + dt A_c                    B_d = dt B_c
  BACKWARD_EULER  A_d = M^-1,          M = I - dt A_c  B_d = M^-1 dt B_c
  TUSTIN          A_d = M^-1 (I + dt/2 A_c),
                                       M = I - dt/2 A_c B_d = M^-1 dt B_c
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np

from .containers import LinearizationArrays
from .exceptions import LinearizationFailure
from .parallel import ParallelExecutionManager, WorkerContext
from .settings import Discretization, GNMSSettings
from .utils import _finite, checked_inverse


# =============================================================================
# Finite-difference Jacobians (fallback when no analytic provider is given)
# =============================================================================

def central_diff_jacobians(
    f: Callable[[np.ndarray, float, np.ndarray], np.ndarray],
    x: np.ndarray,
    u: np.ndarray,
    t: float,
    epsx: float = 1e-5,
    epsu: float = 1e-5,
    relx: float = 1e-6,
    relu: float = 1e-6,
) -> Tuple[np.ndarray, np.ndarray]:
    """Central differences of f(x, t, u) with relative step sizes.

    Step per coordinate:  h_i = max(eps, rel * max(1, |x_i|)).
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    u = np.asarray(u, dtype=float).reshape(-1)
    n, m = x.size, u.size
    A = np.zeros((n, n), dtype=float)
    B = np.zeros((n, m), dtype=float)

    for i in range(n):
        hi = max(float(epsx), float(relx) * max(1.0, abs(float(x[i]))))
        xp = x.copy()
        xm = x.copy()
        xp[i] += hi
        xm[i] -= hi
        A[:, i] = (np.asarray(f(xp, t, u), dtype=float) - np.asarray(f(xm, t, u), dtype=float)) / (2.0 * hi)
    for j in range(m):
        hj = max(float(epsu), float(relu) * max(1.0, abs(float(u[j]))))
        up = u.copy()
        um = u.copy()
        up[j] += hj
        um[j] -= hj
        B[:, j] = (np.asarray(f(x, t, up), dtype=float) - np.asarray(f(x, t, um), dtype=float)) / (2.0 * hj)
    return A, B


# =============================================================================
# Continuous -> discrete
# =============================================================================

def discretize(
    A_c: np.ndarray,
    B_c: np.ndarray,
    dt: float,
    scheme: Discretization,
) -> Tuple[np.ndarray, np.ndarray]:
    """Discrete-time (A_d, B_d). Raises LinAlgError if M is singular/ill-conditioned."""
    A_c = np.asarray(A_c, dtype=float)
    B_c = np.asarray(B_c, dtype=float)
    I = np.eye(A_c.shape[0])
    dt = float(dt)

    if scheme == Discretization.FORWARD_EULER:
        return I + dt * A_c, dt * B_c

    if scheme == Discretization.BACKWARD_EULER:
        M_inv = checked_inverse(I - dt * A_c)
        return M_inv, M_inv @ (dt * B_c)

    if scheme == Discretization.TUSTIN:
        half = 0.5 * dt * A_c
        M_inv = checked_inverse(I - half)
        return M_inv @ (I + half), M_inv @ (dt * B_c)

    raise ValueError(f"unknown discretization: {scheme!r}")


# =============================================================================
# Linearizer
# =============================================================================

class Linearizer:
    """Produces LinearizationArrays for a nominal (X, U)."""

    def __init__(self, settings: GNMSSettings):
        self.settings = settings

    def continuous_jacobians(self, ctx: WorkerContext, x: np.ndarray, u: np.ndarray, t: float):
        if ctx.linearization is not None:
            A_c = np.asarray(ctx.linearization.derivative_state(x, u, t), dtype=float)
            B_c = np.asarray(ctx.linearization.derivative_control(x, u, t), dtype=float)
            n, m = x.size, u.size
            return A_c.reshape(n, n), B_c.reshape(n, m)
        s = self.settings
        return central_diff_jacobians(
            ctx.dynamics.compute_derivative, x, u, t,
            epsx=s.fd_eps, epsu=s.fd_eps, relx=s.fd_rel, relu=s.fd_rel,
        )

    def linearize_step(self, ctx: WorkerContext, X: np.ndarray, U: np.ndarray, k: int):
        s = self.settings
        t = k * s.dt
        A_c, B_c = self.continuous_jacobians(ctx, X[k], U[k], t)
        if not (_finite(A_c) and _finite(B_c)):
            raise LinearizationFailure("non-finite continuous-time Jacobian", step=k)
        try:
            A_d, B_d = discretize(A_c, B_c, s.dt, s.discretization)
        except (np.linalg.LinAlgError, FloatingPointError) as e:
            raise LinearizationFailure(f"{s.discretization.name} conversion failed: {e}", step=k) from e
        return A_d, B_d

    def compute(
        self,
        manager: ParallelExecutionManager,
        X: np.ndarray,
        U: np.ndarray,
        out: Optional[LinearizationArrays] = None,
    ) -> LinearizationArrays:
        """Linearize every step; `out` is only written once all steps succeeded."""
        N = U.shape[0]
        results = manager.map_steps(lambda ctx, k: self.linearize_step(ctx, X, U, k), N)

        if out is None:
            out = LinearizationArrays.allocate(N, X.shape[1], U.shape[1])
        for k, (A_d, B_d) in enumerate(results):
            out.A[k] = A_d
            out.B[k] = B_d
        return out
