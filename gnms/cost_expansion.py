# -*- coding: utf-8 -*-
"""Local quadratic model of the cost around the nominal trajectory."""

from __future__ import annotations

from typing import Optional

import numpy as np

from .containers import QuadraticCostModel
from .parallel import ParallelExecutionManager, WorkerContext
from .settings import GNMSSettings


# =============================================================================
# True cost of a trajectory
# =============================================================================

def running_cost(cost, X: np.ndarray, U: np.ndarray, dt: float, steps) -> np.ndarray:
    """dt * L(x_k, u_k, k*dt) for k in `steps`."""
    return np.array([dt * float(cost.value(X[k], U[k], k * dt)) for k in steps], dtype=float)


def trajectory_cost(cost, X: np.ndarray, U: np.ndarray, dt: float) -> float:
    """sum_k dt * L(x_k, u_k, k*dt) + Phi(x_N)."""
    N = U.shape[0]
    stage = running_cost(cost, X, U, dt, range(N))
    return float(np.sum(stage)) + float(cost.terminal_value(X[N]))


# =============================================================================
# Expander
# =============================================================================

class QuadraticCostExpander:
    def __init__(self, settings: GNMSSettings):
        self.settings = settings

    def expand_step(self, ctx: WorkerContext, X: np.ndarray, U: np.ndarray, k: int):
        dt = self.settings.dt
        x, u, t = X[k], U[k], k * dt
        c = ctx.cost
        n, m = x.size, u.size
        return (
            dt * float(c.value(x, u, t)),
            dt * np.asarray(c.gradient_state(x, u, t), dtype=float).reshape(n),
            dt * np.asarray(c.hessian_state(x, u, t), dtype=float).reshape(n, n),
            dt * np.asarray(c.gradient_control(x, u, t), dtype=float).reshape(m),
            dt * np.asarray(c.hessian_control(x, u, t), dtype=float).reshape(m, m),
            dt * np.asarray(c.hessian_control_state(x, u, t), dtype=float).reshape(m, n),
        )

    def compute(
        self,
        manager: ParallelExecutionManager,
        X: np.ndarray,
        U: np.ndarray,
        out: Optional[QuadraticCostModel] = None,
    ) -> QuadraticCostModel:
        N = U.shape[0]
        n, m = X.shape[1], U.shape[1]
        results = manager.map_steps(lambda ctx, k: self.expand_step(ctx, X, U, k), N)

        if out is None:
            out = QuadraticCostModel.allocate(N, n, m)
        for k, (q, qx, qxx, ru, ruu, rux) in enumerate(results):
            out.q[k] = q
            out.qx[k] = qx
            out.qxx[k] = qxx
            out.ru[k] = ru
            out.ruu[k] = ruu
            out.rux[k] = rux

        # terminal term (main thread, after the barrier)
        c = manager.contexts[0].cost
        xN = X[N]
        out.q[N] = float(c.terminal_value(xN))
        out.qx[N] = np.asarray(c.terminal_gradient_state(xN), dtype=float).reshape(n)
        out.qxx[N] = np.asarray(c.terminal_hessian_state(xN), dtype=float).reshape(n, n)
        return out
