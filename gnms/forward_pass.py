# -*- coding: utf-8 -*-
"""Nonlinear rollouts and the backtracking line search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .backward_pass import PolicyUpdate
from .containers import Trajectory
from .exceptions import RolloutDivergence
from .integrators import integrate_interval
from .package_logger import get_package_logger
from .parallel import ParallelExecutionManager, WorkerContext
from .settings import GNMSSettings

logger = get_package_logger(__name__)

ControlLaw = Callable[[int, np.ndarray], np.ndarray]


# =============================================================================
# Rollout
# =============================================================================

@dataclass
class _Segment:
    states: np.ndarray       # x_k for k in the segment
    controls: np.ndarray     # u_k for k in the segment
    stage_costs: np.ndarray  # dt * L(x_k, u_k, k*dt)
    x_end: np.ndarray        # state after the last step of the segment


def _rollout_segment(
    ctx: WorkerContext,
    seg: range,
    x_start: np.ndarray,
    control_law: ControlLaw,
    m: int,
    settings: GNMSSettings,
) -> _Segment:
    dt = float(settings.dt)
    n_sub = settings.k_sim()
    n = x_start.size

    X = np.zeros((len(seg), n), dtype=float)
    U = np.zeros((len(seg), m), dtype=float)
    L = np.zeros(len(seg), dtype=float)

    x = np.asarray(x_start, dtype=float).reshape(-1)
    for i, k in enumerate(seg):
        u = np.asarray(control_law(k, x), dtype=float).reshape(m)
        if not np.all(np.isfinite(u)):
            raise RolloutDivergence("non-finite control", step=k)
        X[i] = x
        U[i] = u
        L[i] = dt * float(ctx.cost.value(x, u, k * dt))

        x = integrate_interval(ctx.dynamics, x, u, k * dt, dt, n_sub, settings.integrator)
        if not np.all(np.isfinite(x)) or float(np.linalg.norm(x)) > settings.max_state_norm:
            raise RolloutDivergence("state diverged", step=k + 1)

    return _Segment(states=X, controls=U, stage_costs=L, x_end=x)


def rollout(
    manager: ParallelExecutionManager,
    control_law: ControlLaw,
    x0: np.ndarray,
    n_steps: int,
    control_dim: int,
    settings: GNMSSettings,
) -> Trajectory:
    """Simulate the closed loop `u_k = control_law(k, x_k)` from x0.

    Each control is held over [k*dt, (k+1)*dt] and integrated with k_sim
    sub-steps. Raises RolloutDivergence on a non-finite or exploding state.
    """
    segments: List[_Segment] = manager.chain_segments(
        lambda ctx, seg, x_start: _rollout_segment(ctx, seg, x_start, control_law, control_dim, settings),
        x0,
        n_steps,
        terminal_state=lambda res: res.x_end,
    )

    X = np.vstack([s.states for s in segments] + [segments[-1].x_end.reshape(1, -1)])
    U = np.vstack([s.controls for s in segments])
    stage = np.concatenate([s.stage_costs for s in segments])

    terminal = float(manager.contexts[0].cost.terminal_value(X[-1]))
    cost = float(np.sum(stage)) + terminal
    return Trajectory(states=X, controls=U, cost=cost)


def update_law(nominal: Trajectory, update: PolicyUpdate, alpha: float) -> ControlLaw:
    """u_k = u_nom_k + alpha k_k + K_k (x - x_nom_k)."""
    X_nom, U_nom = nominal.states, nominal.controls
    k_ff, K_fb = update.feedforward, update.feedback
    alpha = float(alpha)

    def law(k: int, x: np.ndarray) -> np.ndarray:
        return U_nom[k] + alpha * k_ff[k] + K_fb[k] @ (x - X_nom[k])

    return law


# =============================================================================
# Line search
# =============================================================================

@dataclass
class LineSearchResult:
    accepted: bool
    alpha: float = 0.0
    trajectory: Optional[Trajectory] = None
    attempts: int = 0
    divergences: int = 0
    tried: List[float] = field(default_factory=list)


def line_search(
    manager: ParallelExecutionManager,
    nominal: Trajectory,
    update: PolicyUpdate,
    settings: GNMSSettings,
) -> LineSearchResult:
    """Backtrack over alpha until the true cost improves enough.

    Accepts the first candidate with  J_old - J_new > 0  and
    J_old - J_new >= min_cost_improvement.
    """
    J_old = float(nominal.cost)
    x0 = nominal.states[0]
    N = nominal.n_steps
    m = nominal.controls.shape[1]
    result = LineSearchResult(accepted=False)

    for alpha in settings.line_search.alphas():
        result.attempts += 1
        result.tried.append(alpha)
        try:
            cand = rollout(manager, update_law(nominal, update, alpha), x0, N, m, settings)
        except RolloutDivergence as e:
            result.divergences += 1
            logger.debug("alpha=%.4g rejected: %s", alpha, e)
            continue

        J_new = cand.cost
        if not np.isfinite(J_new):
            logger.debug("alpha=%.4g rejected: non-finite cost", alpha)
            continue

        improvement = J_old - J_new
        logger.debug("alpha=%.4g  J=%.6g  dJ=%.3g  (predicted %.3g)",
                     alpha, J_new, improvement, -update.expected_change(alpha))
        if improvement > 0.0 and improvement >= settings.min_cost_improvement:
            result.accepted = True
            result.alpha = alpha
            result.trajectory = cand
            return result

    return result
