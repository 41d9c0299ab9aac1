# -*- coding: utf-8 -*-
"""Fixed-step integrators.

Used by the forward pass (one control interval at a time, control held
constant) and by `simulate_policy`, which re-simulates a returned policy
independently of the solver.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from .exceptions import RolloutDivergence
from .policy import FeedbackPolicy
from .problem import ControlledSystem
from .settings import IntegratorType

Derivative = Callable[[np.ndarray, float], np.ndarray]


# =============================================================================
# Single steps
# =============================================================================

def euler_step(f: Derivative, x: np.ndarray, t: float, h: float) -> np.ndarray:
    return x + h * f(x, t)


def rk4_step(f: Derivative, x: np.ndarray, t: float, h: float) -> np.ndarray:
    k1 = f(x, t)
    k2 = f(x + 0.5 * h * k1, t + 0.5 * h)
    k3 = f(x + 0.5 * h * k2, t + 0.5 * h)
    k4 = f(x + h * k3, t + h)
    return x + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


_STEPPERS = {
    IntegratorType.EULER: euler_step,
    IntegratorType.RK4: rk4_step,
}


def get_stepper(method: IntegratorType):
    try:
        return _STEPPERS[method]
    except KeyError:
        raise ValueError(f"unknown integrator: {method!r}")


# =============================================================================
# One control interval (zero-order hold)
# =============================================================================

def integrate_interval(
    system: ControlledSystem,
    x: np.ndarray,
    u: np.ndarray,
    t0: float,
    dt: float,
    n_sub: int,
    method: IntegratorType = IntegratorType.RK4,
) -> np.ndarray:
    """Integrate x over [t0, t0+dt] with constant u using n_sub sub-steps."""
    step = get_stepper(method)
    h = float(dt) / int(n_sub)

    def f(xx, tt):
        return np.asarray(system.compute_derivative(xx, tt, u), dtype=float).reshape(-1)

    x = np.asarray(x, dtype=float).reshape(-1)
    for i in range(int(n_sub)):
        x = step(f, x, t0 + i * h, h)
    return x


# =============================================================================
# Independent simulation of a feedback policy
# =============================================================================

def simulate_policy(
    system: ControlledSystem,
    policy: FeedbackPolicy,
    x0: np.ndarray,
    n_steps: int,
    dt_sim: float,
    *,
    t0: float = 0.0,
    method: IntegratorType = IntegratorType.RK4,
    max_state_norm: float = 1e6,
) -> np.ndarray:
    """Integrate n_steps steps of size dt_sim under `policy`.

    The control is re-evaluated at the start of every integration step and held
    over it. Returns the visited states, shape (n_steps+1, n).
    """
    step = get_stepper(method)
    x = np.asarray(x0, dtype=float).reshape(-1).copy()
    X = np.zeros((int(n_steps) + 1, x.size), dtype=float)
    X[0] = x

    for i in range(int(n_steps)):
        t = t0 + i * float(dt_sim)
        u = policy.control_at(t, x)

        def f(xx, tt, u=u):
            return np.asarray(system.compute_derivative(xx, tt, u), dtype=float).reshape(-1)

        x = step(f, x, t, float(dt_sim))
        if not np.all(np.isfinite(x)) or float(np.linalg.norm(x)) > max_state_norm:
            raise RolloutDivergence("policy simulation diverged", step=i)
        X[i + 1] = x

    return X
