# -*- coding: utf-8 -*-
"""Control policies.

A policy is one of two variants:

- `OpenLoopPolicy`  feedforward controls plus the nominal states they produce
- `FeedbackPolicy`  feedforward controls, feedback gains and the control dt

Both are piecewise constant over [k*dt, (k+1)*dt). The feedback law is

    u_k(x) = uff_k + K_k (x - x_ref_k)

where x_ref_k is zero when the policy carries no reference states.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .exceptions import ConfigurationError


@dataclass
class OpenLoopPolicy:
    feedforward: np.ndarray
    states: np.ndarray

    def __post_init__(self):
        self.feedforward = _as_controls(self.feedforward)
        self.states = np.atleast_2d(np.asarray(self.states, dtype=float))
        if self.states.shape[0] != self.feedforward.shape[0] + 1:
            raise ConfigurationError(
                f"open-loop policy has {self.feedforward.shape[0]} controls "
                f"but {self.states.shape[0]} states (expected controls + 1)"
            )

    @property
    def n_steps(self) -> int:
        return self.feedforward.shape[0]

    def control(self, k: int, x: np.ndarray) -> np.ndarray:
        return self.feedforward[k]


@dataclass
class FeedbackPolicy:
    feedforward: np.ndarray
    feedback: np.ndarray
    dt: float
    reference_states: Optional[np.ndarray] = None

    def __post_init__(self):
        self.feedforward = _as_controls(self.feedforward)
        self.feedback = np.asarray(self.feedback, dtype=float)
        N, m = self.feedforward.shape
        if self.feedback.ndim != 3 or self.feedback.shape[:2] != (N, m):
            raise ConfigurationError(
                f"feedback gains have shape {self.feedback.shape}, expected ({N}, {m}, n)"
            )
        if float(self.dt) <= 0.0:
            raise ConfigurationError(f"policy dt must be positive, got {self.dt}")
        self.dt = float(self.dt)
        if self.reference_states is not None:
            self.reference_states = np.atleast_2d(np.asarray(self.reference_states, dtype=float))
            if self.reference_states.shape != (N + 1, self.feedback.shape[2]):
                raise ConfigurationError(
                    f"reference states have shape {self.reference_states.shape}, "
                    f"expected ({N + 1}, {self.feedback.shape[2]})"
                )

    @property
    def n_steps(self) -> int:
        return self.feedforward.shape[0]

    def control(self, k: int, x: np.ndarray) -> np.ndarray:
        if self.reference_states is None:
            dx = x
        else:
            dx = x - self.reference_states[k]
        return self.feedforward[k] + self.feedback[k] @ dx

    def control_at(self, t: float, x: np.ndarray) -> np.ndarray:
        """Zero-order-hold evaluation at continuous time t."""
        k = int(np.floor(float(t) / self.dt + 1e-9))
        k = min(max(k, 0), self.n_steps - 1)
        return self.control(k, x)


Policy = Union[OpenLoopPolicy, FeedbackPolicy]


def _as_controls(u) -> np.ndarray:
    u = np.asarray(u, dtype=float)
    if u.ndim == 1:
        u = u.reshape(-1, 1)
    if u.ndim != 2:
        raise ConfigurationError(f"controls must be a (N, m) array, got shape {u.shape}")
    return u


def to_feedback(policy: Policy, dt: float) -> FeedbackPolicy:
    """Convert either variant to feedback form (open loop -> zero gains)."""
    if isinstance(policy, FeedbackPolicy):
        return policy
    if isinstance(policy, OpenLoopPolicy):
        N, m = policy.feedforward.shape
        n = policy.states.shape[1]
        return FeedbackPolicy(
            feedforward=policy.feedforward.copy(),
            feedback=np.zeros((N, m, n)),
            dt=dt,
            reference_states=policy.states.copy(),
        )
    raise TypeError(f"not a policy: {type(policy).__name__}")
