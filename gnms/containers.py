# -*- coding: utf-8 -*-
"""Iteration-scoped working arrays.

Buffers are allocated once per `configure()` (sized by the number of steps) and
overwritten every iteration. Index = time step.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Trajectory:
    """States (N+1, n), controls (N, m) and the true cost of the pair."""

    states: np.ndarray
    controls: np.ndarray
    cost: float = float("inf")

    @property
    def n_steps(self) -> int:
        return self.controls.shape[0]


@dataclass
class LinearizationArrays:
    """Discrete-time A[t] (n,n) and B[t] (n,m), t = 0..N-1."""

    A: np.ndarray
    B: np.ndarray

    @classmethod
    def allocate(cls, n_steps: int, n: int, m: int) -> "LinearizationArrays":
        return cls(A=np.zeros((n_steps, n, n)), B=np.zeros((n_steps, n, m)))

    @property
    def n_steps(self) -> int:
        return self.A.shape[0]

    def matches(self, n_steps: int, n: int, m: int) -> bool:
        return self.A.shape == (n_steps, n, n) and self.B.shape == (n_steps, n, m)


@dataclass
class QuadraticCostModel:
    """Local quadratic cost around the nominal trajectory.

    Running terms are already multiplied by dt. Index N of the state terms holds
    the terminal cost.
    """

    q: np.ndarray     # (N+1,)
    qx: np.ndarray    # (N+1, n)
    qxx: np.ndarray   # (N+1, n, n)
    ru: np.ndarray    # (N, m)
    ruu: np.ndarray   # (N, m, m)
    rux: np.ndarray   # (N, m, n)

    @classmethod
    def allocate(cls, n_steps: int, n: int, m: int) -> "QuadraticCostModel":
        return cls(
            q=np.zeros(n_steps + 1),
            qx=np.zeros((n_steps + 1, n)),
            qxx=np.zeros((n_steps + 1, n, n)),
            ru=np.zeros((n_steps, m)),
            ruu=np.zeros((n_steps, m, m)),
            rux=np.zeros((n_steps, m, n)),
        )

    @property
    def n_steps(self) -> int:
        return self.ru.shape[0]

    def matches(self, n_steps: int, n: int, m: int) -> bool:
        return self.qxx.shape == (n_steps + 1, n, n) and self.rux.shape == (n_steps, m, n)
