# -*- coding: utf-8 -*-
"""Quadratic tracking cost.

  L(x, u)   = 0.5 (x - x_nom)^T Q (x - x_nom) + 0.5 (u - u_nom)^T R (u - u_nom)
  Phi(x)    = 0.5 (x - x_f)^T Q_f (x - x_f)

Weights may be given as scalars, diagonal vectors or full matrices.
"""

from __future__ import annotations

import numpy as np

from .problem import CostFunction
from .utils import as_weight_matrix


class CostFunctionQuadraticSimple(CostFunction):
    def __init__(self, Q, R, x_nominal, u_nominal, x_final, Q_final):
        self.x_nominal = np.asarray(x_nominal, dtype=float).reshape(-1)
        self.u_nominal = np.asarray(u_nominal, dtype=float).reshape(-1)
        self.x_final = np.asarray(x_final, dtype=float).reshape(-1)

        n, m = self.x_nominal.size, self.u_nominal.size
        if self.x_final.size != n:
            raise ValueError(f"x_final has size {self.x_final.size}, expected {n}")
        self.Q = as_weight_matrix(Q, n)
        self.R = as_weight_matrix(R, m)
        self.Q_final = as_weight_matrix(Q_final, n)

    @property
    def state_dim(self) -> int:
        return self.x_nominal.size

    @property
    def control_dim(self) -> int:
        return self.u_nominal.size

    # running cost

    def value(self, x, u, t=0.0) -> float:
        dx = np.asarray(x, dtype=float).reshape(-1) - self.x_nominal
        du = np.asarray(u, dtype=float).reshape(-1) - self.u_nominal
        return 0.5 * float(dx @ (self.Q @ dx)) + 0.5 * float(du @ (self.R @ du))

    def gradient_state(self, x, u, t=0.0) -> np.ndarray:
        return self.Q @ (np.asarray(x, dtype=float).reshape(-1) - self.x_nominal)

    def gradient_control(self, x, u, t=0.0) -> np.ndarray:
        return self.R @ (np.asarray(u, dtype=float).reshape(-1) - self.u_nominal)

    def hessian_state(self, x, u, t=0.0) -> np.ndarray:
        return self.Q.copy()

    def hessian_control(self, x, u, t=0.0) -> np.ndarray:
        return self.R.copy()

    def hessian_control_state(self, x, u, t=0.0) -> np.ndarray:
        return np.zeros((self.control_dim, self.state_dim))

    # terminal cost

    def terminal_value(self, x) -> float:
        dx = np.asarray(x, dtype=float).reshape(-1) - self.x_final
        return 0.5 * float(dx @ (self.Q_final @ dx))

    def terminal_gradient_state(self, x) -> np.ndarray:
        return self.Q_final @ (np.asarray(x, dtype=float).reshape(-1) - self.x_final)

    def terminal_hessian_state(self, x) -> np.ndarray:
        return self.Q_final.copy()
