# -*- coding: utf-8 -*-
"""Problem definition and the capability interfaces the solver consumes.

The solver only talks to these abstract bases:

- `ControlledSystem`   continuous-time dynamics  x_dot = f(x, t, u)
- `LinearSystem`       analytic Jacobians  df/dx, df/du  (optional)
- `CostFunction`       running cost L(x, u, t) and terminal cost Phi(x)

Concrete systems live in `gnms.systems`, a quadratic cost in `gnms.costs`.
"""

from __future__ import annotations

import abc
import copy
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .exceptions import ConfigurationError


# =============================================================================
# Capabilities
# =============================================================================

class ControlledSystem(abc.ABC):
    """Nonlinear dynamics x_dot = f(x, t, u)."""

    def __init__(self, state_dim: int, control_dim: int):
        self.state_dim = int(state_dim)
        self.control_dim = int(control_dim)

    @abc.abstractmethod
    def compute_derivative(self, state: np.ndarray, time: float, control: np.ndarray) -> np.ndarray:
        ...

    def clone(self) -> "ControlledSystem":
        """Deep copy; every worker thread gets its own instance."""
        return copy.deepcopy(self)


class LinearSystem(abc.ABC):
    """Continuous-time Jacobians of a `ControlledSystem`."""

    @abc.abstractmethod
    def derivative_state(self, x: np.ndarray, u: np.ndarray, t: float = 0.0) -> np.ndarray:
        ...

    @abc.abstractmethod
    def derivative_control(self, x: np.ndarray, u: np.ndarray, t: float = 0.0) -> np.ndarray:
        ...

    def clone(self) -> "LinearSystem":
        return copy.deepcopy(self)


class CostFunction(abc.ABC):
    """Running cost L(x,u,t) and terminal cost Phi(x) with derivatives.

    The solver integrates the running cost as sum_k dt * L(x_k, u_k, k*dt).
    `hessian_control_state` is d^2 L / du dx with shape (m, n).
    """

    @abc.abstractmethod
    def value(self, x: np.ndarray, u: np.ndarray, t: float) -> float: ...

    @abc.abstractmethod
    def gradient_state(self, x: np.ndarray, u: np.ndarray, t: float) -> np.ndarray: ...

    @abc.abstractmethod
    def gradient_control(self, x: np.ndarray, u: np.ndarray, t: float) -> np.ndarray: ...

    @abc.abstractmethod
    def hessian_state(self, x: np.ndarray, u: np.ndarray, t: float) -> np.ndarray: ...

    @abc.abstractmethod
    def hessian_control(self, x: np.ndarray, u: np.ndarray, t: float) -> np.ndarray: ...

    @abc.abstractmethod
    def hessian_control_state(self, x: np.ndarray, u: np.ndarray, t: float) -> np.ndarray: ...

    @abc.abstractmethod
    def terminal_value(self, x: np.ndarray) -> float: ...

    @abc.abstractmethod
    def terminal_gradient_state(self, x: np.ndarray) -> np.ndarray: ...

    @abc.abstractmethod
    def terminal_hessian_state(self, x: np.ndarray) -> np.ndarray: ...

    def clone(self) -> "CostFunction":
        return copy.deepcopy(self)


# =============================================================================
# Problem bundle
# =============================================================================

@dataclass(frozen=True, eq=False)
class OptConProblem:
    """Horizon, initial state, dynamics, cost and (optional) analytic linearization."""

    horizon: float
    initial_state: np.ndarray
    dynamics: ControlledSystem
    cost: CostFunction
    linearization: Optional[LinearSystem] = None

    def __post_init__(self):
        if not np.isfinite(self.horizon) or float(self.horizon) <= 0.0:
            raise ConfigurationError(f"horizon must be positive, got {self.horizon!r}")
        if not isinstance(self.dynamics, ControlledSystem):
            raise ConfigurationError("dynamics must implement ControlledSystem")
        if not isinstance(self.cost, CostFunction):
            raise ConfigurationError("cost must implement CostFunction")
        if self.linearization is not None and not isinstance(self.linearization, LinearSystem):
            raise ConfigurationError("linearization must implement LinearSystem")

        x0 = np.array(self.initial_state, dtype=float).reshape(-1)
        if x0.size != self.dynamics.state_dim:
            raise ConfigurationError(
                f"initial state has size {x0.size}, dynamics expects {self.dynamics.state_dim}"
            )
        if not np.all(np.isfinite(x0)):
            raise ConfigurationError("initial state contains non-finite values")
        x0.setflags(write=False)
        object.__setattr__(self, "initial_state", x0)
        object.__setattr__(self, "horizon", float(self.horizon))

    @property
    def state_dim(self) -> int:
        return self.dynamics.state_dim

    @property
    def control_dim(self) -> int:
        return self.dynamics.control_dim
