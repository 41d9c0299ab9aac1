# -*- coding: utf-8 -*-
"""Solver settings.

`GNMSSettings` is a plain mutable dataclass. The solver copies it on
`configure()`, so changing an instance afterwards has no effect until it is
re-applied.
"""

from __future__ import annotations

import copy
import enum
import json
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

from .exceptions import ConfigurationError


class Discretization(enum.Enum):
    FORWARD_EULER = "forward_euler"
    BACKWARD_EULER = "backward_euler"
    TUSTIN = "tustin"


class IntegratorType(enum.Enum):
    EULER = "euler"
    RK4 = "rk4"


@dataclass
class LineSearchSettings:
    """Backtracking on the feedforward step: alpha_i = alpha_0 * n_alpha**i."""

    active: bool = True
    max_iterations: int = 10
    alpha_0: float = 1.0
    n_alpha: float = 0.5

    def alphas(self):
        if not self.active:
            return (1.0,)
        return tuple(float(self.alpha_0) * float(self.n_alpha) ** i for i in range(int(self.max_iterations)))

    def validate(self) -> None:
        if int(self.max_iterations) < 1:
            raise ConfigurationError(f"line_search.max_iterations must be >= 1, got {self.max_iterations}")
        if not (float(self.alpha_0) > 0.0):
            raise ConfigurationError(f"line_search.alpha_0 must be positive, got {self.alpha_0}")
        if not (0.0 < float(self.n_alpha) < 1.0):
            raise ConfigurationError(f"line_search.n_alpha must lie in (0, 1), got {self.n_alpha}")


@dataclass
class GNMSSettings:
    dt: float = 0.01
    dt_sim: float = 0.01
    discretization: Discretization = Discretization.FORWARD_EULER
    integrator: IntegratorType = IntegratorType.RK4
    max_iterations: int = 100
    min_cost_improvement: float = 1e-4
    epsilon: float = 1e-5
    fixed_hessian_correction: bool = False
    record_smallest_eigenvalue: bool = False
    thread_count: int = 1
    line_search: LineSearchSettings = field(default_factory=LineSearchSettings)

    # numerical guards
    max_state_norm: float = 1e6
    fd_eps: float = 1e-5
    fd_rel: float = 1e-6

    print_summary: bool = False

    # -----------------------------------------------------------------
    # Derived quantities
    # -----------------------------------------------------------------

    def number_of_steps(self, horizon: float) -> int:
        """N = round(horizon / dt)."""
        n_steps = int(round(float(horizon) / float(self.dt)))
        if n_steps < 1:
            raise ConfigurationError(
                f"horizon {horizon:g} is shorter than one step of dt={self.dt:g}"
            )
        return n_steps

    def k_sim(self) -> int:
        """Number of integrator sub-steps per control interval."""
        return max(1, int(round(float(self.dt) / float(self.dt_sim))))

    def copy(self) -> "GNMSSettings":
        return copy.deepcopy(self)

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def validate(self) -> None:
        for name in ("dt", "dt_sim", "max_state_norm", "fd_eps"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or math.isnan(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
        if self.dt_sim > self.dt:
            raise ConfigurationError(f"dt_sim ({self.dt_sim:g}) must not exceed dt ({self.dt:g})")
        if not isinstance(self.discretization, Discretization):
            raise ConfigurationError(f"unknown discretization {self.discretization!r}")
        if not isinstance(self.integrator, IntegratorType):
            raise ConfigurationError(f"unknown integrator {self.integrator!r}")
        if int(self.max_iterations) < 1:
            raise ConfigurationError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if float(self.min_cost_improvement) < 0.0:
            raise ConfigurationError(f"min_cost_improvement must be >= 0, got {self.min_cost_improvement}")
        if float(self.epsilon) < 0.0:
            raise ConfigurationError(f"epsilon must be >= 0, got {self.epsilon}")
        if float(self.fd_rel) < 0.0:
            raise ConfigurationError(f"fd_rel must be >= 0, got {self.fd_rel}")
        if int(self.thread_count) < 1:
            raise ConfigurationError(f"thread_count must be >= 1, got {self.thread_count}")
        self.line_search.validate()

    # -----------------------------------------------------------------
    # (De)serialization
    # -----------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["discretization"] = self.discretization.name
        d["integrator"] = self.integrator.name
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GNMSSettings":
        data = dict(data)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown settings keys: {unknown}")

        try:
            if "discretization" in data and not isinstance(data["discretization"], Discretization):
                data["discretization"] = Discretization[str(data["discretization"]).upper()]
            if "integrator" in data and not isinstance(data["integrator"], IntegratorType):
                data["integrator"] = IntegratorType[str(data["integrator"]).upper()]
        except KeyError as e:
            raise ConfigurationError(f"unknown enum value {e}") from e

        ls = data.get("line_search")
        if isinstance(ls, dict):
            data["line_search"] = LineSearchSettings(**ls)
        return cls(**data)


def load_settings(path: Union[str, Path]) -> GNMSSettings:
    """Read settings from a JSON file (keys as in `GNMSSettings.to_dict`)."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    settings = GNMSSettings.from_dict(data)
    settings.validate()
    return settings
