# -*- coding: utf-8 -*-
"""Benchmark systems (continuous time) for the GNMS experiments.

Each `make_*` factory returns an `OptConProblem` ready to be handed to the
solver. The dynamics are continuous-time (x_dot = f(x, t, u)); integration
and discretization are the solver's business.

- spring point mass   linear, analytic Jacobians
- damped pendulum     nonlinear, analytic Jacobians
- cart-pole           nonlinear, finite-difference Jacobians
"""

from __future__ import annotations

import math
from typing import Callable, Dict

import numpy as np

from .costs import CostFunctionQuadraticSimple
from .problem import ControlledSystem, LinearSystem, OptConProblem


# =============================================================================
# 1) Spring-loaded point mass
# =============================================================================

class SpringMass(ControlledSystem):
    """x = [p, v], u = [force];  p_dot = v,  v_dot = u - k p."""

    def __init__(self, stiffness: float = 10.0):
        super().__init__(state_dim=2, control_dim=1)
        self.stiffness = float(stiffness)

    def compute_derivative(self, state, time, control):
        p, v = float(state[0]), float(state[1])
        return np.array([v, float(control[0]) - self.stiffness * p], dtype=float)


class SpringMassLinearization(LinearSystem):
    def __init__(self, stiffness: float = 10.0):
        self.stiffness = float(stiffness)

    def derivative_state(self, x, u, t=0.0):
        return np.array([[0.0, 1.0], [-self.stiffness, 0.0]], dtype=float)

    def derivative_control(self, x, u, t=0.0):
        return np.array([[0.0], [1.0]], dtype=float)


def make_spring_mass(
    horizon: float = 3.0,
    target_position: float = 20.0,
    R: float = 100.0,
    stiffness: float = 10.0,
    analytic: bool = True,
) -> OptConProblem:
    """Drive the mass from rest at 0 towards p = target_position."""
    cost = CostFunctionQuadraticSimple(
        Q=np.diag([0.0, 1.0]),
        R=R,
        x_nominal=np.zeros(2),
        u_nominal=np.zeros(1),
        x_final=np.array([target_position, 0.0]),
        Q_final=np.diag([10.0, 10.0]),
    )
    return OptConProblem(
        horizon=horizon,
        initial_state=np.zeros(2),
        dynamics=SpringMass(stiffness),
        cost=cost,
        linearization=SpringMassLinearization(stiffness) if analytic else None,
    )


# =============================================================================
# 2) Damped pendulum
# =============================================================================

class DampedPendulum(ControlledSystem):
    """x = [theta, omega] (theta = 0 hanging down), u = [torque].

    omega_dot = -(g/l) sin(theta) - b omega + u / (m l^2)
    """

    def __init__(self, g: float = 9.81, length: float = 1.0, mass: float = 1.0, damping: float = 0.1):
        super().__init__(state_dim=2, control_dim=1)
        self.g = float(g)
        self.length = float(length)
        self.mass = float(mass)
        self.damping = float(damping)

    def compute_derivative(self, state, time, control):
        th, om = float(state[0]), float(state[1])
        inertia = self.mass * self.length ** 2
        om_dot = -(self.g / self.length) * math.sin(th) - self.damping * om + float(control[0]) / inertia
        return np.array([om, om_dot], dtype=float)


class DampedPendulumLinearization(LinearSystem):
    def __init__(self, pendulum: DampedPendulum):
        self.g = pendulum.g
        self.length = pendulum.length
        self.mass = pendulum.mass
        self.damping = pendulum.damping

    def derivative_state(self, x, u, t=0.0):
        th = float(x[0])
        return np.array([
            [0.0, 1.0],
            [-(self.g / self.length) * math.cos(th), -self.damping],
        ], dtype=float)

    def derivative_control(self, x, u, t=0.0):
        return np.array([[0.0], [1.0 / (self.mass * self.length ** 2)]], dtype=float)


def make_damped_pendulum(horizon: float = 4.0, target_angle: float = math.pi, analytic: bool = True) -> OptConProblem:
    """Swing the pendulum from rest (down) towards target_angle."""
    pendulum = DampedPendulum()
    cost = CostFunctionQuadraticSimple(
        Q=np.diag([0.1, 0.01]),
        R=0.05,
        x_nominal=np.array([target_angle, 0.0]),
        u_nominal=np.zeros(1),
        x_final=np.array([target_angle, 0.0]),
        Q_final=np.diag([200.0, 20.0]),
    )
    return OptConProblem(
        horizon=horizon,
        initial_state=np.zeros(2),
        dynamics=pendulum,
        cost=cost,
        linearization=DampedPendulumLinearization(pendulum) if analytic else None,
    )


# =============================================================================
# 3) Cart-pole (finite-difference Jacobians)
# =============================================================================

class CartPole(ControlledSystem):
    """State: [cart_pos, cart_vel, theta, theta_dot], theta = 0 *down*. Control: [force]."""

    def __init__(self, m_cart: float = 1.0, m_pole: float = 0.1, length: float = 0.5, g: float = 9.81):
        super().__init__(state_dim=4, control_dim=1)
        self.m_cart = float(m_cart)
        self.m_pole = float(m_pole)
        self.length = float(length)  # half-length
        self.g = float(g)

    def compute_derivative(self, state, time, control):
        _, x_dot, th, th_dot = (float(v) for v in state)
        force = float(control[0])

        total_mass = self.m_cart + self.m_pole
        polemass_length = self.m_pole * self.length

        # shift angle so internal dynamics match standard form (theta=0 upright)
        th_u = th - math.pi
        costh = math.cos(th_u)
        sinth = math.sin(th_u)

        temp = (force + polemass_length * th_dot * th_dot * sinth) / total_mass
        denom = self.length * (4.0 / 3.0 - self.m_pole * costh * costh / total_mass)

        th_acc = (self.g * sinth - costh * temp) / denom
        x_acc = temp - polemass_length * th_acc * costh / total_mass
        return np.array([x_dot, x_acc, th_dot, th_acc], dtype=float)


def make_cartpole_swingup(horizon: float = 3.0) -> OptConProblem:
    cost = CostFunctionQuadraticSimple(
        Q=np.diag([0.01, 0.2, 0.5, 0.2]),
        R=0.02,
        x_nominal=np.array([0.0, 0.0, math.pi, 0.0]),
        u_nominal=np.zeros(1),
        x_final=np.array([0.0, 0.0, math.pi, 0.0]),
        Q_final=np.diag([5.0, 5.0, 800.0, 40.0]),
    )
    return OptConProblem(
        horizon=horizon,
        initial_state=np.zeros(4),
        dynamics=CartPole(),
        cost=cost,
    )


# =============================================================================
# Registry
# =============================================================================

CASES: Dict[str, Callable[[], OptConProblem]] = {
    "spring_mass": make_spring_mass,
    "damped_pendulum": make_damped_pendulum,
    "cartpole_swingup": make_cartpole_swingup,
}


def make_case(name: str) -> OptConProblem:
    try:
        factory = CASES[name]
    except KeyError:
        raise ValueError(f"unknown case {name!r}; available: {sorted(CASES)}")
    return factory()
