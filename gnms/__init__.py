# -*- coding: utf-8 -*-
"""Gauss-Newton multiple shooting (GNMS / iLQG-type) trajectory optimizer."""

from .costs import CostFunctionQuadraticSimple
from .exceptions import (
    BackwardPassFailure,
    ConfigurationError,
    GNMSError,
    LinearizationFailure,
    RolloutDivergence,
)
from .integrators import simulate_policy
from .package_logger import PackageLogger, get_package_logger
from .policy import FeedbackPolicy, OpenLoopPolicy, Policy, to_feedback
from .problem import ControlledSystem, CostFunction, LinearSystem, OptConProblem
from .settings import (
    Discretization,
    GNMSSettings,
    IntegratorType,
    LineSearchSettings,
    load_settings,
)
from .solver import GNMS, SolveResult, SolverState

__all__ = [
    "GNMS",
    "SolveResult",
    "SolverState",
    "GNMSSettings",
    "LineSearchSettings",
    "Discretization",
    "IntegratorType",
    "load_settings",
    "OptConProblem",
    "ControlledSystem",
    "LinearSystem",
    "CostFunction",
    "CostFunctionQuadraticSimple",
    "OpenLoopPolicy",
    "FeedbackPolicy",
    "Policy",
    "to_feedback",
    "simulate_policy",
    "GNMSError",
    "ConfigurationError",
    "LinearizationFailure",
    "BackwardPassFailure",
    "RolloutDivergence",
    "PackageLogger",
    "get_package_logger",
]
