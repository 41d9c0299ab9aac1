# -*- coding: utf-8 -*-
import numpy as np
import pytest

from gnms import GNMSSettings, OpenLoopPolicy
from gnms.systems import make_spring_mass


def zero_guess(problem, n_steps):
    U0 = np.zeros((n_steps, problem.control_dim))
    X0 = np.tile(problem.initial_state, (n_steps + 1, 1))
    return OpenLoopPolicy(U0, X0)


@pytest.fixture
def spring_problem():
    """Point mass on a spring, pushed from rest towards p = 20 (tf = 3 s)."""
    return make_spring_mass(horizon=3.0, target_position=20.0, R=100.0)


@pytest.fixture
def gnms_settings():
    settings = GNMSSettings()
    settings.epsilon = 0.0
    settings.max_iterations = 50
    settings.record_smallest_eigenvalue = True
    settings.min_cost_improvement = 1e-6
    settings.dt = 0.01
    settings.dt_sim = 0.01
    return settings


@pytest.fixture
def guess():
    return zero_guess
