# -*- coding: utf-8 -*-
"""Quadratic cost, cost expansion, rollout and line search."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gnms import CostFunctionQuadraticSimple, GNMSSettings, RolloutDivergence
from gnms.backward_pass import PolicyUpdate
from gnms.containers import Trajectory
from gnms.cost_expansion import QuadraticCostExpander, trajectory_cost
from gnms.forward_pass import line_search, rollout
from gnms.parallel import ParallelExecutionManager


@pytest.fixture
def cost():
    return CostFunctionQuadraticSimple(
        Q=np.diag([0.0, 1.0]), R=100.0,
        x_nominal=np.zeros(2), u_nominal=np.zeros(1),
        x_final=np.array([20.0, 0.0]), Q_final=np.diag([10.0, 10.0]),
    )


class TestQuadraticCost:
    def test_values_and_derivatives(self, cost):
        x, u = np.array([1.0, 2.0]), np.array([0.5])
        assert_allclose(cost.value(x, u, 0.0), 0.5 * 4.0 + 0.5 * 100.0 * 0.25)
        assert_allclose(cost.gradient_state(x, u, 0.0), [0.0, 2.0])
        assert_allclose(cost.gradient_control(x, u, 0.0), [50.0])
        assert_allclose(cost.hessian_control(x, u, 0.0), [[100.0]])
        assert cost.hessian_control_state(x, u, 0.0).shape == (1, 2)
        assert_allclose(cost.terminal_value(np.zeros(2)), 0.5 * 10.0 * 400.0)
        assert_allclose(cost.terminal_gradient_state(np.zeros(2)), [-200.0, 0.0])

    def test_weight_shapes(self):
        c = CostFunctionQuadraticSimple(1.0, [2.0, 3.0], np.zeros(3), np.zeros(2), np.zeros(3), np.eye(3))
        assert_allclose(c.Q, np.eye(3))
        assert_allclose(c.R, np.diag([2.0, 3.0]))
        with pytest.raises(ValueError):
            CostFunctionQuadraticSimple(np.eye(2), 1.0, np.zeros(3), np.zeros(1), np.zeros(3), np.eye(3))


class TestExpansion:
    def test_running_terms_scaled_by_dt(self, spring_problem):
        settings = GNMSSettings(dt=0.1)
        N = 4
        X = np.arange(2.0 * (N + 1)).reshape(N + 1, 2)
        U = np.ones((N, 1))
        with ParallelExecutionManager(2, spring_problem.dynamics, spring_problem.cost) as mgr:
            cm = QuadraticCostExpander(settings).compute(mgr, X, U)

        c = spring_problem.cost
        for k in range(N):
            assert_allclose(cm.q[k], 0.1 * c.value(X[k], U[k], 0.1 * k))
            assert_allclose(cm.qx[k], 0.1 * c.gradient_state(X[k], U[k], 0.1 * k))
            assert_allclose(cm.ruu[k], [[10.0]])
            assert_allclose(cm.rux[k], np.zeros((1, 2)))
        assert_allclose(cm.q[N], c.terminal_value(X[N]))
        assert_allclose(cm.qxx[N], np.diag([10.0, 10.0]))
        assert_allclose(cm.q.sum(), trajectory_cost(c, X, U, 0.1))


def zero_update(N, m, n, k_value=0.0):
    return PolicyUpdate(feedforward=np.full((N, m), k_value), feedback=np.zeros((N, m, n)))


class TestRollout:
    def test_cost_matches_trajectory_cost(self, spring_problem):
        settings = GNMSSettings()
        N = 50
        U = np.linspace(0.0, 5.0, N).reshape(N, 1)
        with ParallelExecutionManager(3, spring_problem.dynamics, spring_problem.cost) as mgr:
            traj = rollout(mgr, lambda k, x: U[k], spring_problem.initial_state, N, 1, settings)

        assert traj.states.shape == (N + 1, 2)
        assert traj.controls.shape == (N, 1)
        assert_allclose(traj.states[0], spring_problem.initial_state)
        assert_allclose(traj.cost, trajectory_cost(spring_problem.cost, traj.states, traj.controls, settings.dt))

    def test_divergence_raises(self, spring_problem):
        settings = GNMSSettings()
        with ParallelExecutionManager(1, spring_problem.dynamics, spring_problem.cost) as mgr:
            with pytest.raises(RolloutDivergence):
                rollout(mgr, lambda k, x: np.array([1e10]), spring_problem.initial_state, 10, 1, settings)


class TestLineSearch:
    def nominal(self, problem, settings, N=30):
        with ParallelExecutionManager(1, problem.dynamics, problem.cost) as mgr:
            return rollout(mgr, lambda k, x: np.zeros(1), problem.initial_state, N, 1, settings)

    def test_zero_step_is_rejected(self, spring_problem):
        settings = GNMSSettings()
        nom = self.nominal(spring_problem, settings)
        with ParallelExecutionManager(1, spring_problem.dynamics, spring_problem.cost) as mgr:
            res = line_search(mgr, nom, zero_update(30, 1, 2), settings)
        assert not res.accepted
        assert res.attempts == settings.line_search.max_iterations

        settings.line_search.active = False
        with ParallelExecutionManager(1, spring_problem.dynamics, spring_problem.cost) as mgr:
            res = line_search(mgr, nom, zero_update(30, 1, 2), settings)
        assert res.attempts == 1
        assert res.tried == [1.0]

    def test_descent_step_is_accepted(self, spring_problem):
        # pushing towards the target lowers the terminal cost
        settings = GNMSSettings()
        nom = self.nominal(spring_problem, settings)
        with ParallelExecutionManager(1, spring_problem.dynamics, spring_problem.cost) as mgr:
            res = line_search(mgr, nom, zero_update(30, 1, 2, k_value=5.0), settings)
        assert res.accepted
        assert res.trajectory.cost < nom.cost
        assert_allclose(res.trajectory.controls, 5.0 * res.alpha)

    def test_diverging_candidates_count_as_rejections(self, spring_problem):
        settings = GNMSSettings()
        nom = self.nominal(spring_problem, settings)
        with ParallelExecutionManager(1, spring_problem.dynamics, spring_problem.cost) as mgr:
            res = line_search(mgr, nom, zero_update(30, 1, 2, k_value=1e12), settings)
        assert not res.accepted
        assert res.divergences == res.attempts == 10
        assert isinstance(nom, Trajectory)
