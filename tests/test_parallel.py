# -*- coding: utf-8 -*-
"""Execution manager and thread-count equivalence of the solver."""

import threading

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gnms import GNMS, simulate_policy
from gnms.parallel import ParallelExecutionManager, partition_steps
from gnms.systems import make_cartpole_swingup, make_damped_pendulum


class TestPartition:
    @pytest.mark.parametrize("n_steps, n_chunks", [(10, 4), (300, 4), (3, 8), (7, 1)])
    def test_contiguous_cover(self, n_steps, n_chunks):
        chunks = partition_steps(n_steps, n_chunks)
        assert len(chunks) == min(n_steps, n_chunks)
        assert [k for c in chunks for k in c] == list(range(n_steps))
        assert all(len(c) > 0 for c in chunks)


class TestManager:
    def test_workers_own_clones(self, spring_problem):
        with ParallelExecutionManager(3, spring_problem.dynamics, spring_problem.cost,
                                      spring_problem.linearization) as mgr:
            dyn = {id(c.dynamics) for c in mgr.contexts}
            cost = {id(c.cost) for c in mgr.contexts}
            assert len(dyn) == 3 and len(cost) == 3
            assert id(spring_problem.dynamics) not in dyn

    def test_map_steps_keeps_order(self, spring_problem):
        seen = {}
        lock = threading.Lock()

        def fn(ctx, k):
            with lock:
                seen[k] = ctx.index
            return k * k

        with ParallelExecutionManager(4, spring_problem.dynamics, spring_problem.cost) as mgr:
            out = mgr.map_steps(fn, 37)
            segments = partition_steps(37, mgr.thread_count)

        assert out == [k * k for k in range(37)]
        for i, seg in enumerate(segments):
            assert all(seen[k] == i for k in seg)

    def test_map_steps_raises_earliest_error(self, spring_problem):
        def fn(ctx, k):
            if k in (5, 30):
                raise ValueError(f"bad step {k}")
            return k

        with ParallelExecutionManager(4, spring_problem.dynamics, spring_problem.cost) as mgr:
            with pytest.raises(ValueError, match="bad step 5"):
                mgr.map_steps(fn, 40)

    def test_chain_segments_hands_over_state(self, spring_problem):
        def fn(ctx, seg, x_start):
            return x_start + len(seg)

        with ParallelExecutionManager(4, spring_problem.dynamics, spring_problem.cost) as mgr:
            out = mgr.chain_segments(fn, np.zeros(1), 23, terminal_state=lambda r: r)

        assert_allclose(out[-1], [23.0])
        assert len(out) == 4


class TestThreadEquivalence:
    def solve(self, problem, settings, guess, threads):
        settings = settings.copy()
        settings.thread_count = threads
        with GNMS(problem, settings) as solver:
            solver.set_initial_guess(guess(problem, solver.n_steps))
            while solver.run_iteration():
                pass
            return solver.get_solution(), solver.get_state_trajectory(), solver.get_cost_history()

    def test_one_vs_four_threads(self, spring_problem, gnms_settings, guess):
        pol_1, X_1, J_1 = self.solve(spring_problem, gnms_settings, guess, 1)
        pol_4, X_4, J_4 = self.solve(spring_problem, gnms_settings, guess, 4)

        assert_allclose(X_1, X_4, atol=1e-9)
        assert_allclose(J_1, J_4, rtol=1e-12)

        n_sim = int(round(spring_problem.horizon / gnms_settings.dt_sim))
        sims = [
            simulate_policy(spring_problem.dynamics, pol, spring_problem.initial_state, n_sim,
                            gnms_settings.dt_sim)
            for pol in (pol_1, pol_4)
        ]
        assert np.linalg.norm(sims[0][-1] - sims[1][-1]) < 0.3
        # the returned policy reproduces the optimized trajectory
        assert_allclose(sims[0][-1], X_1[-1], atol=1e-6)

    @pytest.mark.parametrize("make_problem", [make_damped_pendulum, make_cartpole_swingup])
    @pytest.mark.parametrize("line_search", [True, False])
    def test_nonlinear_one_vs_four_threads(self, gnms_settings, guess, make_problem, line_search):
        problem = make_problem()
        gnms_settings.line_search.active = line_search

        runs = []
        for threads in (1, 4):
            settings = gnms_settings.copy()
            settings.thread_count = threads
            with GNMS(problem, settings) as solver:
                solver.set_initial_guess(guess(problem, solver.n_steps))
                accepted = []
                for _ in range(8):
                    accepted.append(solver.run_iteration())
                    if not accepted[-1]:
                        break
                A, B = solver.retrieve_last_linearized_model()
                runs.append((accepted, solver.get_state_trajectory(), solver.get_control_trajectory(),
                             solver.get_cost_history(), A, B, solver.get_state()))

        (acc_1, X_1, U_1, J_1, A_1, B_1, s_1), (acc_4, X_4, U_4, J_4, A_4, B_4, s_4) = runs
        assert acc_1 == acc_4
        assert s_1 == s_4
        assert_allclose(X_1, X_4, rtol=0.0, atol=1e-12)
        assert_allclose(U_1, U_4, rtol=0.0, atol=1e-12)
        assert_allclose(A_1, A_4, rtol=0.0, atol=1e-12)
        assert_allclose(B_1, B_4, rtol=0.0, atol=1e-12)
        assert len(J_1) == len(J_4)
        assert_allclose(J_1, J_4, rtol=1e-12)
