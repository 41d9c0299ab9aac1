# -*- coding: utf-8 -*-
"""GNMS iteration controller.

One iteration around the current nominal trajectory (X, U):

1. linearize the dynamics at every step          (parallel, barrier)
2. expand the cost to second order at every step (parallel, barrier)
3. backward pass -> feedforward k, feedback K    (sequential)
4. forward rollout + line search on alpha        (chained segments)

Numerical failures in 1-3 end the iteration with `False`, keep the nominal
trajectory and move the solver to FAILED. A line search that finds no
sufficient decrease also returns `False` but leaves the solver ITERATING.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .backward_pass import PolicyUpdate, backward_pass
from .containers import LinearizationArrays, QuadraticCostModel, Trajectory
from .cost_expansion import QuadraticCostExpander
from .exceptions import (
    BackwardPassFailure,
    ConfigurationError,
    GNMSError,
    LinearizationFailure,
    RolloutDivergence,
)
from .forward_pass import line_search, rollout
from .linearization import Linearizer
from .package_logger import get_package_logger
from .parallel import ParallelExecutionManager
from .policy import FeedbackPolicy, OpenLoopPolicy, Policy
from .problem import OptConProblem
from .settings import GNMSSettings

logger = get_package_logger(__name__)


class SolverState(enum.Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    ITERATING = "iterating"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass
class SolveResult:
    status: SolverState
    iterations: int
    cost_history: List[float] = field(default_factory=list)
    reason: str = ""

    @property
    def converged(self) -> bool:
        return self.status == SolverState.CONVERGED


# =============================================================================
# Solver
# =============================================================================

class GNMS:
    """Gauss-Newton multiple shooting solver.

    Usage::

        solver = GNMS(problem, settings)
        solver.set_initial_guess(OpenLoopPolicy(U0, X0))
        result = solver.solve()
        policy = solver.get_solution()
    """

    def __init__(self, problem: OptConProblem, settings: Optional[GNMSSettings] = None):
        if not isinstance(problem, OptConProblem):
            raise ConfigurationError("problem must be an OptConProblem")
        self.problem = problem
        self.settings: Optional[GNMSSettings] = None
        self.state = SolverState.UNCONFIGURED

        self._manager: Optional[ParallelExecutionManager] = None
        self._linearizer: Optional[Linearizer] = None
        self._expander: Optional[QuadraticCostExpander] = None
        self._N = 0

        self._lin: Optional[LinearizationArrays] = None
        self._cost_model: Optional[QuadraticCostModel] = None
        self._nominal: Optional[Trajectory] = None
        self._K: Optional[np.ndarray] = None
        self._has_linearization = False

        self._iterations = 0
        self._cost_history: List[float] = []
        self._smallest_eigenvalue: Optional[float] = None
        self._last_failure: Optional[GNMSError] = None
        self.timers: Dict[str, float] = {"linearize": 0.0, "expand": 0.0, "backward": 0.0, "forward": 0.0}

        if settings is not None:
            self.configure(settings)

    # -----------------------------------------------------------------
    # setup
    # -----------------------------------------------------------------

    def configure(self, settings: GNMSSettings) -> None:
        """Apply (a copy of) `settings`; reallocates buffers and the worker pool as needed."""
        settings = settings.copy()
        settings.validate()
        N = settings.number_of_steps(self.problem.horizon)
        n, m = self.problem.state_dim, self.problem.control_dim

        if self._manager is None or self._manager.thread_count != int(settings.thread_count):
            if self._manager is not None:
                self._manager.shutdown()
            self._manager = ParallelExecutionManager(
                settings.thread_count,
                self.problem.dynamics,
                self.problem.cost,
                self.problem.linearization,
            )

        if self._lin is None or not self._lin.matches(N, n, m):
            self._lin = LinearizationArrays.allocate(N, n, m)
            self._has_linearization = False
        if self._cost_model is None or not self._cost_model.matches(N, n, m):
            self._cost_model = QuadraticCostModel.allocate(N, n, m)

        self.settings = settings
        self._linearizer = Linearizer(settings)
        self._expander = QuadraticCostExpander(settings)

        if self._nominal is not None and self._nominal.n_steps != N:
            logger.warning(
                "number of steps changed (%d -> %d); dropping the nominal trajectory, "
                "a new initial guess is required", self._nominal.n_steps, N,
            )
            self._drop_nominal()
        elif self._nominal is not None:
            self._reroll_nominal(N, m)

        self._N = N
        self.state = SolverState.CONFIGURED if self._nominal is None else SolverState.ITERATING
        logger.debug("configured: N=%d, dt=%g, %s, threads=%d",
                     N, settings.dt, settings.discretization.name, settings.thread_count)

    def _reroll_nominal(self, N: int, m: int) -> None:
        """Simulate the current feedback policy again under the new settings.

        Keeps the stored states consistent with the stored controls under the
        current dt, dt_sim and integrator.
        """
        old, K = self._nominal, self._K

        def law(k: int, x: np.ndarray) -> np.ndarray:
            return old.controls[k] + K[k] @ (x - old.states[k])

        try:
            traj = rollout(self._manager, law, self.problem.initial_state, N, m, self.settings)
        except RolloutDivergence as e:
            logger.warning("re-simulating the nominal trajectory under the new settings diverged (%s); "
                           "dropping it, a new initial guess is required", e)
            self._drop_nominal()
            return

        self._nominal = traj
        if self._cost_history:
            self._cost_history[-1] = traj.cost

    def _drop_nominal(self):
        self._nominal = None
        self._K = None
        self._iterations = 0
        self._cost_history = []

    def _require_configured(self):
        if self.state == SolverState.UNCONFIGURED or self.settings is None:
            raise ConfigurationError("solver is not configured; call configure(settings) first")

    def _require_nominal(self):
        self._require_configured()
        if self._nominal is None:
            raise ConfigurationError("no nominal trajectory; call set_initial_guess(policy) first")

    def set_initial_guess(self, policy: Policy) -> None:
        """Roll out `policy` from the initial state and make it the nominal trajectory."""
        self._require_configured()
        N, n, m = self._N, self.problem.state_dim, self.problem.control_dim

        if isinstance(policy, OpenLoopPolicy):
            control_law = policy.control
            K = np.zeros((N, m, n))
        elif isinstance(policy, FeedbackPolicy):
            control_law = policy.control
            K = None
            if policy.feedback.shape[2:] == (n,):
                K = policy.feedback.copy()
        else:
            raise ConfigurationError(f"not a policy: {type(policy).__name__}")

        if policy.n_steps != N:
            raise ConfigurationError(f"initial guess has {policy.n_steps} controls, expected {N}")
        if policy.feedforward.shape[1] != m:
            raise ConfigurationError(
                f"initial guess has control dimension {policy.feedforward.shape[1]}, expected {m}"
            )
        if K is None:
            raise ConfigurationError(f"feedback gains have shape {policy.feedback.shape}, expected ({N}, {m}, {n})")

        # RolloutDivergence propagates to the caller
        traj = rollout(self._manager, control_law, self.problem.initial_state, N, m, self.settings)

        self._nominal = traj
        self._K = K
        self._iterations = 0
        self._cost_history = [traj.cost]
        self._smallest_eigenvalue = None
        self._last_failure = None
        self.state = SolverState.CONFIGURED
        logger.debug("initial guess set, cost=%.6g", traj.cost)

    # -----------------------------------------------------------------
    # iterations
    # -----------------------------------------------------------------

    def _compute_update(self) -> PolicyUpdate:
        X, U = self._nominal.states, self._nominal.controls

        t0 = time.perf_counter()
        self._linearizer.compute(self._manager, X, U, out=self._lin)
        self._has_linearization = True
        self.timers["linearize"] += time.perf_counter() - t0

        t1 = time.perf_counter()
        self._expander.compute(self._manager, X, U, out=self._cost_model)
        self.timers["expand"] += time.perf_counter() - t1

        t2 = time.perf_counter()
        update = backward_pass(self._lin, self._cost_model, self.settings)
        self.timers["backward"] += time.perf_counter() - t2
        return update

    def run_iteration(self) -> bool:
        """One GNMS iteration. True iff a strictly better trajectory was accepted."""
        self._require_nominal()
        self.state = SolverState.ITERATING
        self._iterations += 1

        try:
            update = self._compute_update()
        except (LinearizationFailure, BackwardPassFailure) as e:
            logger.warning("iteration %d failed: %s", self._iterations, e)
            self._last_failure = e
            self.state = SolverState.FAILED
            return False

        if update.smallest_eigenvalue is not None:
            self._smallest_eigenvalue = update.smallest_eigenvalue

        t3 = time.perf_counter()
        ls = line_search(self._manager, self._nominal, update, self.settings)
        self.timers["forward"] += time.perf_counter() - t3

        if not ls.accepted:
            logger.debug("iteration %d: no improvement after %d line-search attempt(s) (%d diverged)",
                         self._iterations, ls.attempts, ls.divergences)
            return False

        J_old = self._nominal.cost
        self._nominal = ls.trajectory
        self._K = update.feedback.copy()
        self._cost_history.append(self._nominal.cost)

        if self.settings.print_summary:
            logger.info("iter %3d  cost=%.6g  dJ=%.3g  alpha=%.4g",
                        self._iterations, self._nominal.cost, J_old - self._nominal.cost, ls.alpha)
        return True

    def solve(self) -> SolveResult:
        """Iterate until no improvement, a numerical failure, or max_iterations."""
        self._require_nominal()
        start = self._iterations
        improved = False

        for _ in range(int(self.settings.max_iterations)):
            improved = self.run_iteration()
            if not improved:
                break

        done = self._iterations - start
        if self.state == SolverState.FAILED:
            reason = f"numerical failure: {self._last_failure}"
        elif not improved:
            self.state = SolverState.CONVERGED
            reason = "no further improvement"
        else:
            self.state = SolverState.FAILED
            reason = f"max_iterations ({self.settings.max_iterations}) reached while still improving"

        logger.info("solve finished: %s after %d iteration(s), cost=%.6g (%s)",
                    self.state.name, done, self._nominal.cost, reason)
        return SolveResult(status=self.state, iterations=done,
                           cost_history=list(self._cost_history), reason=reason)

    # -----------------------------------------------------------------
    # accessors
    # -----------------------------------------------------------------

    def get_state_trajectory(self) -> np.ndarray:
        self._require_nominal()
        return self._nominal.states.copy()

    def get_control_trajectory(self) -> np.ndarray:
        self._require_nominal()
        return self._nominal.controls.copy()

    def retrieve_last_linearized_model(self) -> Tuple[np.ndarray, np.ndarray]:
        """Discrete-time (A, B) of the most recent successful linearization."""
        self._require_configured()
        if not self._has_linearization:
            raise ConfigurationError("no linearization available; run an iteration first")
        return self._lin.A.copy(), self._lin.B.copy()

    def get_solution(self) -> FeedbackPolicy:
        self._require_nominal()
        return FeedbackPolicy(
            feedforward=self._nominal.controls.copy(),
            feedback=self._K.copy(),
            dt=self.settings.dt,
            reference_states=self._nominal.states.copy(),
        )

    def get_cost(self) -> float:
        self._require_nominal()
        return float(self._nominal.cost)

    def get_cost_history(self) -> List[float]:
        return list(self._cost_history)

    def get_state(self) -> SolverState:
        return self.state

    def get_smallest_eigenvalue(self) -> Optional[float]:
        return self._smallest_eigenvalue

    def get_last_failure(self) -> Optional[GNMSError]:
        return self._last_failure

    def get_timers(self) -> Dict[str, float]:
        return dict(self.timers)

    @property
    def n_steps(self) -> int:
        return self._N

    # -----------------------------------------------------------------
    # lifecycle
    # -----------------------------------------------------------------

    def close(self) -> None:
        if self._manager is not None:
            self._manager.shutdown()
            self._manager = None
        self.state = SolverState.UNCONFIGURED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
