# -*- coding: utf-8 -*-
"""Thread-parallel execution of the per-step phases.

Work is split along the time axis into `thread_count` contiguous chunks
(shooting intervals). Every chunk always maps to the same worker slot, and
each slot owns private clones of the dynamics, the linearization provider and
the cost, so workers never share a capability instance.

Two patterns are supported:

- `map_steps`       independent per-step work (linearization, cost expansion);
                    results are returned in step order after every chunk joined.
- `chain_segments`  rollouts; segment i waits for the terminal state of
                    segment i-1 before it starts.

The arithmetic done for a given step does not depend on the partition, so the
result is the same for every thread count.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import numpy as np

from .package_logger import get_package_logger
from .problem import ControlledSystem, CostFunction, LinearSystem

logger = get_package_logger(__name__)


@dataclass
class WorkerContext:
    """Private capability instances of one worker slot."""

    index: int
    dynamics: ControlledSystem
    cost: CostFunction
    linearization: Optional[LinearSystem] = None


def partition_steps(n_steps: int, n_chunks: int) -> List[range]:
    """Split range(n_steps) into at most n_chunks contiguous, non-empty ranges."""
    n_steps = int(n_steps)
    n_chunks = max(1, min(int(n_chunks), n_steps))
    bounds = np.linspace(0, n_steps, n_chunks + 1).round().astype(int)
    return [range(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


class ParallelExecutionManager:
    """Solver-scoped worker pool; inline execution when thread_count == 1."""

    def __init__(
        self,
        thread_count: int,
        dynamics: ControlledSystem,
        cost: CostFunction,
        linearization: Optional[LinearSystem] = None,
    ):
        self.thread_count = max(1, int(thread_count))
        self.contexts = [
            WorkerContext(
                index=i,
                dynamics=dynamics.clone(),
                cost=cost.clone(),
                linearization=linearization.clone() if linearization is not None else None,
            )
            for i in range(self.thread_count)
        ]
        self._pool: Optional[ThreadPoolExecutor] = None
        if self.thread_count > 1:
            self._pool = ThreadPoolExecutor(max_workers=self.thread_count, thread_name_prefix="gnms")
        logger.debug("execution manager up: %d worker(s)", self.thread_count)

    # -----------------------------------------------------------------
    # lifecycle
    # -----------------------------------------------------------------

    def shutdown(self):
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    # -----------------------------------------------------------------
    # independent per-step work
    # -----------------------------------------------------------------

    def map_steps(self, fn: Callable[[WorkerContext, int], Any], n_steps: int) -> List[Any]:
        """Evaluate fn(ctx, k) for k in range(n_steps); results in step order.

        All chunks are joined before anything is returned or raised; when
        several chunks fail, the error of the earliest chunk is raised.
        """
        chunks = partition_steps(n_steps, self.thread_count)

        def run_chunk(ctx: WorkerContext, chunk: range) -> List[Any]:
            return [fn(ctx, k) for k in chunk]

        if self._pool is None or len(chunks) == 1:
            return run_chunk(self.contexts[0], range(int(n_steps)))

        futures = [self._pool.submit(run_chunk, self.contexts[i], chunk) for i, chunk in enumerate(chunks)]
        wait(futures)

        out: List[Any] = []
        for fut in futures:
            out.extend(fut.result())
        return out

    # -----------------------------------------------------------------
    # chained rollout segments
    # -----------------------------------------------------------------

    def chain_segments(
        self,
        fn: Callable[[WorkerContext, range, np.ndarray], Any],
        x0: np.ndarray,
        n_steps: int,
        terminal_state: Callable[[Any], np.ndarray],
    ) -> List[Any]:
        """Run fn(ctx, segment, x_start) for consecutive segments.

        `terminal_state(result)` extracts the state handed to the next segment.
        A failing segment makes every later segment fail with the same error.
        """
        segments = partition_steps(n_steps, self.thread_count)

        if self._pool is None or len(segments) == 1:
            results = []
            x_start = np.asarray(x0, dtype=float)
            for i, seg in enumerate(segments):
                res = fn(self.contexts[i], seg, x_start)
                results.append(res)
                x_start = terminal_state(res)
            return results

        def run_segment(ctx: WorkerContext, seg: range, prev: Optional[Future]):
            x_start = np.asarray(x0, dtype=float) if prev is None else terminal_state(prev.result())
            return fn(ctx, seg, x_start)

        # FIFO submission: a segment only ever waits on an earlier one
        futures: List[Future] = []
        prev: Optional[Future] = None
        for i, seg in enumerate(segments):
            prev = self._pool.submit(run_segment, self.contexts[i], seg, prev)
            futures.append(prev)
        wait(futures)

        return [fut.result() for fut in futures]
