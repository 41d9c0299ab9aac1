# -*- coding: utf-8 -*-
"""Benchmark runner (per-case summaries + tqdm progress).

Runs a fixed number of randomized trials per case (trial 0 uses the nominal
initial state, the others perturb it) for every combination of

  - discretization  FORWARD_EULER / BACKWARD_EULER / TUSTIN
  - thread count    e.g. 1,4

Outputs:
  <outdir>/
    summary_all.csv          # all cases concatenated
    summary_agg.csv          # aggregated per (case, solver)
    <CaseName>/summary_all.csv
    <CaseName>/summary_agg.csv
    <CaseName>/trajectory_<solver>.npz   # trial 0 only (X, U, cost history)

Usage (from this folder):
  python run_suite.py
  python run_suite.py --trials 5 --threads 1,4 --cases spring_mass --outdir gnms_results_test
  python run_suite.py --settings my_settings.json
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import time
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from gnms import (
    GNMS,
    Discretization,
    GNMSSettings,
    OpenLoopPolicy,
    PackageLogger,
    SolverState,
    get_package_logger,
    load_settings,
)
from gnms.problem import OptConProblem
from gnms.systems import CASES, make_case

logger = get_package_logger("gnms.run_suite")


# -----------------------------------------------------------------------------
# Trial sampling
# -----------------------------------------------------------------------------

def _rng(seed: int) -> np.random.Generator:
    return np.random.default_rng(int(seed))


def sample_x(base: np.ndarray, sigma, rng: np.random.Generator) -> np.ndarray:
    base = np.asarray(base, dtype=float).reshape(-1)
    sigma = np.asarray(sigma, dtype=float).reshape(-1)
    if sigma.size == 1:
        sigma = np.full_like(base, float(sigma))
    return base + sigma * rng.standard_normal(base.shape)


SIGMA_X0: Dict[str, np.ndarray] = {
    "spring_mass": np.array([0.5, 0.5]),
    "damped_pendulum": np.array([0.1, 0.1]),
    "cartpole_swingup": np.array([0.05, 0.0, 0.05, 0.0]),
}


# -----------------------------------------------------------------------------
# Single run
# -----------------------------------------------------------------------------

def zero_guess(problem: OptConProblem, n_steps: int) -> OpenLoopPolicy:
    U0 = np.zeros((n_steps, problem.control_dim))
    X0 = np.tile(problem.initial_state, (n_steps + 1, 1))
    return OpenLoopPolicy(U0, X0)


def run_one(problem: OptConProblem, settings: GNMSSettings) -> Tuple[Dict, GNMS]:
    solver = GNMS(problem, settings)
    t0 = time.perf_counter()
    solver.set_initial_guess(zero_guess(problem, solver.n_steps))
    res = solver.solve()
    t1 = time.perf_counter()

    X = solver.get_state_trajectory()
    x_final = getattr(problem.cost, "x_final", None)
    if x_final is not None:
        final_err = float(np.linalg.norm(X[-1] - x_final))
    else:
        final_err = float("nan")

    row = {
        "status": res.status.name,
        "reason": res.reason,
        "n_iter": int(res.iterations),
        "J_star": float(solver.get_cost()),
        "J_init": float(res.cost_history[0]),
        "final_err": final_err,
        "total_time": float(t1 - t0),
        **{f"time_{k}": v for k, v in solver.get_timers().items()},
    }
    return row, solver


def run_case(
    case_name: str,
    *,
    outdir: str,
    trials: int,
    seed: int,
    base_settings: GNMSSettings,
    discretizations: List[Discretization],
    threads: List[int],
) -> pd.DataFrame:
    base_problem = make_case(case_name)

    case_dir = os.path.join(outdir, case_name)
    os.makedirs(case_dir, exist_ok=True)

    rng = _rng(seed + sum(map(ord, case_name)) % 10_000)
    sigma = SIGMA_X0.get(case_name, 0.0)

    rows = []
    n_trials = int(trials)

    with logger.tqdm(range(n_trials), desc=f"[{case_name}] trials", leave=False) as p:
        for trial in p:
            if trial == 0:
                problem = base_problem
            else:
                problem = dataclasses.replace(
                    base_problem, initial_state=sample_x(base_problem.initial_state, sigma, rng)
                )

            for disc in discretizations:
                for n_threads in threads:
                    solver_name = f"{disc.name.lower()}/t{n_threads}"
                    settings = base_settings.copy()
                    settings.discretization = disc
                    settings.thread_count = int(n_threads)

                    solver_error = None
                    solver = None
                    t0 = time.perf_counter()
                    try:
                        row, solver = run_one(problem, settings)
                    except Exception as e:
                        logger.warning("[%s] trial %d, %s crashed: %r", case_name, trial, solver_name, e)
                        row = {
                            "status": "CRASH",
                            "reason": "",
                            "n_iter": 0,
                            "J_star": float("nan"),
                            "J_init": float("nan"),
                            "final_err": float("nan"),
                            "total_time": float(time.perf_counter() - t0),
                        }
                        solver_error = repr(e)

                    row.update({
                        "case": case_name,
                        "trial": int(trial),
                        "solver": solver_name,
                        "discretization": disc.name,
                        "threads": int(n_threads),
                        "success": row["status"] == SolverState.CONVERGED.name,
                        "solver_error": solver_error,
                    })
                    rows.append(row)

                    if solver is not None:
                        if trial == 0:
                            np.savez(
                                os.path.join(case_dir, f"trajectory_{solver_name.replace('/', '_')}.npz"),
                                X=solver.get_state_trajectory(),
                                U=solver.get_control_trajectory(),
                                J_hist=np.asarray(solver.get_cost_history()),
                                dt=settings.dt,
                            )
                        solver.close()

                    p.set_postfix(solver=solver_name, it=row["n_iter"], J=f"{row['J_star']:.3g}")

    df = pd.DataFrame(rows)

    # enrich: best_J per (case,trial)
    df["best_J"] = df.groupby(["case", "trial"])["J_star"].transform("min")
    df["cost_ratio_best"] = df["J_star"] / df["best_J"]

    # runtime ratios relative to the single-threaded run of the same discretization
    base_time = (
        df[df["threads"] == min(threads)][["case", "trial", "discretization", "total_time"]]
        .rename(columns={"total_time": "time_base"})
    )
    df = df.merge(base_time, on=["case", "trial", "discretization"], how="left")
    df["time_ratio_base"] = df["total_time"] / df["time_base"]

    df.to_csv(os.path.join(case_dir, "summary_all.csv"), index=False)
    aggregate(df).to_csv(os.path.join(case_dir, "summary_agg.csv"), index=False)
    return df


def aggregate(df: pd.DataFrame) -> pd.DataFrame:
    return (
        df.groupby(["case", "solver"])
          .agg(
              n=("trial", "count"),
              success_rate=("success", "mean"),
              iter_median=("n_iter", "median"),
              J_median=("J_star", "median"),
              err_median=("final_err", "median"),
              time_median=("total_time", "median"),
              ratio_cost_median=("cost_ratio_best", "median"),
              ratio_time_median=("time_ratio_base", "median"),
          )
          .reset_index()
    )


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", type=str, default="gnms_results", help="output directory")
    ap.add_argument("--trials", type=int, default=10, help="trials per case (same for all cases)")
    ap.add_argument("--seed", type=int, default=0, help="random seed")
    ap.add_argument("--settings", type=str, default="", help="JSON file with GNMSSettings overrides")
    ap.add_argument("--max-iter", type=int, default=None, help="override max GNMS iterations per run")
    ap.add_argument("--threads", type=str, default="1,4", help="comma-separated thread counts")
    ap.add_argument("--discretizations", type=str, default="forward_euler,backward_euler,tustin",
                    help="comma-separated subset")
    ap.add_argument("--cases", type=str, default="", help="comma-separated case names (default: all)")
    ap.add_argument("--verbose", action="store_true", help="log every accepted iteration")

    args = ap.parse_args()
    PackageLogger.setup(level=logging.DEBUG if args.verbose else logging.INFO)

    outdir = args.outdir
    os.makedirs(outdir, exist_ok=True)

    settings = load_settings(args.settings) if args.settings else GNMSSettings()
    if args.max_iter is not None:
        settings.max_iterations = int(args.max_iter)
    settings.print_summary = settings.print_summary or bool(args.verbose)

    threads = [int(t) for t in args.threads.split(",") if t.strip()]
    try:
        discretizations = [Discretization[d.strip().upper()] for d in args.discretizations.split(",") if d.strip()]
    except KeyError as e:
        raise ValueError(f"Unknown discretization: {e}. Options: {[d.name for d in Discretization]}")

    if args.cases.strip():
        wanted = set([c.strip() for c in args.cases.split(",") if c.strip()])
        cases = [c for c in CASES if c in wanted]
        if not cases:
            raise ValueError(f"No matching cases in {wanted}. Available: {list(CASES)}")
    else:
        cases = list(CASES)

    all_rows = []
    with logger.tqdm(cases, desc="Cases") as outer:
        for case_name in outer:
            all_rows.append(run_case(
                case_name,
                outdir=outdir,
                trials=args.trials,
                seed=args.seed,
                base_settings=settings,
                discretizations=discretizations,
                threads=threads,
            ))

    df_all = pd.concat(all_rows, ignore_index=True)
    df_all.to_csv(os.path.join(outdir, "summary_all.csv"), index=False)
    aggregate(df_all).to_csv(os.path.join(outdir, "summary_agg.csv"), index=False)

    logger.info("Saved: %s", os.path.join(outdir, "summary_all.csv"))
    logger.info("Saved: %s", os.path.join(outdir, "summary_agg.csv"))
    for case_name in cases:
        logger.info("Saved: %s", os.path.join(outdir, case_name, "summary_all.csv"))


if __name__ == "__main__":
    main()
