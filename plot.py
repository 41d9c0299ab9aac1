#!/usr/bin/env python3
"""Plots for run_suite.py output.

  - summary figure: runtime ratio vs single thread, cost ratio vs best
  - boxplots per case: iterations, runtime
  - per case: optimized trajectory and cost history (trial 0, *.npz)
"""
import os
import glob
import argparse
import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


# -----------------------------
# Utilities
# -----------------------------
def _ensure_dir(d):
    os.makedirs(d, exist_ok=True)
    return d

def _finite(series):
    s = pd.to_numeric(series, errors="coerce")
    return s[np.isfinite(s)]

def _solver_display_name(s):
    # "forward_euler/t4" -> "FE t4"
    disc, _, threads = str(s).partition("/")
    short = {"forward_euler": "FE", "backward_euler": "BE", "tustin": "Tustin"}.get(disc, disc)
    return f"{short} {threads}".strip()

def _case_display_name(c):
    return str(c).replace("_", " ")

def _order_from_list(all_items, preferred):
    out = [x for x in preferred if x in all_items]
    out += [x for x in all_items if x not in out]
    return out

def _filter_success_only(df):
    if "success" not in df.columns:
        return df
    return df[df["success"] == True].copy()


# -----------------------------
# Plot primitives
# -----------------------------
def boxplot_groups(ax, data_by_group, tick_labels, ylabel=None, ylog=False, title=None):
    ax.boxplot(
        data_by_group,
        tick_labels=tick_labels,   # Matplotlib 3.9+
        showfliers=False,
        widths=0.6,
    )
    if ylabel:
        ax.set_ylabel(ylabel)
    if title:
        ax.set_title(title)
    ax.grid(True, axis="y", alpha=0.25)
    if ylog:
        ax.set_yscale("log")

def savefig(fig, path, dpi=220):
    fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    print("Saved:", path)


# -----------------------------
# Summary figures
# -----------------------------
def _median_iqr(df, cases_order, solvers_order, metric):
    rows = []
    for c in cases_order:
        for s in solvers_order:
            vals = _finite(df[(df["case"] == c) & (df["solver"] == s)][metric])
            if len(vals) == 0:
                rows.append((c, s, np.nan, np.nan, np.nan))
                continue
            q1, med, q3 = np.percentile(vals, [25, 50, 75])
            rows.append((c, s, med, q1, q3))
    return pd.DataFrame(rows, columns=["case", "solver", "med", "q1", "q3"])

def _summary(df_succ, cases_order, solvers_order, outdir):
    """
    Two panels, each point = median, whisker = IQR [25%, 75%]:
      (a) runtime relative to the single-threaded run
      (b) cost relative to the best cost of the trial
    """
    panels = [
        ("time_ratio_base", "time / single thread", "(a) Runtime", True),
        ("cost_ratio_best", "J / best", "(b) Cost", False),
    ]
    fig, axes = plt.subplots(1, 2, figsize=(11.5, 4.2))
    x = np.arange(len(cases_order))
    offsets = np.linspace(-0.25, 0.25, len(solvers_order))

    for ax, (metric, ylabel, title, ylog) in zip(axes, panels):
        st = _median_iqr(df_succ, cases_order, solvers_order, metric)
        for i, s in enumerate(solvers_order):
            sub = st[st["solver"] == s].set_index("case")
            y = np.array([sub.loc[c, "med"] for c in cases_order], float)
            q1 = np.array([sub.loc[c, "q1"] for c in cases_order], float)
            q3 = np.array([sub.loc[c, "q3"] for c in cases_order], float)
            ax.errorbar(x + offsets[i], y, yerr=np.vstack([y - q1, q3 - y]),
                        fmt="o", capsize=4, label=_solver_display_name(s))
        ax.axhline(1.0, linewidth=1.0, alpha=0.4)
        if ylog:
            ax.set_yscale("log")
        ax.set_xticks(x)
        ax.set_xticklabels([_case_display_name(c) for c in cases_order])
        ax.set_ylabel(ylabel)
        ax.set_title(title)
        ax.grid(True, axis="y", alpha=0.25)

    handles, labels = axes[0].get_legend_handles_labels()
    fig.legend(handles, labels, loc="upper center", ncol=min(len(labels), 6), frameon=False,
               bbox_to_anchor=(0.5, 1.08))
    out = os.path.join(outdir, "summary.png")
    savefig(fig, out)
    return out

def _boxplot_by_case(df_succ, metric, ylabel, title, outpath, cases_order, solvers_order, ylog=False):
    n = len(cases_order)
    fig, axes = plt.subplots(1, n, figsize=(4.5*n, 3.4), sharey=True)
    if n == 1:
        axes = [axes]

    for ax, c in zip(axes, cases_order):
        sub = df_succ[df_succ["case"] == c]
        data, ticks = [], []
        for s in solvers_order:
            data.append(_finite(sub[sub["solver"] == s][metric]).values)
            ticks.append(_solver_display_name(s))
        boxplot_groups(ax, data, ticks, ylog=ylog, title=_case_display_name(c))
        ax.tick_params(axis="x", rotation=45)

    axes[0].set_ylabel(ylabel)
    fig.suptitle(title, y=1.03)
    savefig(fig, outpath)


# -----------------------------
# Trajectories
# -----------------------------
def _plot_trajectory(npz_path, outpath):
    data = np.load(npz_path)
    X, U, J_hist, dt = data["X"], data["U"], data["J_hist"], float(data["dt"])
    t_x = dt * np.arange(X.shape[0])
    t_u = dt * np.arange(U.shape[0])

    fig, axes = plt.subplots(1, 3, figsize=(13.0, 3.4))
    for i in range(X.shape[1]):
        axes[0].plot(t_x, X[:, i], label=f"x{i}")
    axes[0].set_xlabel("t [s]")
    axes[0].set_title("states")
    axes[0].legend(frameon=False)

    for j in range(U.shape[1]):
        axes[1].step(t_u, U[:, j], where="post", label=f"u{j}")
    axes[1].set_xlabel("t [s]")
    axes[1].set_title("controls")

    axes[2].semilogy(np.arange(len(J_hist)), J_hist, "o-")
    axes[2].set_xlabel("iteration")
    axes[2].set_title("cost")
    for ax in axes:
        ax.grid(True, alpha=0.25)

    savefig(fig, outpath)


# -----------------------------
# Main
# -----------------------------
def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--csv", type=str, default=None,
                        help="Path to summary_all.csv. If omitted, uses <outdir>/summary_all.csv")
    parser.add_argument("--outdir", type=str, default="gnms_results",
                        help="Output directory of run_suite.py. Plots saved to <outdir>/plots/")
    parser.add_argument("--cases", type=str, default="",
                        help="Comma-separated cases. Default: all.")
    args = parser.parse_args()

    outdir = os.path.abspath(args.outdir)
    plots_dir = _ensure_dir(os.path.join(outdir, "plots"))

    csv_path = args.csv if args.csv is not None else os.path.join(outdir, "summary_all.csv")
    csv_path = os.path.abspath(csv_path)
    if not os.path.exists(csv_path):
        raise FileNotFoundError(f"Cannot find CSV: {csv_path}")

    df = pd.read_csv(csv_path)

    need = {"case", "solver", "J_star", "total_time", "n_iter"}
    missing = sorted(list(need - set(df.columns)))
    if missing:
        raise ValueError(f"CSV missing columns: {missing}")

    cases = [c.strip() for c in args.cases.split(",") if c.strip()]
    if cases:
        df = df[df["case"].isin(cases)].copy()

    cases_order = sorted(df["case"].unique().tolist())
    solvers_order = _order_from_list(sorted(df["solver"].astype(str).unique().tolist()), [])

    df_succ = _filter_success_only(df)

    _summary(df_succ, cases_order, solvers_order, plots_dir)
    _boxplot_by_case(df_succ, "n_iter", "iterations", "GNMS iterations (converged only)",
                     os.path.join(plots_dir, "box_iterations.png"), cases_order, solvers_order)
    _boxplot_by_case(df_succ, "total_time", "time [s]", "Runtime (converged only)",
                     os.path.join(plots_dir, "box_runtime.png"), cases_order, solvers_order, ylog=True)

    for c in cases_order:
        for npz in sorted(glob.glob(os.path.join(outdir, c, "trajectory_*.npz"))):
            name = os.path.splitext(os.path.basename(npz))[0]
            _plot_trajectory(npz, os.path.join(plots_dir, f"{c}_{name}.png"))

    print("\nDone. Plots saved in:", plots_dir)


if __name__ == "__main__":
    main()
