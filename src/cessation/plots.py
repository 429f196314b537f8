from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from cessation.metrics import CalibrationCurves  # noqa: E402


def _save(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)


def plot_correlation_heatmap(corr: pd.DataFrame, path: Path) -> None:
    n = corr.shape[0]
    fig, ax = plt.subplots(figsize=(1.0 + 0.7 * n, 0.8 + 0.6 * n))
    im = ax.imshow(corr.to_numpy(dtype=float), cmap="RdBu_r", vmin=-1.0, vmax=1.0)
    ax.set_xticks(np.arange(n))
    ax.set_yticks(np.arange(n))
    ax.set_xticklabels(corr.columns, rotation=45, ha="right")
    ax.set_yticklabels(corr.index)
    for i in range(n):
        for j in range(n):
            val = corr.iat[i, j]
            if np.isfinite(val):
                ax.text(j, i, f"{val:.2f}", ha="center", va="center", fontsize=7)
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)
    ax.set_title("Correlation of baseline covariates")
    _save(fig, path)


def plot_variable_importance(selected: pd.DataFrame, model: str, path: Path) -> None:
    """Pooled mean coefficient with pooled SE error bars, selected predictors only."""
    fig, ax = plt.subplots(figsize=(7, 0.9 + 0.35 * max(len(selected), 1)))
    if selected.empty:
        ax.text(0.5, 0.5, "No predictor selected", ha="center", va="center", transform=ax.transAxes)
        ax.set_axis_off()
    else:
        ordered = selected.iloc[::-1]
        y = np.arange(len(ordered))
        colors = np.where(ordered["mean"].to_numpy() > 0, "tab:blue", "tab:red")
        ax.barh(y, ordered["mean"], xerr=ordered["pooled_se"], color=colors, alpha=0.8, capsize=3)
        ax.set_yticks(y)
        ax.set_yticklabels(ordered["predictor"])
        ax.axvline(0.0, color="black", linewidth=0.8)
        ax.set_xlabel("Pooled coefficient (log-odds)")
    ax.set_title(f"Variable importance: {model}")
    _save(fig, path)


def plot_roc_overlay(
    curves: dict[int, tuple[np.ndarray, np.ndarray, float]],
    mean_auc: float,
    sd_auc: float,
    model: str,
    path: Path,
) -> None:
    fig, ax = plt.subplots(figsize=(5.5, 5))
    for imputation, (fpr, tpr, auc) in sorted(curves.items()):
        ax.plot(fpr, tpr, linewidth=1.2, label=f"Imputation {imputation} (AUC={auc:.3f})")
    ax.plot([0, 1], [0, 1], linestyle="--", color="grey", linewidth=0.8)
    ax.set_xlabel("False positive rate")
    ax.set_ylabel("True positive rate")
    ax.set_title(f"ROC: {model} (mean AUC {mean_auc:.3f} +/- {sd_auc:.3f})")
    ax.legend(loc="lower right", fontsize=8)
    _save(fig, path)


def plot_calibration(bins: pd.DataFrame, curves: CalibrationCurves, model: str, path: Path) -> None:
    pts = bins.loc[bins["n"] > 0]
    fig, ax = plt.subplots(figsize=(5.5, 5))
    ax.plot(curves.identity, curves.identity, linestyle="--", color="grey", label="Ideal")
    ax.scatter(pts["expected"], pts["observed"], s=20 + 2 * pts["n"], color="black", zorder=3, label="Bins")
    if curves.lowess_x.size:
        ax.plot(curves.lowess_x, curves.lowess_y, color="tab:orange", label="LOWESS")
    if curves.linear_x.size and np.isfinite(curves.linear_slope):
        ax.plot(curves.linear_x, curves.linear_y, color="tab:blue", label="Linear fit")
    ax.set_xlim(0.0, 1.0)
    ax.set_ylim(0.0, 1.0)
    ax.set_xlabel("Expected (mean predicted probability)")
    ax.set_ylabel("Observed abstinence rate")
    ax.set_title(f"Calibration: {model}")
    ax.legend(loc="upper left", fontsize=8)
    _save(fig, path)
