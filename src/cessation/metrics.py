from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd
from sklearn.metrics import log_loss, roc_auc_score, roc_curve
from statsmodels.nonparametric.smoothers_lowess import lowess

from cessation.config import CALIBRATION_N_BINS, EPS_PROBA, LOWESS_FRAC
from cessation.types import ImputationFit


@dataclass(frozen=True)
class CalibrationCurves:
    identity: np.ndarray
    lowess_x: np.ndarray
    lowess_y: np.ndarray
    linear_x: np.ndarray
    linear_y: np.ndarray
    linear_slope: float
    linear_intercept: float


def safe_std(values: Iterable[float]) -> float:
    arr = np.asarray(list(values), dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size <= 1:
        return 0.0
    return float(np.std(arr, ddof=1))


def binomial_deviance(y_true: np.ndarray, proba: np.ndarray) -> float:
    """Mean binomial deviance, ``2 * log_loss``."""
    y_true = np.asarray(y_true, dtype=int)
    proba = np.clip(np.asarray(proba, dtype=float), EPS_PROBA, 1.0 - EPS_PROBA)
    if y_true.size == 0 or not np.all(np.isfinite(proba)):
        return np.nan
    return float(2.0 * log_loss(y_true, proba, labels=[0, 1]))


def auc_or_nan(y_true: np.ndarray, scores: np.ndarray) -> float:
    y_true = np.asarray(y_true, dtype=int)
    # AUC needs both classes to be present.
    if np.unique(y_true).size < 2:
        return np.nan
    return float(roc_auc_score(y_true=y_true, y_score=np.asarray(scores, dtype=float)))


def auc_by_imputation(fits: list[ImputationFit]) -> pd.DataFrame:
    rows = []
    for fit in fits:
        if not fit.ok:
            continue
        rows.append(
            {
                "model": fit.model,
                "imputation": fit.imputation,
                "n_test": int(len(fit.y_test)),
                "n_test_abstinent": int(np.sum(fit.y_test == 1)),
                "ROC_AUC": auc_or_nan(fit.y_test, fit.y_pred),
            }
        )
    return pd.DataFrame(
        rows, columns=["model", "imputation", "n_test", "n_test_abstinent", "ROC_AUC"]
    )


def summarize_auc(auc_table: pd.DataFrame) -> pd.DataFrame:
    rows = []
    for model, grp in auc_table.groupby("model", sort=False):
        aucs = grp["ROC_AUC"].to_numpy(dtype=float)
        rows.append(
            {
                "model": model,
                "n_imputations": int(np.sum(np.isfinite(aucs))),
                "mean_ROC_AUC": float(np.nanmean(aucs)) if np.isfinite(aucs).any() else np.nan,
                "sd_ROC_AUC": safe_std(aucs),
            }
        )
    return pd.DataFrame(rows, columns=["model", "n_imputations", "mean_ROC_AUC", "sd_ROC_AUC"])


def roc_curves(fits: list[ImputationFit]) -> dict[int, tuple[np.ndarray, np.ndarray, float]]:
    out: dict[int, tuple[np.ndarray, np.ndarray, float]] = {}
    for fit in fits:
        if not fit.ok or np.unique(fit.y_test).size < 2:
            continue
        fpr, tpr, _ = roc_curve(fit.y_test, fit.y_pred)
        out[fit.imputation] = (fpr, tpr, auc_or_nan(fit.y_test, fit.y_pred))
    return out


def pooled_prediction_pairs(fits: list[ImputationFit]) -> pd.DataFrame:
    frames = []
    for fit in fits:
        if not fit.ok:
            continue
        frames.append(
            pd.DataFrame(
                {
                    "imputation": fit.imputation,
                    "id": np.asarray(fit.test_ids),
                    "predicted": np.asarray(fit.y_pred, dtype=float),
                    "observed": np.asarray(fit.y_test, dtype=int),
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=["imputation", "id", "predicted", "observed"])
    return pd.concat(frames, ignore_index=True)


def calibration_bins(fits: list[ImputationFit], n_bins: int = CALIBRATION_N_BINS) -> pd.DataFrame:
    """Equal-width bins over the pooled predicted range, expected vs observed per bin.

    Every pooled (predicted, observed) pair falls in exactly one bin; empty
    bins are kept with ``n == 0``.
    """
    pairs = pooled_prediction_pairs(fits)
    columns = ["bin", "lower", "upper", "n", "expected", "observed", "observed_sd"]
    if pairs.empty:
        return pd.DataFrame(columns=columns)

    pred = pairs["predicted"].to_numpy(dtype=float)
    obs = pairs["observed"].to_numpy(dtype=float)
    lo, hi = float(np.min(pred)), float(np.max(pred))
    edges = np.linspace(lo, hi, n_bins + 1)
    if hi <= lo:
        idx = np.zeros(pred.size, dtype=int)
    else:
        # Right-closed bins, first bin closed on both ends.
        idx = np.clip(np.searchsorted(edges, pred, side="left") - 1, 0, n_bins - 1)

    rows = []
    for b in range(n_bins):
        members = idx == b
        n = int(np.sum(members))
        rows.append(
            {
                "bin": b + 1,
                "lower": float(edges[b]),
                "upper": float(edges[b + 1]),
                "n": n,
                "expected": float(np.mean(pred[members])) if n > 0 else np.nan,
                "observed": float(np.mean(obs[members])) if n > 0 else np.nan,
                "observed_sd": float(np.std(obs[members], ddof=1)) if n > 1 else np.nan,
            }
        )
    return pd.DataFrame(rows, columns=columns)


def calibration_smoothers(bins: pd.DataFrame, frac: float = LOWESS_FRAC) -> CalibrationCurves:
    pts = bins.loc[bins["n"] > 0, ["expected", "observed"]].dropna()
    x = pts["expected"].to_numpy(dtype=float)
    y = pts["observed"].to_numpy(dtype=float)
    identity = np.array([0.0, 1.0])

    if x.size >= 3:
        smoothed = lowess(y, x, frac=frac, return_sorted=True)
        lowess_x, lowess_y = smoothed[:, 0], smoothed[:, 1]
    else:
        order = np.argsort(x)
        lowess_x, lowess_y = x[order], y[order]

    if x.size >= 2 and np.ptp(x) > 0:
        slope, intercept = np.polyfit(x, y, deg=1)
    else:
        slope, intercept = np.nan, np.nan
    linear_x = np.linspace(float(np.min(x)), float(np.max(x)), 50) if x.size else np.array([])
    linear_y = slope * linear_x + intercept

    return CalibrationCurves(
        identity=identity,
        lowess_x=np.asarray(lowess_x, dtype=float),
        lowess_y=np.asarray(lowess_y, dtype=float),
        linear_x=linear_x,
        linear_y=np.asarray(linear_y, dtype=float),
        linear_slope=float(slope),
        linear_intercept=float(intercept),
    )
