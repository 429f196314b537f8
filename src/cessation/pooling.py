from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from cessation.errors import ShapeError

POOLED_COLUMNS = ["predictor", "mean", "pooled_se", "within", "between", "n_imputations", "n_selected"]


@dataclass(frozen=True)
class PooledEstimate:
    mean: float
    pooled_se: float
    within: float
    between: float
    m: int


def rubins_rules(values) -> PooledEstimate:
    """Pool one predictor's estimates across imputations.

    ``within`` is the population variance of the values (divisor M) and
    ``between`` their sample variance (divisor M - 1). They combine as
    variances: ``pooled_se = sqrt(within + (1 + 1/M) * between)``.
    Missing entries are ignored and M counts the remaining values.
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    m = int(arr.size)
    if m == 0:
        return PooledEstimate(mean=np.nan, pooled_se=np.nan, within=np.nan, between=np.nan, m=0)
    if np.all(arr == arr[0]):
        # Identical estimates carry no spread.
        return PooledEstimate(mean=float(arr[0]), pooled_se=0.0, within=0.0, between=0.0, m=m)
    mean = float(np.mean(arr))
    within = float(np.mean((arr - mean) ** 2))
    between = float(np.var(arr, ddof=1)) if m > 1 else 0.0
    pooled_se = float(np.sqrt(within + (1.0 + 1.0 / m) * between))
    return PooledEstimate(mean=mean, pooled_se=pooled_se, within=within, between=between, m=m)


def coefficient_matrix(vectors: list[pd.Series]) -> pd.DataFrame:
    """Stack coefficient vectors as columns (one per imputation); predictor sets must agree."""
    if not vectors:
        raise ShapeError("No coefficient vectors to pool")
    names = list(vectors[0].index)
    for k, vec in enumerate(vectors[1:], start=2):
        if set(vec.index) != set(names) or len(vec.index) != len(names):
            diff = sorted(set(vec.index) ^ set(names))
            raise ShapeError(f"Coefficient vector {k} has a different predictor set ({diff})")
    return pd.concat([vec.reindex(names).astype(float) for vec in vectors], axis=1, ignore_index=True)


def pool_coefficients(vectors: list[pd.Series]) -> pd.DataFrame:
    mat = coefficient_matrix(vectors)
    rows = []
    for predictor, values in mat.iterrows():
        est = rubins_rules(values.to_numpy(dtype=float))
        rows.append(
            {
                "predictor": predictor,
                "mean": est.mean,
                "pooled_se": est.pooled_se,
                "within": est.within,
                "between": est.between,
                "n_imputations": est.m,
                "n_selected": int(np.sum(np.nan_to_num(values.to_numpy(dtype=float)) != 0.0)),
            }
        )
    return pd.DataFrame(rows, columns=POOLED_COLUMNS)


def selected_variables(pooled: pd.DataFrame) -> pd.DataFrame:
    """Predictors with a pooled mean other than exactly zero, largest |mean| first."""
    keep = pooled["mean"].notna() & (pooled["mean"] != 0.0)
    out = pooled.loc[keep].copy()
    out["abs_mean"] = out["mean"].abs()
    out = out.sort_values(["abs_mean", "predictor"], ascending=[False, True], kind="mergesort")
    return out.drop(columns="abs_mean").reset_index(drop=True)
