from __future__ import annotations

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler


def make_scaler() -> StandardScaler:
    return StandardScaler(with_mean=True, with_std=True)


def nonconstant_columns(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return np.where(np.nanstd(x, axis=0) > 0.0)[0]


def unscale_coefficients(
    coef_scaled: np.ndarray,
    intercept_scaled: float,
    scaler,
    columns: list[str],
) -> tuple[pd.Series, float]:
    """Map coefficients fitted on scaled columns back to the design's own units.

    Exact zeros stay exact zeros.
    """
    coef_scaled = np.asarray(coef_scaled, dtype=float)
    center = np.asarray(getattr(scaler, "mean_", getattr(scaler, "center_", 0.0)), dtype=float)
    scale = np.asarray(scaler.scale_, dtype=float)
    coef = coef_scaled / scale
    intercept = float(intercept_scaled - np.sum(coef * center))
    return pd.Series(coef, index=columns, dtype=float), intercept
