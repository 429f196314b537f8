from __future__ import annotations

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency

from cessation.config import ARM_COLUMN, BINARY_COLUMNS, EDUCATION_LABEL, INCOME_LABEL, NUMERIC_COLUMNS, OUTCOME

ASSOCIATION_COLUMNS: list[str] = [ARM_COLUMN, INCOME_LABEL, EDUCATION_LABEL] + BINARY_COLUMNS


def chi_square_associations(
    df: pd.DataFrame,
    columns: list[str] | None = None,
    outcome: str = OUTCOME,
) -> pd.DataFrame:
    """Chi-square test of independence between each categorical covariate and the outcome."""
    columns = ASSOCIATION_COLUMNS if columns is None else columns
    rows = []
    for col in columns:
        sub = df[[col, outcome]].dropna()
        ct = pd.crosstab(sub[col], sub[outcome])
        ct = ct.loc[ct.sum(axis=1) > 0, ct.sum(axis=0) > 0]
        if ct.shape[0] < 2 or ct.shape[1] < 2:
            stat, p_value, dof = np.nan, np.nan, 0
        else:
            stat, p_value, dof, _ = chi2_contingency(ct.to_numpy(), correction=False)
        rows.append(
            {
                "variable": col,
                "n": int(len(sub)),
                "n_levels": int(ct.shape[0]),
                "chi2": float(stat),
                "dof": int(dof),
                "p_value": float(p_value),
            }
        )
    return pd.DataFrame(rows, columns=["variable", "n", "n_levels", "chi2", "dof", "p_value"])


def baseline_by_arm(df: pd.DataFrame, arm: str = ARM_COLUMN) -> pd.DataFrame:
    """Long-format Table 1: mean (SD) of numeric covariates, n (%) of categorical ones, per arm."""
    rows = []
    groups = [("Overall", df)] + [(str(level), grp) for level, grp in df.groupby(arm, observed=False)]
    for label, grp in groups:
        for col in NUMERIC_COLUMNS:
            vals = grp[col].dropna().to_numpy(dtype=float)
            rows.append(
                {
                    "arm": label,
                    "variable": col,
                    "level": "",
                    "n": int(vals.size),
                    "mean": float(np.mean(vals)) if vals.size else np.nan,
                    "sd": float(np.std(vals, ddof=1)) if vals.size > 1 else np.nan,
                    "percent": np.nan,
                }
            )
        for col in [OUTCOME, INCOME_LABEL, EDUCATION_LABEL] + BINARY_COLUMNS:
            counts = grp[col].value_counts(dropna=False, sort=False)
            total = int(len(grp))
            for level, count in counts.items():
                rows.append(
                    {
                        "arm": label,
                        "variable": col,
                        "level": "Missing" if pd.isna(level) else str(level),
                        "n": int(count),
                        "mean": np.nan,
                        "sd": np.nan,
                        "percent": 100.0 * int(count) / total if total else np.nan,
                    }
                )
    return pd.DataFrame(rows, columns=["arm", "variable", "level", "n", "mean", "sd", "percent"])


def correlation_matrix(df: pd.DataFrame, columns: list[str] | None = None) -> pd.DataFrame:
    columns = NUMERIC_COLUMNS if columns is None else columns
    return df[columns].astype(float).corr(method="pearson")
