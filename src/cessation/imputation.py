from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer

from cessation.config import (
    CATEGORICAL_COLUMNS,
    DERIVED_COLUMNS,
    IMPUTATION_MAX_ITER,
    N_IMPUTATIONS,
    NUMERIC_COLUMNS,
    SEED,
)
from cessation.errors import DataError, ShapeError
from cessation.prepare import model_columns

logger = logging.getLogger(__name__)


def _encode_for_imputer(cleaned: pd.DataFrame) -> tuple[np.ndarray, list[str]]:
    cols = NUMERIC_COLUMNS + CATEGORICAL_COLUMNS
    blocks = []
    for col in cols:
        if col in CATEGORICAL_COLUMNS:
            codes = cleaned[col].cat.codes.to_numpy(dtype=float)
            codes[codes < 0] = np.nan
            blocks.append(codes)
        else:
            blocks.append(cleaned[col].to_numpy(dtype=float))
    return np.column_stack(blocks), cols


def _value_bounds(x: np.ndarray, cols: list[str], cleaned: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    lo = np.empty(len(cols), dtype=float)
    hi = np.empty(len(cols), dtype=float)
    for j, col in enumerate(cols):
        if col in CATEGORICAL_COLUMNS:
            lo[j] = 0.0
            hi[j] = float(len(cleaned[col].cat.categories) - 1)
        else:
            observed = x[:, j][~np.isnan(x[:, j])]
            if observed.size == 0:
                raise DataError(f"{col}: no observed values to impute from")
            lo[j] = float(np.min(observed))
            hi[j] = float(np.max(observed))
    return lo, hi


def _decode_from_imputer(
    x_imp: np.ndarray, cols: list[str], cleaned: pd.DataFrame
) -> pd.DataFrame:
    out = cleaned.copy()
    for j, col in enumerate(cols):
        if col in DERIVED_COLUMNS:
            continue
        if col in CATEGORICAL_COLUMNS:
            categories = cleaned[col].cat.categories
            codes = np.clip(np.rint(x_imp[:, j]), 0, len(categories) - 1).astype(int)
            out[col] = pd.Categorical.from_codes(codes, categories=categories)
        else:
            out[col] = x_imp[:, j]
    return out


def impute_datasets(
    cleaned: pd.DataFrame,
    m: int = N_IMPUTATIONS,
    max_iter: int = IMPUTATION_MAX_ITER,
    seed: int = SEED,
) -> list[pd.DataFrame]:
    """Produce ``m`` completed copies of ``cleaned`` by chained-equation imputation.

    Each copy draws from the posterior with seed ``seed + k``; observed cells
    are never altered and derived label columns are only used as predictors.
    """
    if m < 1:
        raise ValueError(f"Number of imputations must be >= 1, got {m}")
    for col in DERIVED_COLUMNS:
        if cleaned[col].isna().any():
            raise DataError(f"Derived column {col} has missing values before imputation")

    x, cols = _encode_for_imputer(cleaned)
    lo, hi = _value_bounds(x, cols, cleaned)
    n_missing = int(np.isnan(x).sum())
    logger.info("Imputing %d missing cells into %d datasets (max_iter=%d)", n_missing, m, max_iter)

    tables: list[pd.DataFrame] = []
    for k in range(m):
        imputer = IterativeImputer(
            max_iter=int(max_iter),
            sample_posterior=True,
            random_state=int(seed) + k,
            min_value=lo,
            max_value=hi,
            keep_empty_features=True,
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            x_imp = imputer.fit_transform(x)
        # Observed cells are carried over exactly.
        observed = ~np.isnan(x)
        x_imp[observed] = x[observed]
        tables.append(_decode_from_imputer(x_imp, cols, cleaned))
        logger.debug("Imputation %d/%d done (n_iter=%d)", k + 1, m, int(imputer.n_iter_))

    validate_imputed_tables(tables, reference=cleaned)
    return tables


def validate_imputed_tables(
    tables: list[pd.DataFrame], reference: pd.DataFrame | None = None
) -> None:
    if not tables:
        raise ShapeError("No imputed tables supplied")
    base = reference if reference is not None else tables[0]
    cols = [c for c in model_columns() if c in base.columns]
    for k, table in enumerate(tables, start=1):
        if len(table) != len(base):
            raise ShapeError(f"Imputation {k}: {len(table)} rows, expected {len(base)}")
        if not table.index.equals(base.index):
            raise ShapeError(f"Imputation {k}: row identities differ from reference")
        if set(table.columns) != set(base.columns):
            diff = sorted(set(table.columns) ^ set(base.columns))
            raise ShapeError(f"Imputation {k}: column set differs from reference ({diff})")
        missing = table[cols].isna().sum()
        missing = missing[missing > 0]
        if not missing.empty:
            raise DataError(f"Imputation {k}: unfilled cells remain {missing.to_dict()}")
        if reference is not None:
            for col in cols:
                observed = reference[col].notna()
                if not table.loc[observed, col].astype(object).equals(
                    reference.loc[observed, col].astype(object)
                ):
                    raise ShapeError(f"Imputation {k}: observed cells changed in column {col}")
