from __future__ import annotations

import logging
from typing import Any

import numpy as np
import pandas as pd

from cessation.config import FailurePolicy, ModelName, PREDICTOR_FORMULA, SEED
from cessation.cv import SplitMask, apply_split
from cessation.design import build_design_matrix
from cessation.errors import ConvergenceError, ShapeError
from cessation.imputation import validate_imputed_tables
from cessation.models import fit_model_cv
from cessation.types import FitBundle, ImputationFit

logger = logging.getLogger(__name__)


def fit_imputations(
    tables: list[pd.DataFrame],
    split: SplitMask,
    seed: int = SEED,
    formula: str = PREDICTOR_FORMULA,
    models: list[str] | None = None,
    on_failure: str = FailurePolicy.RAISE,
    model_kwargs: dict[str, dict[str, Any]] | None = None,
) -> FitBundle:
    """Fit every model on every imputed table with one shared train/test split.

    Each table is partitioned by the same ``split``, so test row ids match
    across imputations and every fit is scored against ``split.y_test``.
    A ``ConvergenceError`` aborts the run under ``on_failure="raise"``; under
    ``"omit"`` the imputation is recorded as failed and left out of pooling
    and evaluation.
    """
    models = list(ModelName.ALL) if models is None else list(models)
    unknown = set(models) - set(ModelName.ALL)
    if unknown:
        raise ValueError(f"Unknown model(s): {sorted(unknown)}")
    if on_failure not in FailurePolicy.ALL:
        raise ValueError(f"Unknown failure policy: {on_failure}")
    model_kwargs = model_kwargs or {}

    validate_imputed_tables(tables)
    if not tables[0].index.equals(split.mask.index):
        raise ShapeError("Split mask was built on a different set of rows than the imputed tables")

    design_columns: list[str] | None = None
    fits: list[ImputationFit] = []
    for k, table in enumerate(tables, start=1):
        x, y = build_design_matrix(table, formula=formula)
        if design_columns is None:
            design_columns = list(x.columns)
        elif list(x.columns) != design_columns:
            raise ShapeError(f"Imputation {k}: design columns differ from imputation 1")

        x_train, x_test = apply_split(x, split)
        y_train = y.loc[split.train_ids]
        # Test outcomes are observed cells, so imputation must not have touched them.
        observed_test = split.y_test.to_numpy(dtype=int)
        if not np.array_equal(y.loc[split.test_ids].to_numpy(dtype=int), observed_test):
            raise ShapeError(f"Imputation {k}: test-row outcomes differ from the split's observed outcomes")

        for model in models:
            try:
                fitted = fit_model_cv(
                    model, x_train, y_train, seed=seed, **model_kwargs.get(model, {})
                )
            except ConvergenceError as exc:
                if on_failure == FailurePolicy.RAISE:
                    raise ConvergenceError(f"{model}, imputation {k}: {exc}") from exc
                logger.warning("%s imputation %d failed and is omitted: %s", model, k, exc)
                fits.append(ImputationFit(model=model, imputation=k, status="failed", error=str(exc)))
                continue

            y_pred = fitted.predict_proba(x_test)
            fits.append(
                ImputationFit(
                    model=model,
                    imputation=k,
                    status="ok",
                    coefficients=fitted.coefficients,
                    intercept=fitted.intercept,
                    selected=dict(fitted.selected),
                    cv_path=fitted.cv_path,
                    test_ids=x_test.index.copy(),
                    y_test=observed_test,
                    y_pred=y_pred,
                )
            )
            logger.info(
                "%s imputation %d: %s, %d nonzero coefficients",
                model,
                k,
                ", ".join(f"{name}={value:.4g}" for name, value in fitted.selected.items()),
                int(np.sum(fitted.coefficients.to_numpy() != 0.0)),
            )

    return FitBundle(
        split=split,
        design_columns=design_columns or [],
        fits=fits,
        n_imputations=len(tables),
    )


def coefficients_long(bundle: FitBundle) -> pd.DataFrame:
    rows = []
    for fit in bundle.fits:
        if not fit.ok:
            continue
        rows.append(
            {"model": fit.model, "imputation": fit.imputation, "predictor": "(Intercept)", "coefficient": fit.intercept}
        )
        for name, value in fit.coefficients.items():
            rows.append(
                {"model": fit.model, "imputation": fit.imputation, "predictor": name, "coefficient": float(value)}
            )
    return pd.DataFrame(rows, columns=["model", "imputation", "predictor", "coefficient"])


def selected_penalties(bundle: FitBundle) -> pd.DataFrame:
    rows = []
    for fit in bundle.fits:
        row: dict[str, Any] = {
            "model": fit.model,
            "imputation": fit.imputation,
            "status": fit.status,
            "lambda": np.nan,
            "gamma": np.nan,
            "support_size": np.nan,
            "n_nonzero": np.nan,
            "error": fit.error,
        }
        row.update(fit.selected)
        if fit.ok:
            row["n_nonzero"] = int(np.sum(fit.coefficients.to_numpy() != 0.0))
        rows.append(row)
    return pd.DataFrame(
        rows,
        columns=["model", "imputation", "status", "lambda", "gamma", "support_size", "n_nonzero", "error"],
    )
