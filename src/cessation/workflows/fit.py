from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from cessation.artifacts import ensure_reports_dir, write_csv
from cessation.config import (
    ArtifactName,
    FailurePolicy,
    IMPUTATION_MAX_ITER,
    N_IMPUTATIONS,
    PREDICTOR_FORMULA,
    SEED,
    TEST_FRAC,
)
from cessation.cv import make_split_mask
from cessation.driver import coefficients_long, fit_imputations, selected_penalties
from cessation.imputation import impute_datasets
from cessation.types import FitBundle, PreparedData

logger = logging.getLogger(__name__)


def run_impute(
    prepared: PreparedData,
    m: int = N_IMPUTATIONS,
    max_iter: int = IMPUTATION_MAX_ITER,
    seed: int = SEED,
) -> list[pd.DataFrame]:
    return impute_datasets(prepared.cleaned, m=m, max_iter=max_iter, seed=seed)


def run_split_and_fit(
    prepared: PreparedData,
    tables: list[pd.DataFrame],
    output_dir: Path,
    seed: int = SEED,
    test_frac: float = TEST_FRAC,
    formula: str = PREDICTOR_FORMULA,
    models: list[str] | None = None,
    on_failure: str = FailurePolicy.RAISE,
    model_kwargs: dict[str, dict[str, Any]] | None = None,
) -> FitBundle:
    reports = ensure_reports_dir(output_dir)
    split = make_split_mask(prepared.cleaned, seed=seed, test_frac=test_frac)
    logger.info("Split: %d train / %d test rows (seed=%d)", split.n_train, split.n_test, seed)
    write_csv(split.to_frame(), reports / ArtifactName.SPLIT_MASK)

    bundle = fit_imputations(
        tables,
        split,
        seed=seed,
        formula=formula,
        models=models,
        on_failure=on_failure,
        model_kwargs=model_kwargs,
    )
    write_csv(coefficients_long(bundle), reports / ArtifactName.COEFFICIENTS_BY_IMPUTATION)
    write_csv(selected_penalties(bundle), reports / ArtifactName.SELECTED_PENALTIES)
    return bundle
