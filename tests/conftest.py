from __future__ import annotations

from pathlib import Path
from uuid import uuid4
import shutil

import numpy as np
import pandas as pd
import pytest

from cessation.config import ModelName
from cessation.prepare import prepare_records

FAST_MODEL_KWARGS = {
    ModelName.LASSO: {"n_folds": 3, "n_lambda": 8, "max_iter": 500},
    ModelName.BEST_SUBSET: {"n_folds": 3, "gamma_grid": [1e-3, 1e-1], "max_support": 4},
}


def _make_synthetic_trial(n_rows: int = 300, seed: int = 11) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    var = rng.integers(0, 2, size=n_rows)
    ba = rng.integers(0, 2, size=n_rows)
    ftcd = rng.integers(0, 11, size=n_rows).astype(float)
    nmr = rng.normal(0.35, 0.12, size=n_rows).clip(0.05, 1.0)
    cpd = rng.normal(16.0, 6.0, size=n_rows).clip(5.0, 40.0).round()

    # Signal on varenicline, dependence and metabolite ratio.
    logit = -1.0 + 1.2 * var - 0.25 * (ftcd - 5.0) - 2.0 * (nmr - 0.35)
    abstinence = (rng.random(n_rows) < 1.0 / (1.0 + np.exp(-logit))).astype(float)

    edu = rng.integers(2, 6, size=n_rows)
    edu[17] = 1
    inc = rng.integers(1, 6, size=n_rows).astype(float)

    df = pd.DataFrame(
        {
            "id": np.arange(1001, 1001 + n_rows),
            "abstinence": abstinence,
            "Var": var,
            "BA": ba,
            "inc": inc,
            "edu": edu,
            "age_ps": rng.normal(45.0, 11.0, size=n_rows).round(),
            "cpd_ps": cpd,
            "ftcd_score": ftcd,
            "bdi_score": rng.normal(22.0, 8.0, size=n_rows).clip(0.0, 60.0).round(),
            "shaps_score": rng.integers(0, 15, size=n_rows).astype(float),
            "craving_total": rng.normal(30.0, 9.0, size=n_rows).round(),
            "NMR": nmr,
            "bmi": rng.normal(29.0, 6.0, size=n_rows).round(1),
            "sex_ps": rng.integers(0, 2, size=n_rows).astype(float),
            "NHW": rng.integers(0, 2, size=n_rows).astype(float),
            "Black": rng.integers(0, 2, size=n_rows).astype(float),
            "Hisp": (rng.random(n_rows) < 0.1).astype(float),
            "menthol": rng.integers(0, 2, size=n_rows).astype(float),
            "antidepmed": (rng.random(n_rows) < 0.3).astype(float),
        }
    )
    for col, frac in [("bdi_score", 0.05), ("bmi", 0.04), ("NMR", 0.06), ("menthol", 0.03), ("inc", 0.05)]:
        holes = rng.random(n_rows) < frac
        holes[17] = False
        df.loc[holes, col] = np.nan
    df.loc[[3, 88, 201], "abstinence"] = np.nan
    return df


@pytest.fixture()
def workspace_tmp_dir() -> Path:
    root = Path(".test_tmp") / str(uuid4())
    root.mkdir(parents=True, exist_ok=True)
    try:
        yield root
    finally:
        shutil.rmtree(root, ignore_errors=True)


@pytest.fixture()
def raw_trial() -> pd.DataFrame:
    return _make_synthetic_trial()


@pytest.fixture()
def cleaned_trial(raw_trial: pd.DataFrame) -> pd.DataFrame:
    return prepare_records(raw_trial)


@pytest.fixture()
def synthetic_input_path(workspace_tmp_dir: Path, raw_trial: pd.DataFrame) -> Path:
    input_dir = workspace_tmp_dir / "data" / "raw"
    input_dir.mkdir(parents=True, exist_ok=True)
    path = input_dir / "trial_records.csv"
    raw_trial.to_csv(path, index=False)
    return path


@pytest.fixture()
def fast_model_kwargs() -> dict:
    return {model: dict(kwargs) for model, kwargs in FAST_MODEL_KWARGS.items()}
