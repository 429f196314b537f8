from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cessation.config import ModelName
from cessation.cv import make_split_mask
from cessation.driver import fit_imputations
from cessation.pooling import pool_coefficients, selected_variables

GENERATING = {"x1": 1.5, "x2": -1.2, "x3": 1.0}
NOISE = [f"noise{j}" for j in range(1, 6)]
FORMULA = " + ".join(list(GENERATING) + NOISE)


def _complete_table(n_rows: int = 300, seed: int = 3) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    x = rng.normal(size=(n_rows, len(GENERATING) + len(NOISE)))
    logit = x[:, : len(GENERATING)] @ np.array(list(GENERATING.values()))
    y = (rng.random(n_rows) < 1.0 / (1.0 + np.exp(-logit))).astype(int)
    df = pd.DataFrame(x, columns=list(GENERATING) + NOISE)
    df["abstinence"] = y
    df.index = pd.Index(np.arange(1, n_rows + 1), name="id")
    return df


def _pooled(model: str, model_kwargs: dict, m: int = 3) -> pd.DataFrame:
    table = _complete_table()
    # No missing cells: every imputation is the same table.
    tables = [table.copy() for _ in range(m)]
    split = make_split_mask(table, seed=2023)
    bundle = fit_imputations(
        tables, split, seed=2023, formula=FORMULA, models=[model], model_kwargs={model: model_kwargs}
    )
    assert len(bundle.for_model(model)) == m
    return pool_coefficients([f.coefficients for f in bundle.for_model(model)])


def test_best_subset_pooling_recovers_generating_coefficients() -> None:
    pooled = _pooled(
        ModelName.BEST_SUBSET, {"n_folds": 5, "gamma_grid": [1e-4], "max_support": 3}
    ).set_index("predictor")

    for name, beta in GENERATING.items():
        assert pooled.loc[name, "mean"] == pytest.approx(beta, abs=0.6), name
    for name in NOISE:
        assert pooled.loc[name, "mean"] == 0.0
        assert pooled.loc[name, "pooled_se"] == 0.0
        assert pooled.loc[name, "n_selected"] == 0

    selected = selected_variables(pooled.reset_index())
    assert set(selected["predictor"]) == set(GENERATING)
    assert selected["predictor"].iloc[0] == "x1"


def test_lasso_pooling_drops_unselected_predictors_exactly() -> None:
    pooled = _pooled(ModelName.LASSO, {"n_folds": 5, "n_lambda": 30, "max_iter": 3000})
    by_name = pooled.set_index("predictor")

    for name, beta in GENERATING.items():
        assert np.sign(by_name.loc[name, "mean"]) == np.sign(beta), name
        assert by_name.loc[name, "mean"] == pytest.approx(beta, abs=0.75), name

    dropped = pooled.loc[pooled["n_selected"] == 0, "predictor"].tolist()
    assert set(dropped) <= set(NOISE)
    assert (by_name.loc[dropped, "mean"] == 0.0).all()

    selected = selected_variables(pooled)
    assert set(GENERATING) <= set(selected["predictor"])
    assert not set(dropped) & set(selected["predictor"])
