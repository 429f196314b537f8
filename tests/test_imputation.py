from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cessation.config import NUMERIC_COLUMNS
from cessation.errors import DataError, ShapeError
from cessation.imputation import impute_datasets, validate_imputed_tables


def test_imputed_tables_complete_and_faithful(cleaned_trial: pd.DataFrame) -> None:
    tables = impute_datasets(cleaned_trial, m=3, max_iter=5, seed=5)

    assert len(tables) == 3
    for table in tables:
        assert table.index.equals(cleaned_trial.index)
        assert list(table.columns) == list(cleaned_trial.columns)
        assert table[NUMERIC_COLUMNS + ["abstinence", "menthol"]].notna().all().all()
        observed = cleaned_trial["bdi_score"].notna()
        np.testing.assert_array_equal(
            table.loc[observed, "bdi_score"].to_numpy(),
            cleaned_trial.loc[observed, "bdi_score"].to_numpy(),
        )
        assert set(table["abstinence"].unique()) <= {0, 1}
        assert table["trt"].equals(cleaned_trial["trt"])

    # Different draws per imputation.
    holes = cleaned_trial["bdi_score"].isna()
    assert not np.allclose(
        tables[0].loc[holes, "bdi_score"].to_numpy(), tables[1].loc[holes, "bdi_score"].to_numpy()
    )


def test_imputation_deterministic_under_seed(cleaned_trial: pd.DataFrame) -> None:
    a = impute_datasets(cleaned_trial, m=2, max_iter=5, seed=9)
    b = impute_datasets(cleaned_trial, m=2, max_iter=5, seed=9)
    for ta, tb in zip(a, b):
        pd.testing.assert_frame_equal(ta, tb)


def test_imputed_values_within_observed_range(cleaned_trial: pd.DataFrame) -> None:
    (table,) = impute_datasets(cleaned_trial, m=1, max_iter=5, seed=1)
    for col in ["bmi", "NMR"]:
        lo, hi = cleaned_trial[col].min(), cleaned_trial[col].max()
        assert table[col].between(lo, hi).all()


def test_validate_imputed_tables_rejects_mismatch(cleaned_trial: pd.DataFrame) -> None:
    tables = impute_datasets(cleaned_trial, m=2, max_iter=5, seed=3)

    short = [tables[0], tables[1].iloc[:-1]]
    with pytest.raises(ShapeError, match="rows"):
        validate_imputed_tables(short)

    holed = tables[1].copy()
    holed.iloc[0, holed.columns.get_loc("age_ps")] = np.nan
    with pytest.raises(DataError, match="unfilled"):
        validate_imputed_tables([tables[0], holed])

    changed = tables[0].copy()
    first_observed = cleaned_trial["age_ps"].first_valid_index()
    changed.loc[first_observed, "age_ps"] += 1.0
    with pytest.raises(ShapeError, match="observed cells changed"):
        validate_imputed_tables([changed], reference=cleaned_trial)

    with pytest.raises(ValueError):
        impute_datasets(cleaned_trial, m=0)
