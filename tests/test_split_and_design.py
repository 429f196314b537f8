from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cessation.cv import apply_split, make_cv_folds, make_split_mask
from cessation.design import build_design_matrix
from cessation.driver import fit_imputations
from cessation.errors import DataError, ShapeError
from cessation.imputation import impute_datasets


def test_split_mask_deterministic(cleaned_trial: pd.DataFrame) -> None:
    a = make_split_mask(cleaned_trial, seed=2023, test_frac=0.2)
    b = make_split_mask(cleaned_trial, seed=2023, test_frac=0.2)
    c = make_split_mask(cleaned_trial, seed=7, test_frac=0.2)

    assert a.mask.equals(b.mask)
    assert not a.mask.equals(c.mask)
    assert a.n_test + a.n_train == len(cleaned_trial)
    assert a.n_test == pytest.approx(0.2 * len(cleaned_trial), abs=1)
    assert a.test_ids.intersection(a.train_ids).empty

    frame = a.to_frame()
    assert list(frame.columns) == ["id", "is_test"]
    assert int(frame["is_test"].sum()) == a.n_test


def test_split_is_stratified(cleaned_trial: pd.DataFrame) -> None:
    split = make_split_mask(cleaned_trial, seed=2023, test_frac=0.2)
    y = cleaned_trial["abstinence"].astype(float)
    rate_train = y[split.train_ids].mean()
    rate_test = y[split.test_ids].mean()
    assert abs(rate_train - rate_test) < 0.05


def test_test_ids_shared_across_imputations(cleaned_trial: pd.DataFrame) -> None:
    split = make_split_mask(cleaned_trial, seed=2023)
    tables = impute_datasets(cleaned_trial, m=2, max_iter=3, seed=2023)
    test_sets = []
    for table in tables:
        x, _ = build_design_matrix(table)
        _, x_test = apply_split(x, split)
        test_sets.append(list(x_test.index))
    assert test_sets[0] == test_sets[1] == list(split.test_ids)


def test_design_columns_fixed_across_imputations(cleaned_trial: pd.DataFrame) -> None:
    tables = impute_datasets(cleaned_trial, m=2, max_iter=3, seed=4)
    x0, y0 = build_design_matrix(tables[0])
    x1, _ = build_design_matrix(tables[1])

    assert list(x0.columns) == list(x1.columns)
    assert "Intercept" not in x0.columns
    assert "age_ps" in x0.columns
    # Reference level dropped: three arm contrasts.
    assert sum(c.startswith("C(trt)") for c in x0.columns) == 3
    assert sum(c.startswith("C(education)") for c in x0.columns) == 4
    assert x0.index.equals(tables[0].index)
    assert set(np.unique(y0)) <= {0, 1}


def test_design_rejects_missing_outcome(cleaned_trial: pd.DataFrame) -> None:
    with pytest.raises(DataError, match="abstinence"):
        build_design_matrix(cleaned_trial)


def test_cv_folds_capped_by_minority_class() -> None:
    y = np.array([0] * 20 + [1] * 3)
    folds = make_cv_folds(y, n_folds=10, seed=0)
    assert len(folds) == 3
    for _, va in folds:
        assert y[va].sum() == 1

    with pytest.raises(ValueError, match="minority class"):
        make_cv_folds(np.array([0, 0, 0, 1]), n_folds=5, seed=0)


def test_missing_outcome_rows_stay_in_training(cleaned_trial: pd.DataFrame) -> None:
    split = make_split_mask(cleaned_trial, seed=2023)
    missing_ids = cleaned_trial.index[cleaned_trial["abstinence"].isna()]
    assert len(missing_ids) == 3
    assert not split.mask.loc[missing_ids].any()

    assert list(split.y_test.index) == list(split.test_ids)
    observed = cleaned_trial.loc[split.test_ids, "abstinence"].astype(int)
    np.testing.assert_array_equal(split.y_test.to_numpy(), observed.to_numpy())


def test_test_outcomes_identical_across_imputations(cleaned_trial: pd.DataFrame) -> None:
    split = make_split_mask(cleaned_trial, seed=2023)
    tables = impute_datasets(cleaned_trial, m=5, max_iter=3, seed=2023)
    outcomes = []
    for table in tables:
        _, y = build_design_matrix(table)
        _, y_test = apply_split(y.to_frame(), split)
        outcomes.append(y_test.iloc[:, 0].to_numpy())
    for values in outcomes[1:]:
        np.testing.assert_array_equal(values, outcomes[0])
    np.testing.assert_array_equal(outcomes[0], split.y_test.to_numpy())


def test_fit_imputations_scores_against_shared_outcomes(
    cleaned_trial: pd.DataFrame, fast_model_kwargs: dict
) -> None:
    split = make_split_mask(cleaned_trial, seed=2023)
    tables = impute_datasets(cleaned_trial, m=2, max_iter=3, seed=2023)
    bundle = fit_imputations(tables, split, seed=2023, models=["lasso"], model_kwargs=fast_model_kwargs)
    for fit in bundle.fits:
        np.testing.assert_array_equal(fit.y_test, bundle.y_test.to_numpy())

    tampered = [tables[0], tables[1].copy()]
    first_test_id = split.test_ids[0]
    flipped = 1 - int(tampered[1].loc[first_test_id, "abstinence"])
    tampered[1].loc[first_test_id, "abstinence"] = flipped
    with pytest.raises(ShapeError, match="test-row outcomes"):
        fit_imputations(tampered, split, seed=2023, models=["lasso"], model_kwargs=fast_model_kwargs)
