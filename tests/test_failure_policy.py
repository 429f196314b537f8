from __future__ import annotations

import pandas as pd
import pytest

import cessation.driver as driver
from cessation.config import FailurePolicy, ModelName
from cessation.cv import make_split_mask
from cessation.driver import coefficients_long, fit_imputations, selected_penalties
from cessation.errors import ConvergenceError
from cessation.imputation import impute_datasets
from cessation.workflows.evaluate import evaluate_model


@pytest.fixture()
def imputed(cleaned_trial: pd.DataFrame) -> list[pd.DataFrame]:
    return impute_datasets(cleaned_trial, m=3, max_iter=3, seed=2023)


def _fail_on_second_best_subset(monkeypatch: pytest.MonkeyPatch) -> None:
    original = driver.fit_model_cv
    calls = {"best_subset": 0}

    def flaky(model, x_train, y_train, seed, **kwargs):
        if model == ModelName.BEST_SUBSET:
            calls["best_subset"] += 1
            if calls["best_subset"] == 2:
                raise ConvergenceError("No finite cross-validated error over the penalty grid")
        return original(model, x_train, y_train, seed=seed, **kwargs)

    monkeypatch.setattr(driver, "fit_model_cv", flaky)


def test_failure_is_fatal_by_default(
    monkeypatch: pytest.MonkeyPatch, cleaned_trial: pd.DataFrame, imputed: list[pd.DataFrame], fast_model_kwargs: dict
) -> None:
    _fail_on_second_best_subset(monkeypatch)
    split = make_split_mask(cleaned_trial, seed=2023)
    with pytest.raises(ConvergenceError, match="best_subset, imputation 2"):
        fit_imputations(imputed, split, seed=2023, model_kwargs=fast_model_kwargs)


def test_omit_policy_records_and_excludes_failure(
    monkeypatch: pytest.MonkeyPatch, cleaned_trial: pd.DataFrame, imputed: list[pd.DataFrame], fast_model_kwargs: dict
) -> None:
    _fail_on_second_best_subset(monkeypatch)
    split = make_split_mask(cleaned_trial, seed=2023)
    bundle = fit_imputations(
        imputed, split, seed=2023, on_failure=FailurePolicy.OMIT, model_kwargs=fast_model_kwargs
    )

    failed = bundle.failed()
    assert [(f.model, f.imputation) for f in failed] == [(ModelName.BEST_SUBSET, 2)]
    assert len(bundle.for_model(ModelName.BEST_SUBSET)) == 2
    assert len(bundle.for_model(ModelName.LASSO)) == 3

    penalties = selected_penalties(bundle)
    row = penalties.loc[(penalties["model"] == ModelName.BEST_SUBSET) & (penalties["imputation"] == 2)].iloc[0]
    assert row["status"] == "failed"
    assert "finite" in row["error"]

    coefs = coefficients_long(bundle)
    assert not ((coefs["model"] == ModelName.BEST_SUBSET) & (coefs["imputation"] == 2)).any()

    evaluation = evaluate_model(bundle, ModelName.BEST_SUBSET)
    assert (evaluation.pooled["n_imputations"] == 2).all()
    assert evaluation.auc_by_imputation["imputation"].tolist() == [1, 3]


def test_fit_imputations_rejects_unknown_arguments(
    cleaned_trial: pd.DataFrame, imputed: list[pd.DataFrame]
) -> None:
    split = make_split_mask(cleaned_trial, seed=2023)
    with pytest.raises(ValueError, match="Unknown model"):
        fit_imputations(imputed, split, models=["ridge"])
    with pytest.raises(ValueError, match="failure policy"):
        fit_imputations(imputed, split, on_failure="ignore")
