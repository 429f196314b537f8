from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cessation.config import CATEGORICAL_LEVELS, TreatmentArm, UNKNOWN_LABEL
from cessation.errors import DataError
from cessation.prepare import (
    derive_treatment_arm,
    drop_anomalous_education,
    prepare_records,
    recode_education,
    recode_income,
)


def test_treatment_arm_is_function_of_flags() -> None:
    df = pd.DataFrame({"id": [1, 2, 3, 4], "Var": [1, 1, 0, 0], "BA": [1, 0, 1, 0]})
    arm = derive_treatment_arm(df)
    assert arm.tolist() == [
        TreatmentArm.VAR_BA,
        TreatmentArm.VAR_STANDARD,
        TreatmentArm.PLACEBO_BA,
        TreatmentArm.PLACEBO_STANDARD,
    ]


def test_treatment_arm_rejects_bad_flags() -> None:
    df = pd.DataFrame({"id": [10, 11, 12], "Var": [1, 2, np.nan], "BA": [0, 0, 1]})
    with pytest.raises(DataError, match=r"ids=\[11, 12\]"):
        derive_treatment_arm(df)


def test_income_and_education_labels() -> None:
    income = recode_income(pd.Series([1, 5, np.nan, 9]))
    assert income.tolist() == ["Less than $20,000", "More than $75,000", UNKNOWN_LABEL, UNKNOWN_LABEL]
    education = recode_education(pd.Series([2, 5, np.nan]))
    assert education.tolist() == ["Some high school", "College graduate", UNKNOWN_LABEL]


def test_anomalous_education_record_removed_once() -> None:
    df = pd.DataFrame({"id": [1, 2, 3], "edu": [3, 1, 5]})
    out = drop_anomalous_education(df)
    assert out["id"].tolist() == [1, 3]

    none = pd.DataFrame({"id": [1, 2], "edu": [3, 4]})
    assert len(drop_anomalous_education(none)) == 2

    twice = pd.DataFrame({"id": [1, 2, 3], "edu": [1, 1, 4]})
    with pytest.raises(DataError, match="at most one"):
        drop_anomalous_education(twice)


def test_prepare_records(raw_trial: pd.DataFrame) -> None:
    cleaned = prepare_records(raw_trial)

    assert len(cleaned) == len(raw_trial) - 1
    assert cleaned.index.name == "id"
    assert cleaned.index.is_unique
    assert 1018 not in cleaned.index

    for col, levels in CATEGORICAL_LEVELS.items():
        assert isinstance(cleaned[col].dtype, pd.CategoricalDtype), col
        assert list(cleaned[col].cat.categories) == levels, col

    assert set(cleaned["trt"].unique()) <= set(TreatmentArm.ALL)
    assert cleaned["trt"].notna().all()
    assert cleaned["income"].notna().all()
    assert (cleaned["income"] == UNKNOWN_LABEL).sum() == raw_trial["inc"].isna().sum()
    assert cleaned["abstinence"].isna().sum() == 3
    assert cleaned["bdi_score"].dtype == float


def test_prepare_records_missing_column(raw_trial: pd.DataFrame) -> None:
    with pytest.raises(DataError, match="NMR"):
        prepare_records(raw_trial.drop(columns="NMR"))


def test_prepare_records_out_of_level_binary(raw_trial: pd.DataFrame) -> None:
    bad = raw_trial.copy()
    bad.loc[5, "sex_ps"] = 2
    with pytest.raises(DataError, match="sex_ps"):
        prepare_records(bad)
