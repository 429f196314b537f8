from __future__ import annotations

import logging

import pandas as pd

from cessation.config import (
    ANOMALOUS_EDUCATION_CODE,
    ARM_COLUMN,
    BEHAVIORAL_FLAG,
    BINARY_COLUMNS,
    CATEGORICAL_LEVELS,
    EDUCATION_CODE,
    EDUCATION_LABEL,
    EDUCATION_LABELS,
    ID_COLUMN,
    INCOME_CODE,
    INCOME_LABEL,
    INCOME_LABELS,
    NUMERIC_COLUMNS,
    OUTCOME,
    REQUIRED_COLUMNS,
    TreatmentArm,
    UNKNOWN_LABEL,
    VARENICLINE_FLAG,
)
from cessation.errors import DataError

logger = logging.getLogger(__name__)


def require_columns(df: pd.DataFrame, columns: list[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataError(f"Missing required column(s): {missing}")


def _ids_for(df: pd.DataFrame, mask: pd.Series) -> list:
    if ID_COLUMN in df.columns:
        return df.loc[mask, ID_COLUMN].tolist()
    return df.index[mask].tolist()


def derive_treatment_arm(df: pd.DataFrame) -> pd.Series:
    """Map the (Var, BA) flag pair onto one of the four arms.

    Every row must land on exactly one case; a missing or out-of-range flag
    raises ``DataError`` listing the offending participant ids.
    """
    require_columns(df, [VARENICLINE_FLAG, BEHAVIORAL_FLAG])
    var = pd.to_numeric(df[VARENICLINE_FLAG], errors="coerce")
    ba = pd.to_numeric(df[BEHAVIORAL_FLAG], errors="coerce")

    arm = pd.Series(pd.NA, index=df.index, dtype="object", name=ARM_COLUMN)
    for (var_flag, ba_flag), label in TreatmentArm.BY_FLAGS.items():
        arm[(var == var_flag) & (ba == ba_flag)] = label

    unmatched = arm.isna()
    if unmatched.any():
        raise DataError(
            f"No treatment arm for {int(unmatched.sum())} record(s) "
            f"(ids={_ids_for(df, unmatched)[:10]}); {VARENICLINE_FLAG}/{BEHAVIORAL_FLAG} must be 0/1"
        )
    return arm


def _recode(codes: pd.Series, table: dict[int, str]) -> pd.Series:
    numeric = pd.to_numeric(codes, errors="coerce")
    return numeric.map(table).fillna(UNKNOWN_LABEL).astype(object)


def recode_income(codes: pd.Series) -> pd.Series:
    return _recode(codes, INCOME_LABELS)


def recode_education(codes: pd.Series) -> pd.Series:
    return _recode(codes, EDUCATION_LABELS)


def drop_anomalous_education(df: pd.DataFrame) -> pd.DataFrame:
    require_columns(df, [EDUCATION_CODE])
    codes = pd.to_numeric(df[EDUCATION_CODE], errors="coerce")
    mask = codes == ANOMALOUS_EDUCATION_CODE
    n_match = int(mask.sum())
    if n_match > 1:
        raise DataError(
            f"Expected at most one record with {EDUCATION_CODE}={ANOMALOUS_EDUCATION_CODE}, "
            f"found {n_match} (ids={_ids_for(df, mask)})"
        )
    if n_match == 0:
        logger.warning(
            "No record with %s=%d; nothing removed", EDUCATION_CODE, ANOMALOUS_EDUCATION_CODE
        )
        return df.copy()
    logger.info("Removing record id=%s (%s=%d)", _ids_for(df, mask)[0], EDUCATION_CODE, ANOMALOUS_EDUCATION_CODE)
    return df.loc[~mask].copy()


def cast_categoricals(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for col, levels in CATEGORICAL_LEVELS.items():
        require_columns(out, [col])
        values = out[col]
        if col not in (ARM_COLUMN, INCOME_LABEL, EDUCATION_LABEL):
            values = pd.to_numeric(values, errors="coerce").astype("Int64")
        bad = values.notna() & ~values.isin(levels)
        if bad.any():
            raise DataError(
                f"{col}: values {sorted(set(values[bad].tolist()))} outside levels {levels}"
            )
        out[col] = pd.Categorical(values, categories=levels)
    return out


def prepare_records(raw: pd.DataFrame) -> pd.DataFrame:
    """Derive arm and ordinal labels, remove the anomalous record, cast categoricals.

    The returned frame is indexed by participant id.
    """
    require_columns(raw, REQUIRED_COLUMNS)

    df = raw.copy()
    df[ARM_COLUMN] = derive_treatment_arm(df)
    df[INCOME_LABEL] = recode_income(df[INCOME_CODE])
    df[EDUCATION_LABEL] = recode_education(df[EDUCATION_CODE])
    df = drop_anomalous_education(df)

    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    df = cast_categoricals(df)

    df = df.set_index(ID_COLUMN, drop=True)
    df.index.name = ID_COLUMN

    n_missing = int(df[NUMERIC_COLUMNS + BINARY_COLUMNS + [OUTCOME]].isna().sum().sum())
    logger.info(
        "Prepared %d records (%d removed); %d missing model cells",
        len(df),
        len(raw) - len(df),
        n_missing,
    )
    logger.debug("Arm counts: %s", df[ARM_COLUMN].value_counts().to_dict())
    return df


def model_columns() -> list[str]:
    return NUMERIC_COLUMNS + [c for c in CATEGORICAL_LEVELS]


def missing_fraction(df: pd.DataFrame) -> pd.Series:
    cols = [c for c in model_columns() if c in df.columns]
    return df[cols].isna().mean().astype(float)
