from __future__ import annotations

import numpy as np
import pandas as pd
from patsy import dmatrix

from cessation.config import OUTCOME, PREDICTOR_FORMULA
from cessation.errors import DataError


def build_design_matrix(
    df: pd.DataFrame,
    formula: str = PREDICTOR_FORMULA,
    outcome: str = OUTCOME,
) -> tuple[pd.DataFrame, pd.Series]:
    """Design matrix for ``formula`` without the intercept column, plus the 0/1 outcome.

    Categorical columns carry fixed category sets, so every imputed copy yields
    the same design columns.
    """
    if df[outcome].isna().any():
        raise DataError(f"{outcome} has missing values; impute before building the design")
    x = dmatrix(formula, df, return_type="dataframe", NA_action="raise")
    if "Intercept" in x.columns:
        x = x.drop(columns="Intercept")
    x.index = df.index
    y = pd.Series(
        np.asarray(df[outcome].astype(int), dtype=int), index=df.index, name=outcome
    )
    return x, y
