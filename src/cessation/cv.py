from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from cessation.config import OUTCOME, SEED, TEST_FRAC
from cessation.errors import DataError


@dataclass(frozen=True)
class SplitMask:
    """Fixed train/test partition over participant ids; ``True`` marks a test row.

    ``y_test`` holds the observed outcome of every test row, in ``test_ids``
    order. It is built once from the cleaned table and is the ground truth
    for every imputation's held-out predictions.
    """

    mask: pd.Series
    y_test: pd.Series
    seed: int
    test_frac: float

    @property
    def test_ids(self) -> pd.Index:
        return self.mask.index[self.mask.to_numpy()]

    @property
    def train_ids(self) -> pd.Index:
        return self.mask.index[~self.mask.to_numpy()]

    @property
    def n_test(self) -> int:
        return int(self.mask.sum())

    @property
    def n_train(self) -> int:
        return int((~self.mask).sum())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"id": self.mask.index, "is_test": self.mask.to_numpy(dtype=bool)})


def make_split_mask(
    df: pd.DataFrame,
    seed: int = SEED,
    test_frac: float = TEST_FRAC,
    outcome: str = OUTCOME,
) -> SplitMask:
    """Stratified split over the rows with an observed outcome.

    Rows whose outcome is missing always go to the training side, so every
    test row carries a real, imputation-independent outcome. ``test_frac``
    applies to the observed rows.
    """
    if not 0.0 < test_frac < 1.0:
        raise ValueError(f"test_frac must be in (0, 1), got {test_frac}")
    y = pd.to_numeric(df[outcome].astype(object), errors="coerce")
    observed = np.flatnonzero(y.notna().to_numpy())
    if observed.size == 0:
        raise DataError(f"{outcome}: no observed values to build a test set from")

    _, test_pos = train_test_split(
        observed,
        test_size=test_frac,
        stratify=y.iloc[observed].astype(int).to_numpy(),
        random_state=int(seed),
    )
    is_test = np.zeros(len(df), dtype=bool)
    is_test[test_pos] = True
    mask = pd.Series(is_test, index=df.index.copy(), name="is_test")
    y_test = y[is_test].astype(int).rename(outcome)
    return SplitMask(mask=mask, y_test=y_test, seed=int(seed), test_frac=float(test_frac))


def apply_split(df: pd.DataFrame, split: SplitMask) -> tuple[pd.DataFrame, pd.DataFrame]:
    if not df.index.equals(split.mask.index):
        raise ValueError("Split mask index does not match table index")
    is_test = split.mask.to_numpy()
    return df.loc[~is_test], df.loc[is_test]


def make_cv_folds(y: np.ndarray, n_folds: int, seed: int) -> list[tuple[np.ndarray, np.ndarray]]:
    y = np.asarray(y, dtype=int)
    min_class = int(min(np.sum(y == 1), np.sum(y == 0)))
    n_splits = min(int(n_folds), min_class)
    if n_splits < 2:
        raise ValueError(
            f"Cannot build CV folds: minority class has {min_class} member(s), need >= 2"
        )
    skf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=int(seed))
    return list(skf.split(np.zeros((y.size, 1)), y))
