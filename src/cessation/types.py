from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from cessation.cv import SplitMask


@dataclass
class PenalizedFit:
    model: str
    columns: list[str]
    coefficients: pd.Series
    intercept: float
    selected: dict[str, float]
    cv_path: pd.DataFrame
    scaler: Any
    clf: Any
    support: np.ndarray

    def predict_proba(self, x: pd.DataFrame) -> np.ndarray:
        if list(x.columns) != self.columns:
            raise ValueError("Design columns differ from the columns the model was fitted on")
        xs = self.scaler.transform(x.to_numpy(dtype=float))
        return np.asarray(self.clf.predict_proba(xs[:, self.support])[:, 1], dtype=float)


@dataclass
class ImputationFit:
    model: str
    imputation: int
    status: str
    coefficients: pd.Series | None = None
    intercept: float | None = None
    selected: dict[str, float] = field(default_factory=dict)
    cv_path: pd.DataFrame | None = None
    test_ids: pd.Index | None = None
    y_test: np.ndarray | None = None
    y_pred: np.ndarray | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True)
class FitBundle:
    split: SplitMask
    design_columns: list[str]
    fits: list[ImputationFit]
    n_imputations: int

    @property
    def y_test(self) -> pd.Series:
        return self.split.y_test

    def for_model(self, model: str, only_ok: bool = True) -> list[ImputationFit]:
        return [
            f for f in self.fits if f.model == model and (f.ok or not only_ok)
        ]

    def failed(self) -> list[ImputationFit]:
        return [f for f in self.fits if not f.ok]


@dataclass(frozen=True)
class PreparedData:
    raw: pd.DataFrame
    cleaned: pd.DataFrame
    source_sha256: str


@dataclass(frozen=True)
class ModelEvaluation:
    model: str
    pooled: pd.DataFrame
    selected: pd.DataFrame
    auc_by_imputation: pd.DataFrame
    auc_summary: pd.DataFrame
    calibration_bins: pd.DataFrame


@dataclass(frozen=True)
class EvaluationResult:
    by_model: dict[str, ModelEvaluation]

    def auc_table(self) -> pd.DataFrame:
        return pd.concat([e.auc_by_imputation for e in self.by_model.values()], ignore_index=True)

    def auc_summary(self) -> pd.DataFrame:
        return pd.concat([e.auc_summary for e in self.by_model.values()], ignore_index=True)

    def calibration_table(self) -> pd.DataFrame:
        frames = []
        for model, e in self.by_model.items():
            frame = e.calibration_bins.copy()
            frame.insert(0, "model", model)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)
