from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from cessation.config import (
    ArtifactName,
    MANIFEST_REQUIRED_KEYS,
    ModelName,
    REQUIRED_TABLE_ARTIFACTS,
    required_figure_artifacts,
)
from cessation.pooling import POOLED_COLUMNS


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    errors: list[str]


def _ensure_subdir(output_dir: Path, name: str) -> Path:
    target = output_dir / name
    target.mkdir(parents=True, exist_ok=True)
    return target


def ensure_reports_dir(output_dir: Path) -> Path:
    return _ensure_subdir(output_dir, "reports")


def ensure_figures_dir(output_dir: Path) -> Path:
    return _ensure_subdir(output_dir, "figures")


def write_csv(df: pd.DataFrame, path: Path) -> None:
    """Write ``df`` without its index; numeric precision is left to pandas."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def normalize_for_manifest(value: Any) -> Any:
    """JSON-safe copy of ``value``: non-finite floats become null, floats keep 6 significant digits."""
    if isinstance(value, dict):
        return {str(k): normalize_for_manifest(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, pd.Index, np.ndarray)):
        return [normalize_for_manifest(v) for v in value]
    if value is None or value is pd.NA:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (np.integer, int)):
        return int(value)
    if isinstance(value, (np.floating, float)):
        x = float(value)
        return float(f"{x:.6g}") if np.isfinite(x) else None
    if isinstance(value, Path):
        return value.as_posix()
    return value if isinstance(value, str) else str(value)


def write_manifest(manifest: dict[str, Any], path: Path) -> None:
    payload = normalize_for_manifest(manifest)
    missing = [k for k in MANIFEST_REQUIRED_KEYS if k not in payload]
    if missing:
        raise ValueError(f"Manifest missing required keys: {missing}")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, sort_keys=True, indent=2, ensure_ascii=True)


def read_manifest(output_dir: Path) -> dict[str, Any]:
    path = output_dir / "reports" / ArtifactName.MANIFEST
    return json.loads(path.read_text(encoding="utf-8"))


def validate_required_artifacts(output_dir: Path, include_figures: bool = True) -> list[str]:
    errors: list[str] = []
    reports = output_dir / "reports"
    for name in REQUIRED_TABLE_ARTIFACTS:
        if not (reports / name).exists():
            errors.append(f"missing artifact: {name}")
    if include_figures:
        figures = output_dir / "figures"
        for name in required_figure_artifacts():
            if not (figures / name).exists():
                errors.append(f"missing figure: {name}")
    return errors


def _read_csv_if_exists(path: Path) -> pd.DataFrame | None:
    if not path.exists():
        return None
    return pd.read_csv(path)


def _require_columns(df: pd.DataFrame, columns: list[str], errors: list[str], file_name: str) -> bool:
    missing = [c for c in columns if c not in df.columns]
    for c in missing:
        errors.append(f"{file_name}: missing column {c}")
    return not missing


def validate_schema_and_logic(output_dir: Path) -> ValidationResult:
    reports = output_dir / "reports"
    errors: list[str] = []
    manifest = read_manifest(output_dir) if (reports / ArtifactName.MANIFEST).exists() else {}
    n_test = (manifest.get("split") or {}).get("n_test")
    n_test_abstinent = (manifest.get("split") or {}).get("n_test_abstinent")

    for model in ModelName.ALL:
        name = ArtifactName.pooled_for(model)
        pooled = _read_csv_if_exists(reports / name)
        if pooled is None:
            continue
        if not _require_columns(pooled, POOLED_COLUMNS, errors, name):
            continue
        if pooled["predictor"].duplicated().any():
            errors.append(f"{name}: duplicated predictor rows")
        se = pooled["pooled_se"].to_numpy(dtype=float)
        if np.any(se[np.isfinite(se)] < 0.0):
            errors.append(f"{name}: negative pooled_se")
        expected = np.sqrt(
            pooled["within"] + (1.0 + 1.0 / pooled["n_imputations"].clip(lower=1)) * pooled["between"]
        )
        if not np.allclose(expected.to_numpy(dtype=float), se, equal_nan=True, atol=1e-9):
            errors.append(f"{name}: pooled_se inconsistent with within/between terms")

    auc = _read_csv_if_exists(reports / ArtifactName.AUC_BY_IMPUTATION)
    if auc is not None and _require_columns(
        auc, ["model", "imputation", "ROC_AUC"], errors, ArtifactName.AUC_BY_IMPUTATION
    ):
        dup = auc.duplicated(subset=["model", "imputation"])
        if dup.any():
            errors.append(f"{ArtifactName.AUC_BY_IMPUTATION}: duplicated (model, imputation) rows")
        bad = set(auc["model"].astype(str)) - set(ModelName.ALL)
        if bad:
            errors.append(f"{ArtifactName.AUC_BY_IMPUTATION}: invalid model values {sorted(bad)}")
        if n_test is not None and "n_test" in auc.columns and (auc["n_test"] != int(n_test)).any():
            errors.append(f"{ArtifactName.AUC_BY_IMPUTATION}: n_test differs from the split")
        if "n_test_abstinent" in auc.columns and auc["n_test_abstinent"].nunique() > 1:
            errors.append(f"{ArtifactName.AUC_BY_IMPUTATION}: imputations scored against different test outcomes")
        elif n_test_abstinent is not None and "n_test_abstinent" in auc.columns and (
            auc["n_test_abstinent"] != int(n_test_abstinent)
        ).any():
            errors.append(f"{ArtifactName.AUC_BY_IMPUTATION}: n_test_abstinent differs from the split")

    calib = _read_csv_if_exists(reports / ArtifactName.CALIBRATION_BINS)
    if calib is not None and auc is not None and _require_columns(
        calib, ["model", "bin", "n"], errors, ArtifactName.CALIBRATION_BINS
    ):
        for model, grp in calib.groupby("model"):
            n_fits = int((auc["model"] == model).sum())
            if n_test is not None and int(grp["n"].sum()) != n_fits * int(n_test):
                errors.append(
                    f"{ArtifactName.CALIBRATION_BINS}: model={model} bin counts "
                    f"{int(grp['n'].sum())} != {n_fits} x {int(n_test)}"
                )

    split = _read_csv_if_exists(reports / ArtifactName.SPLIT_MASK)
    if split is not None and n_test is not None:
        if int(split["is_test"].astype(bool).sum()) != int(n_test):
            errors.append(f"{ArtifactName.SPLIT_MASK}: test rows differ from manifest n_test")

    return ValidationResult(ok=len(errors) == 0, errors=errors)
