from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

import pandas as pd

from cessation.artifacts import ValidationResult, ensure_reports_dir, write_manifest
from cessation.common.meta import git_commit_and_dirty, library_versions
from cessation.config import (
    ArtifactName,
    CALIBRATION_N_BINS,
    FailurePolicy,
    IMPUTATION_MAX_ITER,
    N_IMPUTATIONS,
    PREDICTOR_FORMULA,
    Paths,
    SEED,
    TEST_FRAC,
)
from cessation.driver import selected_penalties
from cessation.logging_utils import close_logging, configure_logging
from cessation.types import EvaluationResult, FitBundle, PreparedData
from cessation.workflows import (
    run_artifact_audit,
    run_impute,
    run_pool_and_evaluate,
    run_prepare,
    run_render_report,
    run_split_and_fit,
)

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


@dataclass(frozen=True)
class AnalysisResult:
    prepared: PreparedData
    bundle: FitBundle
    evaluation: EvaluationResult
    manifest: dict[str, Any]
    audit: ValidationResult | None


def run_01_prepare(input_path: Path, output_dir: Path) -> PreparedData:
    return run_prepare(input_path=input_path, output_dir=output_dir)


def run_02_impute(
    prepared: PreparedData,
    m: int = N_IMPUTATIONS,
    max_iter: int = IMPUTATION_MAX_ITER,
    seed: int = SEED,
) -> list[pd.DataFrame]:
    return run_impute(prepared, m=m, max_iter=max_iter, seed=seed)


def run_03_split_and_fit(
    prepared: PreparedData,
    tables: list[pd.DataFrame],
    output_dir: Path,
    seed: int = SEED,
    test_frac: float = TEST_FRAC,
    on_failure: str = FailurePolicy.RAISE,
    model_kwargs: dict[str, dict[str, Any]] | None = None,
) -> FitBundle:
    return run_split_and_fit(
        prepared,
        tables,
        output_dir=output_dir,
        seed=seed,
        test_frac=test_frac,
        on_failure=on_failure,
        model_kwargs=model_kwargs,
    )


def run_04_pool_and_evaluate(
    bundle: FitBundle, output_dir: Path, n_bins: int = CALIBRATION_N_BINS
) -> EvaluationResult:
    return run_pool_and_evaluate(bundle, output_dir=output_dir, n_bins=n_bins)


def run_05_render_report(
    prepared: PreparedData,
    bundle: FitBundle,
    evaluation: EvaluationResult,
    output_dir: Path,
) -> list[Path]:
    return run_render_report(prepared, bundle, evaluation, output_dir=output_dir)


def run_06_artifact_audit(output_dir: Path, include_figures: bool = True) -> ValidationResult:
    return run_artifact_audit(output_dir=output_dir, include_figures=include_figures)


def build_manifest(
    paths: Paths,
    prepared: PreparedData,
    bundle: FitBundle,
    seed: int,
    test_frac: float,
    on_failure: str,
) -> dict[str, Any]:
    commit, dirty = git_commit_and_dirty(paths.project_root)
    penalties = selected_penalties(bundle)
    failed = [
        {"model": f.model, "imputation": f.imputation, "error": f.error} for f in bundle.failed()
    ]
    return {
        "manifest_version": MANIFEST_VERSION,
        "git_commit": commit,
        "git_dirty": dirty,
        "python_executable": sys.executable,
        "library_versions": library_versions(),
        "seed_policy": {
            "split_seed": seed,
            "cv_seed": seed,
            "imputation_seeds": [seed + k for k in range(bundle.n_imputations)],
        },
        "input_path": str(paths.input_path),
        "input_sha256": prepared.source_sha256,
        "n_records_raw": int(len(prepared.raw)),
        "n_records_cleaned": int(len(prepared.cleaned)),
        "n_imputations": bundle.n_imputations,
        "failure_policy": on_failure,
        "split": {
            "test_frac": test_frac,
            "n_train": bundle.split.n_train,
            "n_test": bundle.split.n_test,
            "n_test_abstinent": int(bundle.y_test.sum()),
        },
        "predictor_formula": PREDICTOR_FORMULA,
        "design_columns": bundle.design_columns,
        "selected_penalties": penalties.loc[penalties["status"] == "ok"]
        .drop(columns=["error"])
        .to_dict(orient="records"),
        "failed_imputations": failed,
    }


def run_analysis(
    input_path: Path,
    output_dir: Path,
    project_root: Path,
    seed: int = SEED,
    m: int = N_IMPUTATIONS,
    max_iter: int = IMPUTATION_MAX_ITER,
    test_frac: float = TEST_FRAC,
    on_failure: str = FailurePolicy.RAISE,
    model_kwargs: dict[str, dict[str, Any]] | None = None,
    render_report: bool = True,
    audit: bool = True,
    log_level: str = "INFO",
) -> AnalysisResult:
    """Run prepare, impute, fit, pool/evaluate and optionally report and audit.

    Artifacts land under ``output_dir/reports`` and ``output_dir/figures``;
    the run log goes to ``output_dir/logs``. The audit is only run when the
    report was rendered, since it checks for the figures. A failing stage is
    logged to the run log and re-raised.
    """
    paths = Paths(project_root=project_root, input_path=input_path, output_dir=output_dir)
    run_log = configure_logging(log_dir=paths.logs_dir, run_id=uuid4().hex[:12], console_level=log_level)
    try:
        return _run_stages(
            paths,
            run_id=run_log.run_id,
            seed=seed,
            m=m,
            max_iter=max_iter,
            test_frac=test_frac,
            on_failure=on_failure,
            model_kwargs=model_kwargs,
            render_report=render_report,
            audit=audit,
        )
    except Exception:
        logger.exception("Analysis failed; see %s", run_log.log_path)
        raise
    finally:
        close_logging(run_log)


def _run_stages(
    paths: Paths,
    run_id: str,
    seed: int,
    m: int,
    max_iter: int,
    test_frac: float,
    on_failure: str,
    model_kwargs: dict[str, dict[str, Any]] | None,
    render_report: bool,
    audit: bool,
) -> AnalysisResult:
    input_path, output_dir = paths.input_path, paths.output_dir
    logger.info("Starting analysis: input=%s output=%s seed=%d M=%d", input_path, output_dir, seed, m)

    prepared = run_01_prepare(input_path, output_dir)
    tables = run_02_impute(prepared, m=m, max_iter=max_iter, seed=seed)
    bundle = run_03_split_and_fit(
        prepared,
        tables,
        output_dir,
        seed=seed,
        test_frac=test_frac,
        on_failure=on_failure,
        model_kwargs=model_kwargs,
    )
    evaluation = run_04_pool_and_evaluate(bundle, output_dir)

    manifest = build_manifest(paths, prepared, bundle, seed=seed, test_frac=test_frac, on_failure=on_failure)
    manifest["run_id"] = run_id
    write_manifest(manifest, ensure_reports_dir(output_dir) / ArtifactName.MANIFEST)

    result: ValidationResult | None = None
    if render_report:
        run_05_render_report(prepared, bundle, evaluation, output_dir)
        if audit:
            result = run_06_artifact_audit(output_dir)
            if result.ok:
                logger.info("Artifact audit passed")
            else:
                for err in result.errors:
                    logger.error("Artifact audit: %s", err)

    return AnalysisResult(
        prepared=prepared,
        bundle=bundle,
        evaluation=evaluation,
        manifest=manifest,
        audit=result,
    )
