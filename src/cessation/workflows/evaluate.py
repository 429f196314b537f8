from __future__ import annotations

import logging
from pathlib import Path

from cessation.artifacts import ensure_reports_dir, write_csv
from cessation.config import ArtifactName, CALIBRATION_N_BINS
from cessation.errors import ConvergenceError
from cessation.metrics import auc_by_imputation, calibration_bins, summarize_auc
from cessation.pooling import pool_coefficients, selected_variables
from cessation.types import EvaluationResult, FitBundle, ModelEvaluation

logger = logging.getLogger(__name__)


def evaluate_model(bundle: FitBundle, model: str, n_bins: int = CALIBRATION_N_BINS) -> ModelEvaluation:
    fits = bundle.for_model(model)
    if not fits:
        raise ConvergenceError(f"{model}: every imputation failed, nothing to pool")
    pooled = pool_coefficients([f.coefficients for f in fits])
    selected = selected_variables(pooled)
    aucs = auc_by_imputation(fits)
    summary = summarize_auc(aucs)
    bins = calibration_bins(fits, n_bins=n_bins)

    logger.info(
        "%s: %d/%d predictors selected, AUC %.3f +/- %.3f over %d imputations",
        model,
        len(selected),
        len(pooled),
        float(summary["mean_ROC_AUC"].iloc[0]),
        float(summary["sd_ROC_AUC"].iloc[0]),
        len(fits),
    )
    return ModelEvaluation(
        model=model,
        pooled=pooled,
        selected=selected,
        auc_by_imputation=aucs,
        auc_summary=summary,
        calibration_bins=bins,
    )


def run_pool_and_evaluate(
    bundle: FitBundle,
    output_dir: Path,
    n_bins: int = CALIBRATION_N_BINS,
) -> EvaluationResult:
    reports = ensure_reports_dir(output_dir)
    models = list(dict.fromkeys(f.model for f in bundle.fits))
    by_model = {model: evaluate_model(bundle, model, n_bins=n_bins) for model in models}
    result = EvaluationResult(by_model=by_model)

    for model, evaluation in by_model.items():
        write_csv(evaluation.pooled, reports / ArtifactName.pooled_for(model))
    write_csv(result.auc_table(), reports / ArtifactName.AUC_BY_IMPUTATION)
    write_csv(result.auc_summary(), reports / ArtifactName.AUC_SUMMARY)
    write_csv(result.calibration_table(), reports / ArtifactName.CALIBRATION_BINS)
    return result
