from __future__ import annotations

import logging
from pathlib import Path

from cessation.artifacts import ensure_figures_dir, ensure_reports_dir, write_csv
from cessation.config import ArtifactName
from cessation.metrics import calibration_smoothers, roc_curves
from cessation.plots import (
    plot_calibration,
    plot_correlation_heatmap,
    plot_roc_overlay,
    plot_variable_importance,
)
from cessation.tables import baseline_by_arm, chi_square_associations, correlation_matrix
from cessation.types import EvaluationResult, FitBundle, PreparedData

logger = logging.getLogger(__name__)


def run_render_report(
    prepared: PreparedData,
    bundle: FitBundle,
    evaluation: EvaluationResult,
    output_dir: Path,
) -> list[Path]:
    reports = ensure_reports_dir(output_dir)
    figures = ensure_figures_dir(output_dir)
    cleaned = prepared.cleaned

    write_csv(chi_square_associations(cleaned), reports / ArtifactName.CHI_SQUARE)
    write_csv(baseline_by_arm(cleaned), reports / ArtifactName.BASELINE_BY_ARM)

    written = [figures / ArtifactName.FIG_CORRELATION]
    plot_correlation_heatmap(correlation_matrix(cleaned), written[0])

    for model, result in evaluation.by_model.items():
        importance_path = figures / ArtifactName.FIG_IMPORTANCE.format(model=model)
        plot_variable_importance(result.selected, model, importance_path)

        roc_path = figures / ArtifactName.FIG_ROC.format(model=model)
        plot_roc_overlay(
            roc_curves(bundle.for_model(model)),
            mean_auc=float(result.auc_summary["mean_ROC_AUC"].iloc[0]),
            sd_auc=float(result.auc_summary["sd_ROC_AUC"].iloc[0]),
            model=model,
            path=roc_path,
        )

        calibration_path = figures / ArtifactName.FIG_CALIBRATION.format(model=model)
        plot_calibration(
            result.calibration_bins,
            calibration_smoothers(result.calibration_bins),
            model=model,
            path=calibration_path,
        )
        written.extend([importance_path, roc_path, calibration_path])

    logger.info("Wrote %d figures to %s", len(written), figures)
    return written
