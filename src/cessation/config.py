from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

SEED: Final[int] = 2023

N_IMPUTATIONS: Final[int] = 5
IMPUTATION_MAX_ITER: Final[int] = 50
TEST_FRAC: Final[float] = 0.2

LASSO_N_FOLDS: Final[int] = 10
LASSO_N_LAMBDA: Final[int] = 100
LASSO_MAX_ITER: Final[int] = 5000

BEST_SUBSET_N_FOLDS: Final[int] = 5
BEST_SUBSET_GAMMA_GRID: Final[list[float]] = [1e-4, 1e-3, 1e-2, 1e-1, 1.0]
BEST_SUBSET_MAX_SUPPORT: Final[int] = 10

CALIBRATION_N_BINS: Final[int] = 5
LOWESS_FRAC: Final[float] = 2.0 / 3.0
EPS_PROBA: Final[float] = 1e-12

ID_COLUMN: Final[str] = "id"
OUTCOME: Final[str] = "abstinence"
ARM_COLUMN: Final[str] = "trt"
VARENICLINE_FLAG: Final[str] = "Var"
BEHAVIORAL_FLAG: Final[str] = "BA"
INCOME_CODE: Final[str] = "inc"
EDUCATION_CODE: Final[str] = "edu"
INCOME_LABEL: Final[str] = "income"
EDUCATION_LABEL: Final[str] = "education"

NUMERIC_COLUMNS: Final[list[str]] = [
    "age_ps",
    "cpd_ps",
    "ftcd_score",
    "bdi_score",
    "shaps_score",
    "craving_total",
    "NMR",
    "bmi",
]

BINARY_COLUMNS: Final[list[str]] = [
    "sex_ps",
    "NHW",
    "Black",
    "Hisp",
    "menthol",
    "antidepmed",
]

REQUIRED_COLUMNS: Final[list[str]] = (
    [ID_COLUMN, OUTCOME, VARENICLINE_FLAG, BEHAVIORAL_FLAG, INCOME_CODE, EDUCATION_CODE]
    + NUMERIC_COLUMNS
    + BINARY_COLUMNS
)

ANOMALOUS_EDUCATION_CODE: Final[int] = 1

INCOME_LABELS: Final[dict[int, str]] = {
    1: "Less than $20,000",
    2: "$20,000-35,000",
    3: "$35,001-50,000",
    4: "$50,001-75,000",
    5: "More than $75,000",
}

EDUCATION_LABELS: Final[dict[int, str]] = {
    1: "Grade school",
    2: "Some high school",
    3: "High school graduate or GED",
    4: "Some college/technical school",
    5: "College graduate",
}

UNKNOWN_LABEL: Final[str] = "Unknown"


class TreatmentArm:
    VAR_BA = "Varenicline + BASC"
    VAR_STANDARD = "Varenicline + Standard"
    PLACEBO_BA = "Placebo + BASC"
    PLACEBO_STANDARD = "Placebo + Standard"

    # (Var, BA) -> label
    BY_FLAGS = {
        (1, 1): VAR_BA,
        (1, 0): VAR_STANDARD,
        (0, 1): PLACEBO_BA,
        (0, 0): PLACEBO_STANDARD,
    }
    ALL = [PLACEBO_STANDARD, PLACEBO_BA, VAR_STANDARD, VAR_BA]


CATEGORICAL_LEVELS: Final[dict[str, list]] = {
    ARM_COLUMN: TreatmentArm.ALL,
    INCOME_LABEL: list(INCOME_LABELS.values()) + [UNKNOWN_LABEL],
    EDUCATION_LABEL: [
        label for code, label in EDUCATION_LABELS.items() if code != ANOMALOUS_EDUCATION_CODE
    ]
    + [UNKNOWN_LABEL],
    "sex_ps": [0, 1],
    "NHW": [0, 1],
    "Black": [0, 1],
    "Hisp": [0, 1],
    "menthol": [0, 1],
    "antidepmed": [0, 1],
    OUTCOME: [0, 1],
}

CATEGORICAL_COLUMNS: Final[list[str]] = list(CATEGORICAL_LEVELS)

# Derived labels are carried through imputation, never imputed themselves.
DERIVED_COLUMNS: Final[list[str]] = [ARM_COLUMN, INCOME_LABEL, EDUCATION_LABEL]

PREDICTOR_FORMULA: Final[str] = (
    "C(trt) + age_ps + C(sex_ps) + C(NHW) + C(Black) + C(Hisp) + C(income) + C(education)"
    " + cpd_ps + ftcd_score + bdi_score + shaps_score + craving_total + NMR + bmi"
    " + C(menthol) + C(antidepmed)"
)


class ModelName:
    LASSO = "lasso"
    BEST_SUBSET = "best_subset"
    ALL = [LASSO, BEST_SUBSET]


class FailurePolicy:
    RAISE = "raise"
    OMIT = "omit"
    ALL = [RAISE, OMIT]


class ArtifactName:
    CLEANED = "cleaned_records.csv"
    SPLIT_MASK = "split_mask.csv"
    POOLED_LASSO = "pooled_coefficients_lasso.csv"
    POOLED_BEST_SUBSET = "pooled_coefficients_best_subset.csv"
    COEFFICIENTS_BY_IMPUTATION = "coefficients_by_imputation.csv"
    SELECTED_PENALTIES = "selected_penalties.csv"
    AUC_BY_IMPUTATION = "auc_by_imputation.csv"
    AUC_SUMMARY = "auc_summary.csv"
    CALIBRATION_BINS = "calibration_bins.csv"
    CHI_SQUARE = "chi_square_associations.csv"
    BASELINE_BY_ARM = "baseline_by_arm.csv"
    FIG_CORRELATION = "fig_correlation_heatmap.png"
    FIG_IMPORTANCE = "fig_variable_importance_{model}.png"
    FIG_ROC = "fig_roc_{model}.png"
    FIG_CALIBRATION = "fig_calibration_{model}.png"
    MANIFEST = "run_manifest.json"

    @staticmethod
    def pooled_for(model: str) -> str:
        return {
            ModelName.LASSO: ArtifactName.POOLED_LASSO,
            ModelName.BEST_SUBSET: ArtifactName.POOLED_BEST_SUBSET,
        }[model]


REQUIRED_TABLE_ARTIFACTS: Final[list[str]] = [
    ArtifactName.CLEANED,
    ArtifactName.SPLIT_MASK,
    ArtifactName.POOLED_LASSO,
    ArtifactName.POOLED_BEST_SUBSET,
    ArtifactName.COEFFICIENTS_BY_IMPUTATION,
    ArtifactName.SELECTED_PENALTIES,
    ArtifactName.AUC_BY_IMPUTATION,
    ArtifactName.AUC_SUMMARY,
    ArtifactName.CALIBRATION_BINS,
    ArtifactName.CHI_SQUARE,
    ArtifactName.BASELINE_BY_ARM,
    ArtifactName.MANIFEST,
]


def required_figure_artifacts() -> list[str]:
    out = [ArtifactName.FIG_CORRELATION]
    for model in ModelName.ALL:
        out.append(ArtifactName.FIG_IMPORTANCE.format(model=model))
        out.append(ArtifactName.FIG_ROC.format(model=model))
        out.append(ArtifactName.FIG_CALIBRATION.format(model=model))
    return out


@dataclass(frozen=True)
class Paths:
    project_root: Path
    input_path: Path
    output_dir: Path

    @property
    def reports_dir(self) -> Path:
        return self.output_dir / "reports"

    @property
    def figures_dir(self) -> Path:
        return self.output_dir / "figures"

    @property
    def logs_dir(self) -> Path:
        return self.output_dir / "logs"


MANIFEST_REQUIRED_KEYS: Final[list[str]] = [
    "manifest_version",
    "git_commit",
    "git_dirty",
    "python_executable",
    "library_versions",
    "seed_policy",
    "input_sha256",
    "n_records_raw",
    "n_records_cleaned",
    "n_imputations",
    "split",
    "predictor_formula",
    "selected_penalties",
    "failed_imputations",
]
