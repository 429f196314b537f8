from cessation.pipeline import (
    run_01_prepare,
    run_02_impute,
    run_03_split_and_fit,
    run_04_pool_and_evaluate,
    run_05_render_report,
    run_06_artifact_audit,
    run_analysis,
)

__all__ = [
    "run_01_prepare",
    "run_02_impute",
    "run_03_split_and_fit",
    "run_04_pool_and_evaluate",
    "run_05_render_report",
    "run_06_artifact_audit",
    "run_analysis",
]
