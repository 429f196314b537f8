from cessation.workflows.audit import run_artifact_audit
from cessation.workflows.evaluate import run_pool_and_evaluate
from cessation.workflows.fit import run_impute, run_split_and_fit
from cessation.workflows.prepare import run_prepare
from cessation.workflows.report import run_render_report

__all__ = [
    "run_prepare",
    "run_impute",
    "run_split_and_fit",
    "run_pool_and_evaluate",
    "run_render_report",
    "run_artifact_audit",
]
