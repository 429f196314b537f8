from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cessation.config import FailurePolicy, N_IMPUTATIONS, SEED
from cessation.logging_utils import LOG_LEVELS
from cessation.pipeline import run_analysis


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Runbook 02: impute, fit lasso and best-subset models, pool and evaluate"
    )
    parser.add_argument("--input-path", type=Path, default=Path("data/raw/trial_records.csv"))
    parser.add_argument("--output-dir", type=Path, default=Path("."))
    parser.add_argument("--seed", type=int, default=SEED)
    parser.add_argument("--imputations", type=int, default=N_IMPUTATIONS)
    parser.add_argument(
        "--on-failure",
        choices=FailurePolicy.ALL,
        default=FailurePolicy.RAISE,
        help="Abort on a non-converging imputation (raise) or record it and pool the rest (omit).",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Console verbosity; the run log always records DEBUG.",
    )
    args = parser.parse_args()

    result = run_analysis(
        input_path=args.input_path,
        output_dir=args.output_dir,
        project_root=PROJECT_ROOT,
        seed=args.seed,
        m=args.imputations,
        on_failure=args.on_failure,
        render_report=False,
        log_level=args.log_level,
    )
    print(result.evaluation.auc_summary().to_string(index=False))


if __name__ == "__main__":
    main()
