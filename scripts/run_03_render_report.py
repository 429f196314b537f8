from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cessation.config import N_IMPUTATIONS, SEED
from cessation.logging_utils import LOG_LEVELS
from cessation.pipeline import run_analysis


def main() -> None:
    parser = argparse.ArgumentParser(description="Runbook 03: full analysis with tables and figures")
    parser.add_argument("--input-path", type=Path, default=Path("data/raw/trial_records.csv"))
    parser.add_argument("--output-dir", type=Path, default=Path("."))
    parser.add_argument("--seed", type=int, default=SEED)
    parser.add_argument("--imputations", type=int, default=N_IMPUTATIONS)
    parser.add_argument("--skip-audit", action="store_true")
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
        render_report=True,
        log_level=args.log_level,
        audit=not args.skip_audit,
    )
    if result.audit is not None and not result.audit.ok:
        for err in result.audit.errors:
            print(f"ERROR: {err}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
