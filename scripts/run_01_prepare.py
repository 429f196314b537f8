from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cessation.prepare import missing_fraction
from cessation.workflows.prepare import run_prepare


def main() -> None:
    parser = argparse.ArgumentParser(description="Runbook 01: load, recode and clean trial records")
    parser.add_argument("--input-path", type=Path, default=Path("data/raw/trial_records.csv"))
    parser.add_argument("--output-dir", type=Path, default=Path("."))
    args = parser.parse_args()

    prepared = run_prepare(input_path=args.input_path, output_dir=args.output_dir)
    print(f"records: {len(prepared.raw)} raw, {len(prepared.cleaned)} cleaned")
    frac = missing_fraction(prepared.cleaned)
    for col, value in frac[frac > 0].items():
        print(f"  missing {col}: {value:.1%}")


if __name__ == "__main__":
    main()
