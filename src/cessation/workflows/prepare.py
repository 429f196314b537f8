from __future__ import annotations

import logging
from pathlib import Path

from cessation.artifacts import ensure_reports_dir
from cessation.config import ArtifactName
from cessation.io import load_trial_records, write_dataframe_csv
from cessation.prepare import prepare_records
from cessation.types import PreparedData

logger = logging.getLogger(__name__)


def run_prepare(input_path: Path, output_dir: Path) -> PreparedData:
    reports = ensure_reports_dir(output_dir)
    loaded = load_trial_records(input_path)
    cleaned = prepare_records(loaded.frame)
    write_dataframe_csv(cleaned, reports / ArtifactName.CLEANED, index=True)
    return PreparedData(raw=loaded.frame, cleaned=cleaned, source_sha256=loaded.sha256)
