from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from cessation.config import ID_COLUMN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedRecords:
    frame: pd.DataFrame
    source_path: Path
    sha256: str


def file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    h.update(path.read_bytes())
    return h.hexdigest()


def load_trial_records(input_path: Path) -> LoadedRecords:
    if not input_path.exists():
        raise FileNotFoundError(f"Missing trial data file: {input_path}")

    df = pd.read_csv(input_path)
    if ID_COLUMN in df.columns:
        dup = df[ID_COLUMN][df[ID_COLUMN].duplicated()].tolist()
        if dup:
            raise ValueError(f"Duplicate participant ids in {input_path.name}: {dup[:10]}")
    logger.info("Loaded %d records x %d columns from %s", len(df), df.shape[1], input_path)
    return LoadedRecords(frame=df, source_path=input_path, sha256=file_sha256(input_path))


def write_dataframe_csv(df: pd.DataFrame, path: Path, index: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)
