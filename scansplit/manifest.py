"""Split manifest export.

Writes the computed split list as a table, one row per split, so the
dispatching side (or an operator) can inspect what a job will run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from scansplit.splits import Split

logger = logging.getLogger(__name__)

MANIFEST_FORMATS = ("parquet", "csv", "json")

MANIFEST_COLUMNS = [
    "split_index",
    "scan_index",
    "table",
    "partition",
    "start_row",
    "stop_row",
    "locations",
    "columns",
    "max_versions",
    "cache_blocks",
    "caching",
    "time_range_start",
    "time_range_end",
]


def splits_to_frame(splits: Sequence[Split]) -> pd.DataFrame:
    """One row per split, in split order."""
    records = [
        {"split_index": index, **split.to_record()} for index, split in enumerate(splits)
    ]
    df = pd.DataFrame.from_records(records, columns=MANIFEST_COLUMNS)
    # Int64 straight from the ints keeps values near 2**63 exact
    for column in ("time_range_start", "time_range_end"):
        df[column] = pd.array([record[column] for record in records], dtype="Int64")
    return df


def infer_format(path: Path) -> str:
    suffix = path.suffix.lower().lstrip(".")
    if suffix in ("jsonl", "ndjson"):
        return "json"
    if suffix in MANIFEST_FORMATS:
        return suffix
    return "parquet"


def write_manifest(
    splits: Sequence[Split],
    out_path: Union[str, Path],
    fmt: Union[str, None] = None,
    compression: str = "snappy",
) -> Path:
    """Write the split manifest to ``out_path``.

    Args:
        splits: Splits in job order
        out_path: Destination file
        fmt: parquet, csv or json (JSON lines); inferred from the suffix if omitted
        compression: Parquet compression codec

    Returns:
        The written path
    """
    out_path = Path(out_path)
    fmt = (fmt or infer_format(out_path)).lower()
    if fmt not in MANIFEST_FORMATS:
        raise ValueError(f"Unsupported manifest format '{fmt}'. Use one of: {', '.join(MANIFEST_FORMATS)}")

    df = splits_to_frame(splits)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "parquet":
        df.to_parquet(out_path, index=False, compression=compression, engine="pyarrow")
    elif fmt == "csv":
        df.to_csv(out_path, index=False)
    else:
        df.to_json(out_path, orient="records", lines=True)

    logger.info("Wrote %d split(s) to %s manifest at %s", len(df), fmt, out_path)
    return out_path


def summarize(splits: Sequence[Split]) -> List[str]:
    """Human-readable lines: split count per scan and per location."""
    if not splits:
        return ["0 splits"]
    df = splits_to_frame(splits)
    lines = [f"{len(df)} splits across {df['scan_index'].nunique()} scan(s)"]
    for scan_index, count in df.groupby("scan_index").size().items():
        lines.append(f"  scan {scan_index}: {count} split(s)")
    by_location = df["locations"].replace("", "<unknown>").value_counts()
    for location, count in by_location.sort_index().items():
        lines.append(f"  {location}: {count} split(s)")
    return lines
