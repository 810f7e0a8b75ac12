"""I/O helpers for the report pipeline: local table loading and report writing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping

import pandas as pd

from .schema import TABLE_NAMES, PreconditionError


SUPPORTED_FORMATS = ("csv", "parquet")


def load_dataframe(path: str) -> pd.DataFrame:
    """Load a DataFrame from a CSV or Parquet path."""
    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    if path_obj.suffix.lower() == ".parquet":
        return pd.read_parquet(path_obj)
    if path_obj.suffix.lower() == ".csv":
        return pd.read_csv(path_obj)

    raise ValueError("Unsupported file type. Use .csv or .parquet")


def find_table_file(data_dir: Path, table: str) -> Path | None:
    """Return <table>.parquet if present, else <table>.csv, else None."""
    for suffix in (".parquet", ".csv"):
        candidate = data_dir / f"{table}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_tables(data_dir: str, tables: Iterable[str] = TABLE_NAMES) -> Dict[str, pd.DataFrame]:
    """
    Load one file per table from a directory.

    Expected files (parquet preferred over csv):
        - campaigns, conversions, daily_spend, revenue, users, user_acquisition

    Raises:
        FileNotFoundError: If data_dir does not exist.
        PreconditionError: If any table file is missing.
    """
    data_path = Path(data_dir)
    if not data_path.is_dir():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")

    tables = list(tables)
    missing = [table for table in tables if find_table_file(data_path, table) is None]
    if missing:
        raise PreconditionError(
            f"Missing table files in {data_dir}: {missing} (expected <table>.parquet or <table>.csv)"
        )

    loaded: Dict[str, pd.DataFrame] = {}
    for table in tables:
        path = find_table_file(data_path, table)
        loaded[table] = load_dataframe(str(path))
        logging.info(f"Loaded {table}: {loaded[table].shape} from {path.name}")

    return loaded


def _write_csv(df: pd.DataFrame, path: Path) -> None:
    df.to_csv(path, index=False)


def _write_parquet(df: pd.DataFrame, path: Path) -> None:
    df.to_parquet(path, index=False)


def write_outputs(
    outputs: Mapping[str, pd.DataFrame],
    output_dir: str,
    formats: Iterable[str] = ("csv",),
    prefix: str = "",
) -> Dict[str, Dict[str, str]]:
    """
    Write output DataFrames to disk.

    Empty reports are written too (header only for csv), so an empty result
    stays distinguishable from a report that never ran.

    Returns:
        Dict mapping output name to dict of {format: filepath}.
    """
    formats = [fmt.lower() for fmt in formats]
    unsupported = [fmt for fmt in formats if fmt not in SUPPORTED_FORMATS]
    if unsupported:
        raise ValueError(f"Unsupported format: {unsupported[0]}")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    results: Dict[str, Dict[str, str]] = {}
    for name, df in outputs.items():
        results[name] = {}
        for fmt in formats:
            out_path = output_path / f"{prefix}{name}.{fmt}"
            if fmt == "csv":
                _write_csv(df, out_path)
            else:
                try:
                    _write_parquet(df, out_path)
                except ImportError as exc:  # pragma: no cover - optional dependency
                    raise RuntimeError(
                        "Failed to write parquet. Ensure pyarrow or fastparquet is installed."
                    ) from exc

            results[name][fmt] = str(out_path)
        logging.info(f"Saved {name}: {df.shape}")

    logging.info(f"All results saved to {output_dir}")
    return results
