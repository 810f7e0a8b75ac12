"""Schema helpers and precondition checks for the warehouse tables."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from .utils import missing_columns


TABLE_NAMES = (
    "campaigns",
    "conversions",
    "daily_spend",
    "revenue",
    "users",
    "user_acquisition",
)

REQUIRED_COLUMNS = {
    "campaigns": ["campaign_id", "channel"],
    "conversions": ["campaign_id", "conversions"],
    "daily_spend": ["campaign_id", "channel", "date", "spend"],
    "revenue": ["user_id", "revenue"],
    "users": ["user_id", "signup_date", "churn_probability"],
    "user_acquisition": ["user_id", "campaign_id"],
}

COLUMN_CANDIDATES = {
    "campaign_id": ["campaign_id", "campaignId", "campaign"],
    "user_id": ["user_id", "userId", "customer_id", "customerId"],
    "channel": ["channel", "channel_name", "source"],
    "conversions": ["conversions", "conversion_count", "conversions_count"],
    "date": ["date", "day", "spend_date", "timestamp"],
    "spend": ["spend", "cost", "ad_spend", "amount_spent"],
    "revenue": ["revenue", "amount", "transaction_amount"],
    # "timestamp" is also a date alias; infer_column_map only looks at the
    # canonical columns of one table, so the two never compete.
    "transaction_time": ["transaction_time", "transaction_ts", "created_at", "timestamp"],
    "signup_date": ["signup_date", "signupDate", "registered_at"],
    "churn_probability": ["churn_probability", "churn_prob", "churnProbability"],
}

ID_COLUMNS = ("campaign_id", "user_id")
NUMERIC_COLUMNS = ("conversions", "spend", "revenue", "churn_probability")
DATE_COLUMNS = ("date", "signup_date")


class PreconditionError(ValueError):
    """Input tables are missing, incomplete, or hold out-of-range values."""


def _first_match(columns: Iterable[str], candidates: Iterable[str]) -> Optional[str]:
    col_set = set(columns)
    for candidate in candidates:
        if candidate in col_set:
            return candidate
    return None


def infer_column_map(
    df: pd.DataFrame,
    table: str,
    overrides: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Infer a mapping of source column -> canonical column name for one table.

    Only canonical columns the table uses are considered, so a `timestamp`
    column becomes `date` in daily_spend but `transaction_time` in revenue.

    Args:
        df: Input DataFrame.
        table: Table name, one of TABLE_NAMES.
        overrides: Optional mapping of canonical column name -> source column.

    Returns:
        Mapping of source column names to canonical column names.
    """
    overrides = overrides or {}
    wanted = list(REQUIRED_COLUMNS[table])
    if table == "revenue":
        wanted.append("transaction_time")

    mapping: Dict[str, str] = {}
    for standard_name in wanted:
        if overrides.get(standard_name):
            source_name = overrides[standard_name]
        else:
            source_name = _first_match(df.columns, COLUMN_CANDIDATES[standard_name])

        if source_name and source_name in df.columns and source_name not in mapping:
            mapping[source_name] = standard_name

    return mapping


def apply_column_map(df: pd.DataFrame, column_map: Dict[str, str]) -> pd.DataFrame:
    """Return a copy of df with columns renamed using the provided map."""
    return df.rename(columns=column_map).copy()


def ensure_date_column(df: pd.DataFrame, date_col: str = "date") -> pd.DataFrame:
    """
    Ensure the date column exists and is converted to pandas datetime (date).

    Null dates stay null; values that are present but cannot be parsed are fatal.
    """
    if date_col not in df.columns:
        raise PreconditionError(f"Missing required date column '{date_col}'.")

    df = df.copy()
    parsed = pd.to_datetime(df[date_col], errors="coerce")
    malformed = parsed.isna() & df[date_col].notna()
    if malformed.any():
        sample = df.loc[malformed, date_col].head(3).tolist()
        raise PreconditionError(
            f"Column '{date_col}' has {int(malformed.sum())} unparseable dates (e.g. {sample})"
        )
    df[date_col] = parsed.dt.date
    return df


def _coerce_numeric(df: pd.DataFrame, column: str, table: str) -> pd.Series:
    values = pd.to_numeric(df[column], errors="coerce")
    malformed = values.isna() & df[column].notna()
    if malformed.any():
        raise PreconditionError(
            f"{table}.{column} has {int(malformed.sum())} non-numeric values"
        )
    return values.astype(float)


def _canonical_ids(values: pd.Series) -> pd.Series:
    """
    Render join keys as strings, with whole-number floats written as integers.

    An integer id column read back as float (1.0) must still join with "1".
    Missing ids come back as None.
    """
    if pd.api.types.is_float_dtype(values):
        present = values.dropna()
        if (present % 1 == 0).all():
            values = values.astype("Int64")

    return values.astype(object).map(lambda v: None if pd.isna(v) else str(v))


def _drop_null_ids(df: pd.DataFrame, table: str) -> pd.DataFrame:
    # a null key never joins, so its rows cannot reach any report
    null_ids = pd.Series(False, index=df.index)
    for id_col in ID_COLUMNS:
        if id_col in df.columns:
            null_ids |= df[id_col].isna()

    if null_ids.any():
        logging.warning(f"Dropping {int(null_ids.sum())} rows of {table} with a missing id")
        df = df.loc[~null_ids].reset_index(drop=True)
    return df


def normalize_table(
    df: pd.DataFrame,
    table: str,
    overrides: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Rename, type and check a single table.

    Raises:
        PreconditionError: If df is missing, lacks required columns, or holds
            malformed numeric values or dates. Rows with a missing id are
            dropped with a warning.
    """
    if df is None:
        raise PreconditionError(f"Missing required table '{table}'")
    if not isinstance(df, pd.DataFrame):
        raise PreconditionError(f"Table '{table}' is not a DataFrame: {type(df).__name__}")

    data = apply_column_map(df, infer_column_map(df, table, overrides))

    missing = missing_columns(data, REQUIRED_COLUMNS[table])
    if missing:
        raise PreconditionError(f"Table '{table}' is missing required columns: {missing}")

    for id_col in ID_COLUMNS:
        if id_col in data.columns:
            data[id_col] = _canonical_ids(data[id_col])
    data = _drop_null_ids(data, table)

    if "channel" in data.columns:
        data["channel"] = data["channel"].astype(str)

    for metric in NUMERIC_COLUMNS:
        if metric in data.columns:
            data[metric] = _coerce_numeric(data, metric, table)

    for date_col in DATE_COLUMNS:
        if date_col in data.columns:
            data = ensure_date_column(data, date_col)

    return data


def validate_churn_probability(users: pd.DataFrame) -> None:
    """
    Check that every churn probability is present and within [0, 1].

    Raises:
        PreconditionError: On null or out-of-range probabilities.
    """
    churn = users["churn_probability"]
    null_count = int(churn.isna().sum())
    if null_count:
        raise PreconditionError(f"users.churn_probability has {null_count} missing values")

    out_of_range = users.loc[(churn < 0.0) | (churn > 1.0), "user_id"]
    if not out_of_range.empty:
        sample = out_of_range.head(5).tolist()
        raise PreconditionError(
            f"users.churn_probability outside [0, 1] for {len(out_of_range)} users "
            f"(e.g. {sample})"
        )


def validate_tables(
    tables: Mapping[str, pd.DataFrame],
    column_overrides: Optional[Dict[str, Dict[str, str]]] = None,
    required: Iterable[str] = TABLE_NAMES,
) -> Dict[str, pd.DataFrame]:
    """
    Validate and normalise the input tables before any metric runs.

    Args:
        tables: Mapping of table name -> DataFrame.
        column_overrides: Optional {table: {canonical column: source column}}.
        required: Table names that must be present.

    Returns:
        Dict of normalised copies keyed by table name.

    Raises:
        PreconditionError: On the first missing table, missing column,
            malformed value or out-of-range churn probability.
    """
    column_overrides = column_overrides or {}
    normalized: Dict[str, pd.DataFrame] = {}

    for table in required:
        normalized[table] = normalize_table(
            tables.get(table), table, column_overrides.get(table)
        )

    if "users" in normalized:
        validate_churn_probability(normalized["users"])

    shapes = ", ".join(f"{name}={len(df)}" for name, df in normalized.items())
    logging.info(f"Validated {len(normalized)} tables: {shapes}")
    return normalized
