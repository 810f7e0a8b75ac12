"""
Table retrieval from the ClickHouse warehouse.
"""

import logging
import re
from typing import Dict, Iterable

import pandas as pd

from .schema import TABLE_NAMES


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """
    Validate a database or table name before it is interpolated into SQL.

    Raises:
        ValueError: If the name is empty or not a plain identifier
    """
    if not name or not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind}: {name!r}")
    return name


def get_table(client, table: str, database: str = "roas") -> pd.DataFrame:
    """
    Retrieve a full table from ClickHouse.

    Args:
        client: ClickHouse client connection
        table: Table name
        database: Database (schema) holding the table

    Returns:
        DataFrame with every row of the table
    """
    validate_identifier(database, "database")
    validate_identifier(table, "table")

    query = f"select * from {database}.{table}"

    try:
        logging.info(f"Retrieving {database}.{table}")
        df = client.query_df(query)

        logging.info(f"Retrieved {len(df)} rows for {table}")
        return df
    except Exception as e:
        logging.error(f"Error retrieving {database}.{table}: {e}")
        raise


def get_tables(client, database: str = "roas", tables: Iterable[str] = TABLE_NAMES) -> Dict[str, pd.DataFrame]:
    """Retrieve every report input table, keyed by table name."""
    return {table: get_table(client, table, database) for table in tables}


def get_table_row_counts(client, database: str = "roas", tables: Iterable[str] = TABLE_NAMES) -> pd.DataFrame:
    """
    Count rows in each table with a single query.

    Returns:
        DataFrame with table_name and row_count columns, in table order
    """
    validate_identifier(database, "database")
    tables = list(tables)
    parts = [
        f"select '{validate_identifier(table, 'table')}' as table_name, count(*) as row_count "
        f"from {database}.{table}"
        for table in tables
    ]
    query = "\nunion all\n".join(parts)

    try:
        logging.info(f"Counting rows in {len(parts)} tables of {database}")
        counts = client.query_df(query)
    except Exception as e:
        logging.error(f"Error counting rows in {database}: {e}")
        raise

    # union all does not guarantee order
    order = {table: i for i, table in enumerate(tables)}
    counts = counts.sort_values("table_name", key=lambda s: s.map(order)).reset_index(drop=True)
    counts["row_count"] = counts["row_count"].astype(int)
    return counts[["table_name", "row_count"]]
