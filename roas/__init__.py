"""
Marketing KPI reports over the ROAS warehouse schema.

This package computes, from six read-only tables (campaigns, conversions,
daily_spend, revenue, users, user_acquisition):
- Lifetime value per user and the highest value client
- Conversions per channel and the most converting channel
- Loyalty tiers from churn probability, alone and next to revenue
- Average income per churn bucket
- Profit and ROAS per channel, CAC per campaign

Main components:
- config.py: Configuration settings
- schema.py: Table schemas and precondition checks
- loyalty.py: Churn segmentation
- metrics.py: Report computation
- io.py / data_retrieval.py: Loading tables, writing reports
- run_pipeline.py: CLI entry point

Quick start:
    from roas import load_tables, compute_all_metrics, write_outputs

    tables = load_tables("./data")
    results = compute_all_metrics(tables)
    write_outputs(results.to_dict(), "./results")
"""

from .config import PipelineConfig, default_config, local_config
from .io import load_dataframe, load_tables, write_outputs
from .loyalty import LOYALTY_LABELS, PERCENT_SCALE, PROBABILITY_SCALE, classify_churn
from .metrics import (
    MetricsResult,
    channel_conversions,
    channel_profitability,
    churn_bucket_income,
    client_loyalty,
    compute_all_metrics,
    compute_ltv,
    customer_acquisition_cost,
    highest_value_client,
    most_converting_channel,
    revenue_by_loyalty,
    safe_div,
    sql_round,
    table_row_counts,
)
from .schema import TABLE_NAMES, PreconditionError, validate_tables

__all__ = [
    # Config
    "PipelineConfig",
    "default_config",
    "local_config",
    # Schema
    "TABLE_NAMES",
    "PreconditionError",
    "validate_tables",
    # Loyalty
    "LOYALTY_LABELS",
    "PERCENT_SCALE",
    "PROBABILITY_SCALE",
    "classify_churn",
    # Metrics
    "MetricsResult",
    "channel_conversions",
    "channel_profitability",
    "churn_bucket_income",
    "client_loyalty",
    "compute_all_metrics",
    "compute_ltv",
    "customer_acquisition_cost",
    "highest_value_client",
    "most_converting_channel",
    "revenue_by_loyalty",
    "safe_div",
    "sql_round",
    "table_row_counts",
    # I/O
    "load_dataframe",
    "load_tables",
    "write_outputs",
]

__version__ = "1.0.0"
