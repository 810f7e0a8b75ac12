#!/usr/bin/env python3
"""
Marketing KPI Report Pipeline - Main Entry Point

This script loads the six warehouse tables, computes the marketing reports
(LTV, channel conversions, loyalty segmentation, churn buckets, ROAS, CAC)
and writes one file per report.

Usage:
    # From csv/parquet files (one per table):
    python -m roas.run_pipeline --from-dir ./data

    # From the ClickHouse warehouse:
    python -m roas.run_pipeline --from-clickhouse --database roas

    # Compute reports concurrently and write parquet too:
    python -m roas.run_pipeline --from-dir ./data --workers 4 --format both

Output (one file per report in --output-dir):
    - ltv, highest_value_client
    - channel_conversions, most_converting_channel
    - client_loyalty, revenue_by_loyalty, user_loyalty_revenue
    - churn_bucket_income
    - channel_profitability, customer_acquisition_cost
    - table_counts
"""

import argparse
import logging
import sys
from typing import Dict, Optional

import pandas as pd

from .config import PipelineConfig
from .io import load_tables, write_outputs
from .metrics import MetricsResult, compute_all_metrics
from .schema import PreconditionError
from .utils import setup_logging


# ============================================================
# Data Loading
# ============================================================

def load_from_clickhouse(config: PipelineConfig) -> Dict[str, pd.DataFrame]:
    """
    Load every input table from ClickHouse.

    Requires AWS credentials or a reachable ClickHouse.
    """
    from .clickhouse_utils import client_from_config
    from .data_retrieval import get_tables

    logging.info(f"Loading tables from ClickHouse database {config.database}")
    client = client_from_config(config)
    try:
        return get_tables(client, database=config.database)
    finally:
        client.close()


# ============================================================
# Pipeline
# ============================================================

def run_pipeline(tables: Dict[str, pd.DataFrame], config: PipelineConfig) -> MetricsResult:
    """
    Compute every report from the loaded tables.

    Raises:
        PreconditionError: If the tables fail validation
    """
    logging.info("Starting marketing KPI report pipeline")
    return compute_all_metrics(
        tables,
        max_workers=config.max_workers,
        column_overrides=config.column_overrides,
    )


def print_summary(result: MetricsResult) -> None:
    """Print the headline figures of a run."""
    print("\n" + "=" * 60)
    print("PIPELINE COMPLETED")
    print("=" * 60)

    if not result.most_converting_channel.empty:
        top = result.most_converting_channel.iloc[0]
        print(f"\nMost converting channel: {top['channel']} ({top['total_conversions']:,.0f} conversions)")

    if not result.highest_value_client.empty:
        top = result.highest_value_client.iloc[0]
        print(f"Highest value client: {top['user_id']} (LTV {top['lifetime_value']:,.0f})")

    if not result.client_loyalty.empty:
        print("\nClients per loyalty tier:")
        for tier, count in result.client_loyalty["client_loyalty"].value_counts().items():
            print(f"  - {tier}: {count}")

    if not result.channel_profitability.empty:
        print("\nChannel profitability:")
        for _, row in result.channel_profitability.iterrows():
            roas = "n/a" if pd.isna(row["roas"]) else f"{row['roas']:.2f}"
            print(f"  - {row['channel']}: profit={row['profit']:,.2f}, ROAS={roas}")

    if not result.customer_acquisition_cost.empty:
        cheapest = result.customer_acquisition_cost.iloc[0]
        print(
            f"\nCheapest acquisition: campaign {cheapest['campaign_id']} "
            f"({cheapest['channel']}), CAC={cheapest['cac']}"
        )


# ============================================================
# CLI
# ============================================================

def parse_args(argv: Optional[list] = None):
    parser = argparse.ArgumentParser(
        description="Marketing KPI Report Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load tables from a directory of csv/parquet files:
  python -m roas.run_pipeline --from-dir ./data

  # Load from a local ClickHouse without AWS secrets:
  python -m roas.run_pipeline --from-clickhouse --no-aws-secrets
        """
    )

    # Data source
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--from-dir", metavar="DIR",
        help="Load tables from <table>.parquet / <table>.csv files in this directory"
    )
    source.add_argument(
        "--from-clickhouse", action="store_true",
        help="Load tables from ClickHouse (requires credentials)"
    )

    # ClickHouse options
    parser.add_argument("--database", default=None,
                        help="Warehouse database holding the tables")
    parser.add_argument("--aws-profile", default=None,
                        help="AWS profile for credentials")
    parser.add_argument("--no-aws-secrets", action="store_true",
                        help="Connect with CLICKHOUSE_* settings instead of AWS Secrets Manager")

    # Processing options
    parser.add_argument("--workers", type=int, default=None,
                        help="Compute reports concurrently with this many threads")

    # Output options
    parser.add_argument("--output-dir", "-o", default=None,
                        help="Output directory")
    parser.add_argument("--format", choices=["csv", "parquet", "both"], default=None,
                        help="Output format")
    parser.add_argument("--prefix", default=None,
                        help="Prefix for output file names")

    # General options
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")

    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    """Environment-backed config with command line flags applied on top."""
    config = PipelineConfig.from_env()

    if args.from_dir:
        config.data_dir = args.from_dir
    if args.database:
        config.database = args.database
    if args.aws_profile:
        config.aws_profile = args.aws_profile
    if args.no_aws_secrets:
        config.use_aws_secrets = False
    if args.workers is not None:
        config.max_workers = args.workers
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.prefix is not None:
        config.output_prefix = args.prefix
    if args.format:
        config.output_formats = ["csv", "parquet"] if args.format == "both" else [args.format]
    if args.verbose:
        config.log_level = "DEBUG"

    return config


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    config = build_config(args)

    setup_logging(
        level=config.log_level,
        enable_file_logging=bool(config.log_file),
        log_file=config.log_file or "roas_reports.log",
    )

    # Load data
    try:
        if args.from_clickhouse:
            tables = load_from_clickhouse(config)
        else:
            tables = load_tables(config.data_dir)
    except Exception as e:
        logging.error(f"Failed to load data: {e}")
        return 1

    # Run pipeline
    try:
        result = run_pipeline(tables, config)
    except PreconditionError as e:
        logging.error(f"Input validation failed: {e}")
        return 1
    except Exception as e:
        logging.error(f"Pipeline failed: {e}")
        raise

    write_outputs(
        result.to_dict(),
        config.output_dir,
        formats=config.output_formats,
        prefix=config.output_prefix,
    )

    print_summary(result)
    print(f"\nResults saved to: {config.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
