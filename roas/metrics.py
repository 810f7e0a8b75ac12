"""
Marketing KPI computation over the warehouse tables.

This module computes:
1. Lifetime value (LTV) per user and the highest value client
2. Conversions per channel and the most converting channel
3. Loyalty segmentation from churn probability
4. Revenue by loyalty tier (windowed LTV on every revenue row)
5. Average income per churn bucket
6. Profit and ROAS per channel
7. Customer acquisition cost (CAC) per campaign

Every report is a pure function of its input tables and is recomputed on each
run. Ratios are null where their denominator is 0; the row is still emitted.

Usage:
    from roas.metrics import compute_all_metrics

    results = compute_all_metrics(tables, max_workers=4)
    results.ltv                      # user_id, lifetime_value
    results.channel_profitability    # channel, total_revenue, total_spend, profit, roas
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, fields
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .loyalty import PERCENT_SCALE, classify_churn
from .schema import TABLE_NAMES, validate_tables


LTV_COLUMNS = ["user_id", "lifetime_value"]
CHANNEL_CONVERSION_COLUMNS = ["channel", "total_conversions"]
CLIENT_LOYALTY_COLUMNS = ["user_id", "signup_date", "churn_prob_perc", "client_loyalty"]
REVENUE_BY_LOYALTY_COLUMNS = ["user_id", "lifetime_value", "churn_probability", "client_loyalty"]
CHURN_BUCKET_COLUMNS = ["churn_bucket", "avg_income", "client_loyalty"]
PROFITABILITY_COLUMNS = ["channel", "total_revenue", "total_spend", "profit", "roas"]
CAC_COLUMNS = ["channel", "campaign_id", "total_spend", "total_clients", "cac"]
ROW_COUNT_COLUMNS = ["table_name", "row_count"]


@dataclass
class MetricsResult:
    """Container for computed reports."""
    table_counts: pd.DataFrame
    ltv: pd.DataFrame
    highest_value_client: pd.DataFrame
    channel_conversions: pd.DataFrame
    most_converting_channel: pd.DataFrame
    client_loyalty: pd.DataFrame
    revenue_by_loyalty: pd.DataFrame
    user_loyalty_revenue: pd.DataFrame
    churn_bucket_income: pd.DataFrame
    channel_profitability: pd.DataFrame
    customer_acquisition_cost: pd.DataFrame

    def to_dict(self) -> Dict[str, pd.DataFrame]:
        """Reports keyed by name, in declaration order."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ============================================================
# Helper Functions
# ============================================================

def sql_round(values, decimals: int = 0):
    """
    Round half away from zero, as SQL ROUND does on numerics.

    NaN stays NaN. Accepts a scalar, array or Series.
    """
    factor = 10.0 ** decimals
    arr = np.asarray(values, dtype=float)
    # Re-round the scaled value to drop binary noise (1.005 * 100 == 100.49999...)
    scaled = np.round(np.abs(arr) * factor, 9)
    rounded = np.sign(arr) * np.floor(scaled + 0.5) / factor + 0.0

    if isinstance(values, pd.Series):
        return pd.Series(rounded, index=values.index, name=values.name)
    if np.ndim(rounded) == 0:
        return float(rounded)
    return rounded


def safe_div(numerator, denominator):
    """Divide, returning NaN (null) where the denominator is 0."""
    if isinstance(denominator, pd.Series):
        return numerator / denominator.replace({0: np.nan})
    if pd.isna(denominator) or denominator == 0:
        return np.nan
    return numerator / denominator


def _order(df: pd.DataFrame, by: List[str], ascending: List[bool]) -> pd.DataFrame:
    """Stable sort with nulls last and a fresh index."""
    return (
        df.sort_values(by, ascending=ascending, kind="mergesort", na_position="last")
        .reset_index(drop=True)
    )


# ============================================================
# Reports
# ============================================================

def compute_ltv(revenue: pd.DataFrame) -> pd.DataFrame:
    """
    Total revenue per user, rounded to whole currency units.

    Users without revenue rows do not appear. Ordered by lifetime_value
    descending, ties by user_id ascending.
    """
    ltv = (
        revenue.groupby("user_id", sort=False)["revenue"]
        .sum(min_count=1)
        .reset_index(name="lifetime_value")
    )
    ltv["lifetime_value"] = sql_round(ltv["lifetime_value"])
    return _order(ltv[LTV_COLUMNS], ["lifetime_value", "user_id"], [False, True])


def highest_value_client(revenue: pd.DataFrame) -> pd.DataFrame:
    """The single user with the highest lifetime value (empty if no revenue)."""
    return compute_ltv(revenue).head(1)


def channel_conversions(campaigns: pd.DataFrame, conversions: pd.DataFrame) -> pd.DataFrame:
    """
    Conversions summed per channel.

    Campaigns without conversion rows are excluded. Ordered by
    total_conversions descending, ties by channel name ascending.
    """
    joined = campaigns[["campaign_id", "channel"]].merge(
        conversions[["campaign_id", "conversions"]], on="campaign_id", how="inner"
    )
    totals = (
        joined.groupby("channel", sort=False)["conversions"]
        .sum(min_count=1)
        .reset_index(name="total_conversions")
    )
    return _order(totals[CHANNEL_CONVERSION_COLUMNS], ["total_conversions", "channel"], [False, True])


def most_converting_channel(campaigns: pd.DataFrame, conversions: pd.DataFrame) -> pd.DataFrame:
    """Top row of channel_conversions (empty if nothing joined)."""
    return channel_conversions(campaigns, conversions).head(1)


def client_loyalty(users: pd.DataFrame) -> pd.DataFrame:
    """
    Loyalty tier per user on the percentage scale.

    churn_prob_perc is the churn probability as a percentage rounded to one
    decimal; the tier is assigned from that displayed percentage. Ordered by
    churn_prob_perc descending, ties by user_id ascending.
    """
    loyalty = users[["user_id", "signup_date"]].copy()
    loyalty["churn_prob_perc"] = sql_round(users["churn_probability"] * 100, 1)
    loyalty["client_loyalty"] = classify_churn(loyalty["churn_prob_perc"], scale=PERCENT_SCALE)
    return _order(loyalty[CLIENT_LOYALTY_COLUMNS], ["churn_prob_perc", "user_id"], [False, True])


def revenue_by_loyalty(
    users: pd.DataFrame,
    revenue: pd.DataFrame,
    per_user: bool = False,
) -> pd.DataFrame:
    """
    Lifetime value next to churn probability and loyalty tier.

    By default one row is emitted per revenue row, each carrying its user's
    total lifetime value, so a user with N revenue rows appears N times.
    With per_user=True those duplicates collapse to one row per user.

    Ordered by churn_probability descending, ties by user_id ascending.
    """
    joined = users[["user_id", "churn_probability"]].merge(
        revenue[["user_id", "revenue"]], on="user_id", how="inner"
    )
    joined["lifetime_value"] = sql_round(
        joined.groupby("user_id", sort=False)["revenue"]
        .transform(lambda s: s.sum(min_count=1))
    )
    joined["client_loyalty"] = classify_churn(joined["churn_probability"])

    report = joined[REVENUE_BY_LOYALTY_COLUMNS]
    if per_user:
        report = report.drop_duplicates("user_id")
    return _order(report, ["churn_probability", "user_id"], [False, True])


def churn_buckets(churn_probability: pd.Series) -> pd.Series:
    """Floor churn probabilities to 0.1-wide buckets (0.0 ... 1.0)."""
    tenths = np.floor(np.round(churn_probability.astype(float) * 10, 9))
    return pd.Series(tenths / 10, index=churn_probability.index, name="churn_bucket")


def churn_bucket_income(users: pd.DataFrame, revenue: pd.DataFrame) -> pd.DataFrame:
    """
    Average revenue per churn bucket.

    Each revenue row counts once towards its user's bucket average. The tier
    is assigned from the bucket value, not the raw probability. Ordered by
    avg_income descending, ties by churn_bucket ascending.
    """
    joined = users[["user_id", "churn_probability"]].merge(
        revenue[["user_id", "revenue"]], on="user_id", how="inner"
    )
    joined["churn_bucket"] = churn_buckets(joined["churn_probability"])

    buckets = (
        joined.groupby("churn_bucket", sort=False)["revenue"]
        .mean()
        .reset_index(name="avg_income")
    )
    buckets["avg_income"] = sql_round(buckets["avg_income"])
    buckets["client_loyalty"] = classify_churn(buckets["churn_bucket"])
    return _order(buckets[CHURN_BUCKET_COLUMNS], ["avg_income", "churn_bucket"], [False, True])


def revenue_by_channel(
    revenue: pd.DataFrame,
    user_acquisition: pd.DataFrame,
    campaigns: pd.DataFrame,
) -> pd.DataFrame:
    """Revenue attributed to a channel through each user's acquiring campaign."""
    attributed = (
        revenue[["user_id", "revenue"]]
        .merge(user_acquisition[["user_id", "campaign_id"]], on="user_id", how="inner")
        .merge(campaigns[["campaign_id", "channel"]], on="campaign_id", how="inner")
    )
    totals = (
        attributed.groupby("channel", sort=False)["revenue"]
        .sum(min_count=1)
        .reset_index(name="total_revenue")
    )
    totals["total_revenue"] = sql_round(totals["total_revenue"])
    return totals


def spend_by_channel(daily_spend: pd.DataFrame) -> pd.DataFrame:
    """Spend per channel as recorded, regardless of acquisition."""
    totals = (
        daily_spend.groupby("channel", sort=False)["spend"]
        .sum(min_count=1)
        .reset_index(name="total_spend")
    )
    totals["total_spend"] = sql_round(totals["total_spend"])
    return totals


def channel_profitability(
    revenue: pd.DataFrame,
    user_acquisition: pd.DataFrame,
    campaigns: pd.DataFrame,
    daily_spend: pd.DataFrame,
) -> pd.DataFrame:
    """
    Profit and ROAS per channel.

    Revenue is traced through user_acquisition -> campaigns while spend is
    summed straight from daily_spend. Only channels present on both sides are
    reported. roas is null when total_spend is 0. Ordered by profit
    descending, ties by channel ascending.
    """
    rev = revenue_by_channel(revenue, user_acquisition, campaigns)
    spend = spend_by_channel(daily_spend)

    unmatched = set(rev["channel"]).symmetric_difference(spend["channel"])
    if unmatched:
        logging.warning(
            f"Channels without both attributed revenue and spend are left out: {sorted(unmatched)}"
        )

    report = rev.merge(spend, on="channel", how="inner")
    report["profit"] = sql_round(report["total_revenue"] - report["total_spend"], 2)
    report["roas"] = sql_round(safe_div(report["total_revenue"], report["total_spend"]), 2)
    return _order(report[PROFITABILITY_COLUMNS], ["profit", "channel"], [False, True])


def customer_acquisition_cost(
    daily_spend: pd.DataFrame,
    user_acquisition: pd.DataFrame,
    users: pd.DataFrame,
) -> pd.DataFrame:
    """
    Spend per distinct acquired client, by campaign.

    total_spend is grouped by campaign and channel; total_clients counts
    distinct known users acquired through the campaign. cac is null when
    total_clients is 0. Ordered by cac ascending (nulls last), ties by
    campaign_id ascending.
    """
    spend = (
        daily_spend.groupby(["campaign_id", "channel"], sort=False)["spend"]
        .sum(min_count=1)
        .reset_index(name="total_spend")
    )
    spend["total_spend"] = sql_round(spend["total_spend"])

    acquired = users[["user_id"]].merge(
        user_acquisition[["user_id", "campaign_id"]], on="user_id", how="inner"
    )
    clients = (
        acquired.groupby("campaign_id", sort=False)["user_id"]
        .nunique()
        .reset_index(name="total_clients")
    )

    report = spend.merge(clients, on="campaign_id", how="inner")
    report["total_clients"] = report["total_clients"].astype(int)
    report["cac"] = sql_round(safe_div(report["total_spend"], report["total_clients"]), 2)
    return _order(report[CAC_COLUMNS], ["cac", "campaign_id"], [True, True])


def table_row_counts(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """Row count per loaded table, in warehouse table order."""
    rows = [
        {"table_name": name, "row_count": len(tables[name])}
        for name in TABLE_NAMES
        if tables.get(name) is not None
    ]
    return pd.DataFrame(rows, columns=ROW_COUNT_COLUMNS)


# ============================================================
# Main Computation Function
# ============================================================

def _report_jobs(tables: Mapping[str, pd.DataFrame]) -> Dict[str, tuple]:
    t = tables
    return {
        "table_counts": (table_row_counts, (t,), {}),
        "ltv": (compute_ltv, (t["revenue"],), {}),
        "highest_value_client": (highest_value_client, (t["revenue"],), {}),
        "channel_conversions": (channel_conversions, (t["campaigns"], t["conversions"]), {}),
        "most_converting_channel": (most_converting_channel, (t["campaigns"], t["conversions"]), {}),
        "client_loyalty": (client_loyalty, (t["users"],), {}),
        "revenue_by_loyalty": (revenue_by_loyalty, (t["users"], t["revenue"]), {}),
        "user_loyalty_revenue": (revenue_by_loyalty, (t["users"], t["revenue"]), {"per_user": True}),
        "churn_bucket_income": (churn_bucket_income, (t["users"], t["revenue"]), {}),
        "channel_profitability": (
            channel_profitability,
            (t["revenue"], t["user_acquisition"], t["campaigns"], t["daily_spend"]),
            {},
        ),
        "customer_acquisition_cost": (
            customer_acquisition_cost,
            (t["daily_spend"], t["user_acquisition"], t["users"]),
            {},
        ),
    }


def compute_all_metrics(
    tables: Mapping[str, pd.DataFrame],
    max_workers: int = 1,
    column_overrides: Optional[Dict[str, Dict[str, str]]] = None,
) -> MetricsResult:
    """
    Validate the input tables, then compute every report.

    Reports share only read-only inputs, so with max_workers > 1 they are
    computed concurrently. Any failure propagates; no partial result is
    returned.

    Args:
        tables: Mapping of table name -> DataFrame (see schema.TABLE_NAMES)
        max_workers: Number of threads used to compute reports
        column_overrides: Optional {table: {canonical column: source column}}

    Returns:
        MetricsResult with one DataFrame per report

    Raises:
        PreconditionError: If a table, column or churn value is invalid
    """
    validated = validate_tables(tables, column_overrides=column_overrides)
    jobs = _report_jobs(validated)
    reports: Dict[str, pd.DataFrame] = {}

    if max_workers > 1:
        logging.info(f"Computing {len(jobs)} reports with {max_workers} workers")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(func, *args, **kwargs): name
                for name, (func, args, kwargs) in jobs.items()
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    reports[name] = future.result()
                except Exception as e:
                    logging.error(f"Report {name} failed: {e}")
                    raise
    else:
        for name, (func, args, kwargs) in jobs.items():
            reports[name] = func(*args, **kwargs)

    for name, df in reports.items():
        if df.empty:
            logging.warning(f"Report {name} is empty")
        else:
            logging.debug(f"Computed {name}: {df.shape}")

    logging.info(f"Computed {len(reports)} reports")
    return MetricsResult(**reports)
