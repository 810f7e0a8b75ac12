#!/usr/bin/env python3
"""
Sample Data Generator for the Marketing KPI Report Pipeline

This script generates a small synthetic extract of the six warehouse tables
to run the pipeline end-to-end without a warehouse.

Usage:
    python scripts/generate_sample_data.py --output-dir ./data
    python -m roas.run_pipeline --from-dir ./data

Output:
    - data/campaigns.<fmt>
    - data/conversions.<fmt>
    - data/daily_spend.<fmt>
    - data/revenue.<fmt>
    - data/users.<fmt>
    - data/user_acquisition.<fmt>
"""

import argparse
import os
import random
from datetime import datetime, timedelta

import numpy as np
import pandas as pd


CHANNELS = ["email", "paid_search", "paid_social", "display", "affiliate"]


def generate_sample_data(
    output_dir: str = "./data",
    num_campaigns: int = 12,
    num_users: int = 200,
    num_days: int = 30,
    fmt: str = "csv",
    seed: int = 42,
) -> dict:
    """Generate and write sample tables; returns them keyed by table name."""
    random.seed(seed)
    np.random.seed(seed)

    os.makedirs(output_dir, exist_ok=True)
    start = datetime(2025, 1, 1)

    # ============================================================
    # Campaigns and conversions
    # ============================================================
    campaigns = pd.DataFrame([
        {"campaign_id": f"c{i:03d}", "channel": CHANNELS[i % len(CHANNELS)]}
        for i in range(num_campaigns)
    ])

    conversions = pd.DataFrame([
        {"campaign_id": cid, "conversions": int(np.random.poisson(40))}
        for cid in campaigns["campaign_id"]
        # leave one campaign without conversions to exercise the inner join
        if cid != campaigns["campaign_id"].iloc[-1]
    ])

    # ============================================================
    # Daily spend
    # ============================================================
    spend_rows = []
    for _, campaign in campaigns.iterrows():
        daily_budget = random.choice([0.0, 50.0, 120.0, 300.0]) if campaign["channel"] == "email" else random.uniform(80, 400)
        for day in range(num_days):
            spend_rows.append({
                "campaign_id": campaign["campaign_id"],
                "channel": campaign["channel"],
                "date": (start + timedelta(days=day)).strftime("%Y-%m-%d"),
                "spend": round(max(0.0, np.random.normal(daily_budget, daily_budget * 0.2)), 2),
            })
    daily_spend = pd.DataFrame(spend_rows)

    # ============================================================
    # Users, acquisition and revenue
    # ============================================================
    users = pd.DataFrame([
        {
            "user_id": f"u{i:04d}",
            "signup_date": (start + timedelta(days=random.randint(0, num_days - 1))).strftime("%Y-%m-%d"),
            "churn_probability": round(float(np.random.beta(2, 3)), 3),
        }
        for i in range(num_users)
    ])

    user_acquisition = pd.DataFrame([
        {"user_id": uid, "campaign_id": random.choice(campaigns["campaign_id"].tolist())}
        for uid in users["user_id"]
    ])

    revenue_rows = []
    for _, user in users.iterrows():
        # loyal users buy more often
        n_orders = np.random.poisson(max(0.2, 4 * (1 - user["churn_probability"])))
        for _ in range(n_orders):
            ts = start + timedelta(days=random.randint(0, num_days - 1), hours=random.randint(0, 23))
            revenue_rows.append({
                "user_id": user["user_id"],
                "revenue": round(random.uniform(10, 250), 2),
                "transaction_time": ts.strftime("%Y-%m-%d %H:%M:%S"),
            })
    revenue = pd.DataFrame(revenue_rows, columns=["user_id", "revenue", "transaction_time"])

    tables = {
        "campaigns": campaigns,
        "conversions": conversions,
        "daily_spend": daily_spend,
        "revenue": revenue,
        "users": users,
        "user_acquisition": user_acquisition,
    }

    for name, df in tables.items():
        path = os.path.join(output_dir, f"{name}.{fmt}")
        if fmt == "parquet":
            df.to_parquet(path, index=False)
        else:
            df.to_csv(path, index=False)
        print(f"Generated {len(df)} {name} rows -> {path}")

    return tables


def main():
    parser = argparse.ArgumentParser(description="Generate sample warehouse tables")
    parser.add_argument("--output-dir", "-o", default="./data", help="Output directory")
    parser.add_argument("--campaigns", type=int, default=12, help="Number of campaigns")
    parser.add_argument("--users", type=int, default=200, help="Number of users")
    parser.add_argument("--days", type=int, default=30, help="Number of spend days")
    parser.add_argument("--format", choices=["csv", "parquet"], default="csv", help="File format")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    generate_sample_data(
        output_dir=args.output_dir,
        num_campaigns=args.campaigns,
        num_users=args.users,
        num_days=args.days,
        fmt=args.format,
        seed=args.seed,
    )

    print(f"\nRun the pipeline:")
    print(f"  python -m roas.run_pipeline --from-dir {args.output_dir}")


if __name__ == "__main__":
    main()
