"""Shared fixtures: a small, hand-checked warehouse extract."""
import pandas as pd
import pytest


@pytest.fixture
def campaigns():
    return pd.DataFrame(
        {
            "campaign_id": ["c1", "c2", "c3", "c4"],
            "channel": ["email", "paid_search", "social", "display"],
        }
    )


@pytest.fixture
def conversions():
    # c4 has no conversion rows
    return pd.DataFrame(
        {
            "campaign_id": ["c1", "c1", "c2", "c3"],
            "conversions": [10, 5, 20, 7],
        }
    )


@pytest.fixture
def daily_spend():
    # c5 / affiliate has spend but no acquired users or campaign row
    return pd.DataFrame(
        {
            "campaign_id": ["c1", "c1", "c2", "c3", "c5"],
            "channel": ["email", "email", "paid_search", "social", "affiliate"],
            "date": ["2025-01-01", "2025-01-02", "2025-01-01", "2025-01-01", "2025-01-01"],
            "spend": [400.0, 600.0, 150.4, 0.0, 100.0],
        }
    )


@pytest.fixture
def revenue():
    return pd.DataFrame(
        {
            "user_id": ["u1", "u1", "u2", "u3", "u4"],
            "revenue": [100.0, 50.0, 30.0, 200.5, 10.0],
            "transaction_time": [
                "2025-01-03 10:00:00",
                "2025-01-09 12:30:00",
                "2025-01-04 08:00:00",
                "2025-01-05 19:45:00",
                "2025-01-06 07:15:00",
            ],
        }
    )


@pytest.fixture
def users():
    # u5 has no revenue rows
    return pd.DataFrame(
        {
            "user_id": ["u1", "u2", "u3", "u4", "u5"],
            "signup_date": ["2024-12-01", "2024-12-05", "2024-12-10", "2024-12-20", "2024-12-28"],
            "churn_probability": [0.05, 0.30, 0.55, 0.90, 0.10],
        }
    )


@pytest.fixture
def user_acquisition():
    return pd.DataFrame(
        {
            "user_id": ["u1", "u2", "u3", "u4", "u5"],
            "campaign_id": ["c1", "c2", "c2", "c3", "c1"],
        }
    )


@pytest.fixture
def tables(campaigns, conversions, daily_spend, revenue, users, user_acquisition):
    return {
        "campaigns": campaigns,
        "conversions": conversions,
        "daily_spend": daily_spend,
        "revenue": revenue,
        "users": users,
        "user_acquisition": user_acquisition,
    }


@pytest.fixture
def data_dir(tmp_path, tables):
    """The fixture tables written as one csv per table."""
    directory = tmp_path / "data"
    directory.mkdir()
    for name, df in tables.items():
        df.to_csv(directory / f"{name}.csv", index=False)
    return directory
