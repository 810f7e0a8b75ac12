"""Unit tests for the ClickHouse loaders, using a fake client."""
import pandas as pd
import pytest

import roas.clickhouse_utils as clickhouse_utils
from roas.clickhouse_utils import client_from_config, retry_on_failure
from roas.config import PipelineConfig
from roas.data_retrieval import get_table, get_table_row_counts, get_tables, validate_identifier
from roas.schema import TABLE_NAMES


class FakeClient:
    """Records queries and answers them from canned DataFrames."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.queries = []
        self.closed = False

    def query_df(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        for needle, df in self.responses.items():
            if needle in query:
                return df
        return pd.DataFrame()

    def close(self):
        self.closed = True


def test_get_table_selects_from_database():
    client = FakeClient({"roas.users": pd.DataFrame({"user_id": ["u1"]})})

    df = get_table(client, "users")

    assert client.queries == ["select * from roas.users"]
    assert df["user_id"].tolist() == ["u1"]


def test_get_tables_fetches_every_table():
    client = FakeClient()

    tables = get_tables(client, database="warehouse")

    assert list(tables) == list(TABLE_NAMES)
    assert all(query.startswith("select * from warehouse.") for query in client.queries)


def test_get_table_reraises_client_errors():
    client = FakeClient(error=RuntimeError("connection reset"))

    with pytest.raises(RuntimeError, match="connection reset"):
        get_table(client, "revenue")


@pytest.mark.parametrize("name", ["", "users; drop table users", "roas.users", "1users"])
def test_invalid_identifiers_are_rejected(name):
    with pytest.raises(ValueError):
        validate_identifier(name)


def test_get_table_row_counts_orders_by_table():
    counts = pd.DataFrame(
        {"table_name": ["users", "campaigns", "revenue"], "row_count": ["7", "2", "30"]}
    )
    client = FakeClient({"union all": counts})

    result = get_table_row_counts(client, tables=["campaigns", "revenue", "users"])

    assert len(client.queries) == 1
    assert result["table_name"].tolist() == ["campaigns", "revenue", "users"]
    assert result["row_count"].tolist() == [2, 30, 7]


def test_retry_on_failure_retries_then_succeeds(monkeypatch):
    monkeypatch.setattr(clickhouse_utils.time, "sleep", lambda _: None)
    calls = []

    @retry_on_failure(max_retries=3, delay=0.01)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("try again")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_retry_on_failure_gives_up(monkeypatch):
    monkeypatch.setattr(clickhouse_utils.time, "sleep", lambda _: None)

    @retry_on_failure(max_retries=2, delay=0.01)
    def broken():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        broken()


def test_client_from_config_without_aws(monkeypatch):
    captured = {}

    def fake_get_client(**kwargs):
        captured.update(kwargs)
        return FakeClient()

    monkeypatch.setattr(clickhouse_utils.clickhouse_connect, "get_client", fake_get_client)
    config = PipelineConfig(use_aws_secrets=False, clickhouse_host="db", clickhouse_port=9000, database="roas")

    client = client_from_config(config)

    assert isinstance(client, FakeClient)
    assert captured["host"] == "db"
    assert captured["port"] == 9000
    assert captured["database"] == "roas"


def test_client_from_config_with_aws_secret(monkeypatch):
    captured = {}
    secret = {
        "CLICKHOUSE_URL": "https://warehouse.example.com",
        "CLICKHOUSE_PORT": "8443",
        "CLICKHOUSE_USER": "reporter",
        "CLICKHOUSE_PASSWORD": "secret",
    }

    monkeypatch.setattr(clickhouse_utils, "get_secret_with_retry", lambda **kwargs: (secret, ""))
    monkeypatch.setattr(
        clickhouse_utils.clickhouse_connect,
        "get_client",
        lambda **kwargs: captured.update(kwargs) or FakeClient(),
    )

    client_from_config(PipelineConfig(use_aws_secrets=True))

    assert captured["host"] == "warehouse.example.com"
    assert captured["port"] == 8443
    assert captured["secure"] is True
