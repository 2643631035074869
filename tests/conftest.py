"""Shared fixtures for the test suite."""

import os

# Keep a developer's real token (or .env) from attaching MotherDuck at import.
os.environ["MOTHERDUCK_TOKEN"] = ""

import duckdb
import pytest
from fastapi.testclient import TestClient

from gateway.config import Settings
from gateway.data_access import MotherDuckClient
from gateway.main import create_app


@pytest.fixture
def md_conn():
    """In-memory DuckDB seeded with a small catalog, standing in for MotherDuck."""
    conn = duckdb.connect(":memory:")
    conn.execute("CREATE SCHEMA sales")
    conn.execute("CREATE TABLE sales.orders (id INTEGER, customer_id INTEGER, amount DECIMAL(10, 2))")
    conn.execute("CREATE TABLE sales.returns (id INTEGER, order_id INTEGER)")
    conn.execute("CREATE TABLE main.customers (id INTEGER, name VARCHAR)")
    conn.execute("CREATE VIEW sales.big_orders AS SELECT * FROM sales.orders WHERE amount > 100")
    conn.execute("INSERT INTO sales.orders VALUES (1, 10, 12.50), (2, 11, 250.00)")
    conn.execute("INSERT INTO main.customers VALUES (10, 'Ada'), (11, 'Grace')")
    yield conn
    conn.close()


@pytest.fixture
def md_client(md_conn):
    """MotherDuckClient wrapping the seeded connection."""
    return MotherDuckClient(conn=md_conn)


@pytest.fixture
def settings(monkeypatch):
    """Settings factory — call with env overrides."""
    def _make(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return Settings()
    return _make


@pytest.fixture
def client(settings, md_client):
    """TestClient over an app with a working connection."""
    app = create_app(settings(), client=md_client)
    return TestClient(app)


@pytest.fixture
def unconfigured_client(settings):
    """TestClient over an app with no MotherDuck connection."""
    app = create_app(settings(), client=MotherDuckClient())
    return TestClient(app)
