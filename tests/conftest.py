"""Shared pytest configuration and fixtures."""

from unittest.mock import MagicMock

import pytest

from azure_sql_exporter.config import Database

SALES_ROW = (12.5, 3.0, 1.0, 40.0, 2.0, 5.0)


@pytest.fixture
def sales_db():
    return Database(name="Sales", server="a", user="exporter", password="s3cr3t-Pa55", port=1433)


@pytest.fixture
def inventory_db():
    return Database(name="Inventory", server="b", user="exporter", password="hunter2-Inv", port=1433)


def make_connection(row=SALES_ROW, execute_error=None):
    """Build a mock DB-API connection whose cursor returns row."""
    conn = MagicMock()
    cursor = MagicMock()
    cursor.fetchone.return_value = row
    if execute_error is not None:
        cursor.execute.side_effect = execute_error
    conn.cursor.return_value = cursor
    return conn


@pytest.fixture
def connection_factory():
    return make_connection
