"""Tests for the Snowflake gateway (driver mocked)."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import snowflake.connector

from sankey_proxy.config import WarehouseSettings
from sankey_proxy.models.data_models import FilterSelection
from sankey_proxy.services.warehouse import QueryExecutionError, WarehouseGateway


def _settings(**overrides) -> WarehouseSettings:
    base = {"account": "acme-xy123", "username": "svc", "password": "pw", "table": "ANALYTICS.PUBLIC.FLOWS"}
    base.update(overrides)
    return WarehouseSettings(**base)


def _mock_connection(rows=None, closed=False):
    cursor = MagicMock()
    cursor.fetchall.return_value = rows or []
    conn = MagicMock()
    conn.is_closed.return_value = closed
    conn.cursor.return_value = cursor
    return conn, cursor


def test_fetch_flows_unfiltered():
    conn, cursor = _mock_connection([
        {"SOURCE": "A", "TARGET": "B", "VALUE": Decimal("5"), "SOURCE_ATTRIBUTE": None,
         "TARGET_ATTRIBUTE": None, "VALUE_SPLIT_CATEGORY": "Retail"},
    ])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn) as connect:
        flows = WarehouseGateway(_settings()).fetch_flows(FilterSelection())

    assert connect.call_args.kwargs["paramstyle"] == "qmark"
    sql, binds = cursor.execute.call_args.args
    assert "WHERE" not in sql
    assert "FROM ANALYTICS.PUBLIC.FLOWS" in sql
    assert "ORDER BY SOURCE, TARGET" in sql
    assert binds is None
    assert flows[0].source == "A"
    assert flows[0].value == 5.0
    assert flows[0].split_category == "Retail"
    cursor.close.assert_called_once()


def test_fetch_flows_with_filters_binds_values():
    conn, cursor = _mock_connection([])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        WarehouseGateway(_settings()).fetch_flows(FilterSelection(CATEGORY_FIELD_1=["Retail"], SOURCE=["A", "B"]))

    sql, binds = cursor.execute.call_args.args
    assert "WHERE CATEGORY_FIELD_1 IN (?) AND SOURCE IN (?, ?)" in sql
    assert binds == ["Retail", "A", "B"]


def test_fetch_categories():
    conn, cursor = _mock_connection([
        {"CATEGORY_FIELD_1": "Retail", "CATEGORY_FIELD_2": "North", "CATEGORY_FIELD_3": None},
    ])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        categories = WarehouseGateway(_settings()).fetch_categories()

    sql = cursor.execute.call_args.args[0]
    assert "SELECT DISTINCT" in sql
    assert "ORDER BY CATEGORY_FIELD_1, CATEGORY_FIELD_2, CATEGORY_FIELD_3" in sql
    assert categories[0].CATEGORY_FIELD_1 == "Retail"
    assert categories[0].CATEGORY_FIELD_3 is None


def test_connection_reused_while_alive():
    conn, _ = _mock_connection([])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn) as connect:
        gateway = WarehouseGateway(_settings())
        gateway.fetch_categories()
        gateway.fetch_categories()
    assert connect.call_count == 1


def test_dead_connection_replaced():
    dead, _ = _mock_connection([], closed=True)
    alive, _ = _mock_connection([])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", side_effect=[dead, alive]) as connect:
        gateway = WarehouseGateway(_settings())
        gateway.fetch_categories()
        gateway.fetch_categories()
    assert connect.call_count == 2
    alive.cursor.assert_called_once()


def test_execution_error_wrapped_and_not_retried():
    conn, cursor = _mock_connection()
    cursor.execute.side_effect = snowflake.connector.ProgrammingError("SQL compilation error")
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        with pytest.raises(QueryExecutionError):
            WarehouseGateway(_settings()).fetch_flows()
    assert cursor.execute.call_count == 1


def test_connect_error_wrapped():
    with patch(
        "sankey_proxy.services.warehouse.snowflake.connector.connect",
        side_effect=snowflake.connector.DatabaseError("bad account"),
    ):
        with pytest.raises(QueryExecutionError, match="connect"):
            WarehouseGateway(_settings()).fetch_categories()


def test_negative_value_row_rejected():
    conn, _ = _mock_connection([{"SOURCE": "A", "TARGET": "B", "VALUE": -1}])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        with pytest.raises(QueryExecutionError, match="Invalid flow row"):
            WarehouseGateway(_settings()).fetch_flows()


@pytest.mark.anyio
async def test_async_wrappers_run_queries():
    conn, _ = _mock_connection([{"SOURCE": "A", "TARGET": "B", "VALUE": 1}])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        flows = await WarehouseGateway(_settings()).query_flows(FilterSelection(TARGET=["B"]))
    assert [f.target for f in flows] == ["B"]


def test_close_closes_shared_connection():
    conn, _ = _mock_connection([])
    with patch("sankey_proxy.services.warehouse.snowflake.connector.connect", return_value=conn):
        gateway = WarehouseGateway(_settings())
        gateway.fetch_categories()
        gateway.close()
        gateway.close()
    conn.close.assert_called_once()


def test_configured_flag():
    assert WarehouseGateway(_settings()).configured is True
    assert WarehouseGateway(WarehouseSettings()).configured is False


def test_table_identifier_validated():
    with pytest.raises(ValueError):
        WarehouseSettings(table="FLOWS; DROP TABLE USERS")
