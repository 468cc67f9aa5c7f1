from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg
import pytest

from repairdesk.config import DbConfig
from repairdesk.db import Db, DbError

CFG = DbConfig(host="h", port=5432, name="n", user="u", password="p")


def test_transaction_uses_autocommit_connection():
    conn = MagicMock()
    with patch("repairdesk.db.psycopg.connect", return_value=conn) as connect:
        with Db(CFG).transaction() as got:
            assert got is conn
    assert connect.call_args.kwargs == {"autocommit": True}
    assert "application_name=repairdesk" in connect.call_args.args[0]
    conn.transaction.assert_called_once_with()
    conn.close.assert_called_once_with()


def test_unreachable_database_names_the_snapshot_section():
    with patch("repairdesk.db.psycopg.connect", side_effect=psycopg.OperationalError("refused")):
        with pytest.raises(DbError, match=r"snapshot database n at h:5432.*\[db\]"):
            Db(CFG).connect()


def test_query_errors_are_wrapped_and_connection_closed():
    conn = MagicMock()
    with patch("repairdesk.db.psycopg.connect", return_value=conn):
        with pytest.raises(DbError, match="Snapshot query failed"):
            with Db(CFG).session():
                raise psycopg.errors.UndefinedTable("app_state")
    conn.close.assert_called_once_with()
