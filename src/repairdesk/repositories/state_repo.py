from __future__ import annotations

from datetime import datetime
from typing import Optional

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..domain import AppState
from ..serialization import state_from_data, state_to_data

# The whole store is one row; the id leaves room for named snapshots later.
DEFAULT_SNAPSHOT_ID = 1


class StateRepository:
    def ensure_schema(self, conn: Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS app_state (
              id integer PRIMARY KEY,
              payload jsonb NOT NULL,
              saved_at timestamptz NOT NULL DEFAULT now()
            );
            """
        )

    def save(self, conn: Connection, state: AppState, *, snapshot_id: int = DEFAULT_SNAPSHOT_ID) -> None:
        conn.execute(
            """
            INSERT INTO app_state(id, payload)
            VALUES (%s, %s)
            ON CONFLICT (id) DO UPDATE SET
              payload = EXCLUDED.payload,
              saved_at = now();
            """,
            (snapshot_id, Jsonb(state_to_data(state))),
        )

    def load(self, conn: Connection, *, snapshot_id: int = DEFAULT_SNAPSHOT_ID) -> Optional[AppState]:
        cur = conn.execute("SELECT payload FROM app_state WHERE id = %s;", (snapshot_id,))
        row = cur.fetchone()
        if not row:
            return None
        return state_from_data(row[0])

    def saved_at(self, conn: Connection, *, snapshot_id: int = DEFAULT_SNAPSHOT_ID) -> Optional[datetime]:
        cur = conn.execute("SELECT saved_at FROM app_state WHERE id = %s;", (snapshot_id,))
        row = cur.fetchone()
        return row[0] if row else None
