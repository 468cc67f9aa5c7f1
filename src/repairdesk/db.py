from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg
from psycopg import Connection
from psycopg.conninfo import make_conninfo

from .config import DbConfig


class DbError(Exception):
    pass


@dataclass(frozen=True)
class Db:
    """Connections to the optional state snapshot database ([db] in config.toml)."""

    cfg: DbConfig
    application_name: str = "repairdesk"

    def conninfo(self) -> str:
        return make_conninfo(
            host=self.cfg.host,
            port=self.cfg.port,
            dbname=self.cfg.name,
            user=self.cfg.user,
            password=self.cfg.password,
            sslmode=self.cfg.sslmode,
            application_name=self.application_name,
        )

    def connect(self) -> Connection:
        # autocommit so that transaction() below owns the only BEGIN/COMMIT
        try:
            return psycopg.connect(self.conninfo(), autocommit=True)
        except psycopg.Error as e:
            raise DbError(
                f"Cannot reach the snapshot database {self.cfg.name} at {self.cfg.host}:{self.cfg.port}. "
                "Check the [db] section of config.toml or remove it to run in memory."
            ) from e

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        except psycopg.Error as e:
            raise DbError(f"Snapshot query failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        with self.session() as conn:
            with conn.transaction():
                yield conn
