from __future__ import annotations

import argparse
import os
import sqlite3
from typing import Iterable

from newsharvest.db import DBConn
from newsharvest.migrations_pg import apply_migrations_pg

# Parents before children so foreign keys resolve.
TABLES = ["news_media", "articles", "crawl_runs"]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy a newsharvest sqlite store into PostgreSQL")
    parser.add_argument(
        "--sqlite", default=os.environ.get("NH_DB_PATH", "data/newsharvest.sqlite3")
    )
    parser.add_argument("--pg-url", default=os.environ.get("NH_DB_URL", ""))
    return parser.parse_args()


def _table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def _chunked(rows: Iterable[tuple], size: int = 500) -> Iterable[list[tuple]]:
    batch: list[tuple] = []
    for row in rows:
        batch.append(row)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def main() -> int:
    args = _parse_args()
    if not args.pg_url:
        raise SystemExit("NH_DB_URL is required for Postgres migration")

    try:
        import psycopg
    except ImportError as exc:
        raise SystemExit("psycopg is required for Postgres migration") from exc

    sqlite_conn = sqlite3.connect(args.sqlite)
    pg_conn = psycopg.connect(args.pg_url)
    apply_migrations_pg(DBConn(pg_conn, "postgres"))

    for table in TABLES:
        columns = _table_columns(sqlite_conn, table)
        if not columns:
            continue
        cols_sql = ", ".join(columns)
        placeholders = ", ".join(["%s"] * len(columns))
        insert_sql = (
            f"INSERT INTO {table} ({cols_sql}) VALUES ({placeholders}) "
            "ON CONFLICT DO NOTHING"
        )
        cursor = sqlite_conn.execute(f"SELECT {cols_sql} FROM {table}")
        copied = 0
        for batch in _chunked(cursor, 500):
            with pg_conn.cursor() as pg_cursor:
                pg_cursor.executemany(insert_sql, batch)
            pg_conn.commit()
            copied += len(batch)
        if "id" in columns:
            pg_conn.execute(
                f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                f"COALESCE((SELECT MAX(id) FROM {table}), 1))"
            )
            pg_conn.commit()
        print(f"{table}: {copied} rows")

    sqlite_conn.close()
    pg_conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
