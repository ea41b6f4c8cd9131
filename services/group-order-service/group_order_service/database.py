from __future__ import annotations

import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Iterable

import psycopg
from psycopg.rows import dict_row

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS participants (
    id BIGINT PRIMARY KEY,
    role TEXT NOT NULL CHECK (role IN ('admin', 'worker')),
    name TEXT NOT NULL,
    phone_number TEXT NOT NULL,
    uuid TEXT NOT NULL UNIQUE,
    company_id TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    admin_id BIGINT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (admin_id) REFERENCES participants (id)
);

CREATE TABLE IF NOT EXISTS restaurants (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    admin_id BIGINT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (admin_id) REFERENCES participants (id)
);

CREATE TABLE IF NOT EXISTS menu_items (
    id TEXT PRIMARY KEY,
    restaurant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    price_cents BIGINT NOT NULL CHECK (price_cents >= 0),
    created_at TEXT NOT NULL,
    FOREIGN KEY (restaurant_id) REFERENCES restaurants (id)
);

CREATE TABLE IF NOT EXISTS group_orders (
    id TEXT PRIMARY KEY,
    restaurant_id TEXT NOT NULL,
    created_by BIGINT NOT NULL,
    status TEXT NOT NULL DEFAULT 'open',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (restaurant_id) REFERENCES restaurants (id),
    FOREIGN KEY (created_by) REFERENCES participants (id)
);

CREATE TABLE IF NOT EXISTS order_lines (
    id TEXT PRIMARY KEY,
    group_order_id TEXT NOT NULL,
    menu_item_id TEXT NOT NULL,
    worker_id BIGINT NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    is_paid INTEGER NOT NULL DEFAULT 0,
    paid_at TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (group_order_id) REFERENCES group_orders (id),
    FOREIGN KEY (menu_item_id) REFERENCES menu_items (id),
    FOREIGN KEY (worker_id) REFERENCES participants (id)
);

CREATE INDEX IF NOT EXISTS idx_order_lines_group_worker
    ON order_lines (group_order_id, worker_id);

CREATE INDEX IF NOT EXISTS idx_restaurants_admin
    ON restaurants (admin_id);
"""

# Raised by either driver; callers treat both as a failed store operation.
DatabaseError = (sqlite3.Error, psycopg.Error)


def _build_database_url() -> str:
    if url := os.environ.get("DATABASE_URL"):
        return url
    user = os.environ.get("DB_USER", "grouporder")
    password = os.environ.get("DB_PASSWORD", "grouporder")
    host = os.environ.get("DB_HOST", "group-order-db")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "group_order_service")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


DATABASE_URL = _build_database_url()


def get_connection():
    """Return a connection against Postgres (default) or SQLite when configured."""
    retries = int(os.environ.get("DB_CONNECT_MAX_RETRIES", "30"))
    delay = float(os.environ.get("DB_CONNECT_RETRY_DELAY", "2"))
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            return _connect_once()
        except Exception as exc:  # pragma: no cover - only hits when DB down
            last_exc = exc
            if attempt == retries - 1:
                raise
            time.sleep(delay)
    raise last_exc  # pragma: no cover


def _connect_once():
    if DATABASE_URL.startswith("sqlite://"):
        path = DATABASE_URL.replace("sqlite:///", "")
        conn = sqlite3.connect(path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    return psycopg.connect(DATABASE_URL, autocommit=True, row_factory=dict_row)


def init_db() -> None:
    conn = get_connection()
    try:
        apply_schema(conn)
    finally:
        conn.close()


def apply_schema(conn) -> None:
    if hasattr(conn, "executescript"):
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        return

    with conn.cursor() as cur:
        for statement in _split_statements(SCHEMA_SQL):
            cur.execute(statement)
    conn.commit()


def _split_statements(sql_blob: str) -> Iterable[str]:
    for statement in sql_blob.split(";"):
        stmt = statement.strip()
        if stmt:
            yield stmt


def is_postgres(conn) -> bool:
    return "psycopg" in conn.__class__.__module__


def placeholder(conn) -> str:
    return "%s" if is_postgres(conn) else "?"


def lock_clause(conn) -> str:
    """Row lock suffix for SELECTs inside a transaction.

    SQLite has no row locks; ``transaction`` takes the database write lock
    up front instead.
    """
    return " FOR UPDATE" if is_postgres(conn) else ""


@contextmanager
def transaction(conn):
    """Run the block as one transaction, rolling back on any exception."""
    if is_postgres(conn):
        with conn.transaction():
            yield conn
        return

    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()
