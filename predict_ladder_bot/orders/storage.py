"""SQLite persistence for order hashes and market titles."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS markets (
    market_id INTEGER PRIMARY KEY,
    market_title TEXT NOT NULL,
    first_seen_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS orders (
    order_hash TEXT PRIMARY KEY,
    order_id TEXT,
    market_id INTEGER NOT NULL,
    details TEXT,
    created_at REAL NOT NULL,
    updated_at REAL
);

CREATE INDEX IF NOT EXISTS idx_orders_market_id ON orders(market_id);
"""


class OrderStore:
    """Key-value store of our orders, keyed by order hash.

    Adding an order that is already stored overwrites its id and market,
    so callers may register the same order any number of times.
    """

    def __init__(self, db_path: str = "orders.db"):
        self._db_path = db_path
        self._write_lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("OrderStore initialized at %s", db_path)

    # ── write methods ─────────────────────────────────────────

    def add_order(
        self,
        order_hash: str,
        order_id: Optional[str],
        market_id: int,
        market_title: str,
    ) -> None:
        """Insert or overwrite an order record and remember the market title."""
        now = time.time()
        with self._write_lock:
            self._conn.execute(
                """INSERT OR IGNORE INTO markets (market_id, market_title, first_seen_at)
                   VALUES (?, ?, ?)""",
                (market_id, market_title, now),
            )
            self._conn.execute(
                """INSERT INTO orders (order_hash, order_id, market_id, created_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(order_hash) DO UPDATE SET
                       order_id = COALESCE(excluded.order_id, orders.order_id),
                       market_id = excluded.market_id""",
                (order_hash, order_id, market_id, now),
            )
            self._conn.commit()
        logger.debug("Order %s... saved (id=%s, market=%s)", order_hash[:12], order_id, market_id)

    def update_order_details(self, order_hash: str, details: dict[str, Any]) -> bool:
        """Attach the latest API details to a stored order. False if unknown."""
        with self._write_lock:
            cur = self._conn.execute(
                "UPDATE orders SET details = ?, updated_at = ? WHERE order_hash = ?",
                (json.dumps(details, default=str), time.time(), order_hash),
            )
            self._conn.commit()
        return cur.rowcount > 0

    def delete_order(self, order_hash: str) -> bool:
        with self._write_lock:
            cur = self._conn.execute("DELETE FROM orders WHERE order_hash = ?", (order_hash,))
            self._conn.commit()
        if cur.rowcount:
            logger.debug("Order %s... deleted from storage", order_hash[:12])
        return cur.rowcount > 0

    # ── read methods ──────────────────────────────────────────

    def get_order(self, order_hash: str) -> Optional[dict]:
        cur = self._conn.execute(
            """SELECT order_hash, order_id, market_id, details, created_at, updated_at
               FROM orders WHERE order_hash = ?""",
            (order_hash,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_dict(cur, row)

    def get_orders_for_market(self, market_id: int) -> list[dict]:
        cur = self._conn.execute(
            """SELECT order_hash, order_id, market_id, details, created_at, updated_at
               FROM orders WHERE market_id = ? ORDER BY created_at""",
            (market_id,),
        )
        return [self._row_to_dict(cur, row) for row in cur.fetchall()]

    def get_market_title(self, market_id: int) -> Optional[str]:
        row = self._conn.execute(
            "SELECT market_title FROM markets WHERE market_id = ?", (market_id,)
        ).fetchone()
        return row[0] if row else None

    def count_orders(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_dict(cur: sqlite3.Cursor, row: tuple) -> dict:
        cols = [d[0] for d in cur.description]
        record = dict(zip(cols, row))
        if record.get("details"):
            record["details"] = json.loads(record["details"])
        return record
