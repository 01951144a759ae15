import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

from valerix.common import db as common_db
from valerix.common.ids import new_transaction_id
from valerix.common.models import LedgerEntry, OrderRequest

logger = logging.getLogger("inventory.ledger")


class LedgerError(Exception):
    pass


class UnknownItemError(LedgerError):
    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class InsufficientStockError(LedgerError):
    def __init__(self, item_id: str, requested: int, available: int):
        super().__init__(f"Insufficient {item_id}: need {requested}, have {available}")
        self.item_id = item_id
        self.requested = requested
        self.available = available


class PersistenceError(LedgerError):
    pass


@dataclass(frozen=True)
class ApplyResult:
    entry: LedgerEntry
    applied: bool  # False when the order id was already in the ledger


class IdempotentLedger:
    """Applies each order's stock mutation at most once.

    Lookup, decrement and insert run in one ``BEGIN IMMEDIATE`` transaction;
    the primary key on ``order_id`` rejects a concurrent second insert.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return common_db.connect(self.db_path)

    @staticmethod
    def _lookup(conn, order_id: str) -> LedgerEntry | None:
        row = conn.execute(
            "SELECT order_id, item_id, quantity, transaction_id, created_at "
            "FROM order_transactions WHERE order_id = ?",
            (order_id,),
        ).fetchone()
        return LedgerEntry(*row) if row else None

    def apply(self, order: OrderRequest) -> ApplyResult:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open ledger: {e}") from e
        try:
            conn.execute("BEGIN IMMEDIATE")
            existing = self._lookup(conn, order.order_id)
            if existing:
                conn.rollback()
                return ApplyResult(existing, applied=False)

            row = conn.execute(
                "SELECT stock FROM inventory WHERE item_id = ?", (order.item_id,)
            ).fetchone()
            if not row:
                conn.rollback()
                raise UnknownItemError(order.item_id)
            if row[0] < order.quantity:
                conn.rollback()
                raise InsufficientStockError(order.item_id, order.quantity, row[0])

            entry = LedgerEntry(
                order_id=order.order_id,
                item_id=order.item_id,
                quantity=order.quantity,
                transaction_id=new_transaction_id(),
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            conn.execute(
                "UPDATE inventory SET stock = stock - ? WHERE item_id = ?",
                (order.quantity, order.item_id),
            )
            conn.execute(
                "INSERT INTO order_transactions "
                "(order_id, item_id, quantity, transaction_id, created_at) VALUES (?, ?, ?, ?, ?)",
                (entry.order_id, entry.item_id, entry.quantity, entry.transaction_id, entry.created_at),
            )
            conn.commit()
            logger.info(
                "APPLIED %s | %s -%d | tx=%s",
                entry.order_id, entry.item_id, entry.quantity, entry.transaction_id,
            )
            return ApplyResult(entry, applied=True)

        except sqlite3.IntegrityError as e:
            conn.rollback()
            # Another transaction committed this order id first.
            existing = self._lookup(conn, order.order_id)
            if existing is None:
                raise PersistenceError(f"constraint violation for {order.order_id}: {e}") from e
            logger.info("Concurrent insert of %s lost the race; using winner's entry", order.order_id)
            return ApplyResult(existing, applied=False)
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"ledger transaction for {order.order_id} failed: {e}") from e
        finally:
            conn.close()

    def get(self, order_id: str) -> LedgerEntry | None:
        conn = self._connect()
        try:
            return self._lookup(conn, order_id)
        finally:
            conn.close()

    def count(self, order_id: str) -> int:
        conn = self._connect()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM order_transactions WHERE order_id = ?", (order_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    def stock(self, item_id: str) -> int | None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT stock FROM inventory WHERE item_id = ?", (item_id,)).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def inventory(self) -> dict:
        conn = self._connect()
        try:
            return dict(conn.execute("SELECT item_id, stock FROM inventory ORDER BY item_id").fetchall())
        finally:
            conn.close()
