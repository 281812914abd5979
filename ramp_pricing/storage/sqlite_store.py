from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from ramp_pricing.core.errors import InternalError
from ramp_pricing.core.types import (
    AccountType,
    Fee,
    FeeDirection,
    FeeType,
    TransactionDirection,
    TransactionSpecification,
    UserData,
)
from ramp_pricing.storage.base import FeeRepository, TransactionSpecificationRepository, UserDataStore


class SQLiteStore(FeeRepository, TransactionSpecificationRepository, UserDataStore):
    def __init__(self, path: str) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        # FastAPI serves sync endpoints from a thread pool
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def init_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS fees (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  label TEXT NOT NULL,
                  type TEXT NOT NULL,
                  value REAL NOT NULL,
                  direction TEXT,
                  account_type TEXT,
                  assets TEXT,
                  max_tx_volume REAL,
                  max_usages INTEGER,
                  expiry_date TEXT,
                  active INTEGER NOT NULL DEFAULT 1,
                  discount_code TEXT UNIQUE
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS transaction_specifications (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  system TEXT NOT NULL,
                  asset TEXT,
                  direction TEXT,
                  min_fee REAL NOT NULL,
                  min_volume REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_data (
                  id INTEGER PRIMARY KEY,
                  account_type TEXT NOT NULL,
                  available_trading_limit REAL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_data_fees (
                  user_data_id INTEGER NOT NULL,
                  fee_id INTEGER NOT NULL,
                  PRIMARY KEY(user_data_id, fee_id)
                )
                """
            )
            self._conn.commit()

    # --- fees --- #

    def find_fee(self, fee_id: int) -> Fee | None:
        return self._fetch_one_fee("SELECT * FROM fees WHERE id=?", (fee_id,))

    def find_fee_by_label(self, label: str, direction: FeeDirection | None) -> Fee | None:
        if direction is None:
            return self._fetch_one_fee("SELECT * FROM fees WHERE label=? AND direction IS NULL", (label,))
        return self._fetch_one_fee("SELECT * FROM fees WHERE label=? AND direction=?", (label, direction.value))

    def find_fee_by_discount_code(self, discount_code: str) -> Fee | None:
        return self._fetch_one_fee("SELECT * FROM fees WHERE discount_code=?", (discount_code,))

    def find_fee_candidates(self, fee_ids: list[int]) -> list[Fee]:
        ids = [int(i) for i in fee_ids]
        placeholders = ",".join("?" for _ in ids) or "NULL"
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT * FROM fees
                WHERE type=?
                   OR (type=? AND discount_code IS NULL)
                   OR id IN ({placeholders})
                ORDER BY id ASC
                """,
                (FeeType.BASE.value, FeeType.DISCOUNT.value, *ids),
            ).fetchall()
        return [_row_to_fee(r) for r in rows]

    def save_fee(self, fee: Fee) -> Fee:
        values = (
            fee.label,
            fee.type.value,
            fee.value,
            fee.direction.value if fee.direction else None,
            fee.account_type.value if fee.account_type else None,
            ";".join(str(a) for a in fee.asset_list) if fee.asset_list else None,
            fee.max_tx_volume,
            fee.max_usages,
            fee.expiry_date.isoformat() if fee.expiry_date else None,
            1 if fee.active else 0,
            fee.discount_code,
        )
        with self._lock:
            cur = self._conn.cursor()
            if fee.id is None:
                cur.execute(
                    """
                    INSERT INTO fees
                    (label,type,value,direction,account_type,assets,max_tx_volume,max_usages,expiry_date,active,discount_code)
                    VALUES (?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    values,
                )
                fee_id = int(cur.lastrowid)
            else:
                cur.execute(
                    """
                    INSERT OR REPLACE INTO fees
                    (id,label,type,value,direction,account_type,assets,max_tx_volume,max_usages,expiry_date,active,discount_code)
                    VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    (fee.id, *values),
                )
                fee_id = fee.id
            self._conn.commit()
        saved = self.find_fee(fee_id)
        if saved is None:
            raise InternalError(f"Fee {fee_id} vanished after save")
        return saved

    def _fetch_one_fee(self, sql: str, params: tuple) -> Fee | None:
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return _row_to_fee(row) if row else None

    # --- transaction specifications --- #

    def find_all_specs(self) -> list[TransactionSpecification]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM transaction_specifications ORDER BY id ASC").fetchall()
        return [
            TransactionSpecification(
                system=r["system"],
                asset=r["asset"],
                direction=TransactionDirection(r["direction"]) if r["direction"] else None,
                min_fee=float(r["min_fee"]),
                min_volume=float(r["min_volume"]),
            )
            for r in rows
        ]

    def save_spec(self, spec: TransactionSpecification) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO transaction_specifications (system, asset, direction, min_fee, min_volume)
                VALUES (?,?,?,?,?)
                """,
                (
                    spec.system,
                    spec.asset,
                    spec.direction.value if spec.direction else None,
                    spec.min_fee,
                    spec.min_volume,
                ),
            )
            self._conn.commit()

    # --- user data --- #

    def get_user_data(self, user_data_id: int) -> UserData | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM user_data WHERE id=?", (user_data_id,)).fetchone()
            if row is None:
                return None
            fee_rows = self._conn.execute(
                "SELECT fee_id FROM user_data_fees WHERE user_data_id=? ORDER BY fee_id ASC", (user_data_id,)
            ).fetchall()
        limit = row["available_trading_limit"]
        return UserData(
            id=int(row["id"]),
            account_type=AccountType(row["account_type"]),
            individual_fee_list=[int(r["fee_id"]) for r in fee_rows],
            available_trading_limit=float(limit) if limit is not None else None,
        )

    def save_user_data(self, user_data: UserData) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                "INSERT OR REPLACE INTO user_data (id, account_type, available_trading_limit) VALUES (?,?,?)",
                (user_data.id, user_data.account_type.value, user_data.available_trading_limit),
            )
            cur.execute("DELETE FROM user_data_fees WHERE user_data_id=?", (user_data.id,))
            cur.executemany(
                "INSERT OR IGNORE INTO user_data_fees (user_data_id, fee_id) VALUES (?,?)",
                [(user_data.id, fee_id) for fee_id in user_data.individual_fee_list],
            )
            self._conn.commit()

    def add_fee(self, user_data_id: int, fee_id: int) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO user_data_fees (user_data_id, fee_id) VALUES (?,?)",
                (user_data_id, fee_id),
            )
            self._conn.commit()

    def remove_fee(self, user_data_id: int, fee_id: int) -> None:
        with self._lock:
            self._conn.execute(
                "DELETE FROM user_data_fees WHERE user_data_id=? AND fee_id=?",
                (user_data_id, fee_id),
            )
            self._conn.commit()

    def count_fee_usages(self, fee_id: int) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM user_data_fees WHERE fee_id=?", (fee_id,)
            ).fetchone()
        return int(row["n"])


def _row_to_fee(r: sqlite3.Row) -> Fee:
    assets = r["assets"]
    return Fee(
        id=int(r["id"]),
        label=r["label"],
        type=FeeType(r["type"]),
        value=float(r["value"]),
        direction=FeeDirection(r["direction"]) if r["direction"] else None,
        account_type=AccountType(r["account_type"]) if r["account_type"] else None,
        asset_list=tuple(int(a) for a in assets.split(";") if a) if assets else None,
        max_tx_volume=float(r["max_tx_volume"]) if r["max_tx_volume"] is not None else None,
        max_usages=int(r["max_usages"]) if r["max_usages"] is not None else None,
        expiry_date=datetime.fromisoformat(r["expiry_date"]) if r["expiry_date"] else None,
        active=bool(r["active"]),
        discount_code=r["discount_code"],
    )
