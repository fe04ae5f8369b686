# ledgersim/storage/table_store.py
#
# Physical multi-index row store backed by an in-memory sqlite database.
#
# Unsigned 64-bit values (names, primary keys, 64-bit secondary keys) are stored
# offset by 2**63 so that sqlite's signed ordering matches unsigned ordering.
# 128/256-bit secondary keys are stored as fixed-width big-endian blobs, which
# sort the same way as the integers they encode. Doubles are stored as their
# 8-byte big-endian IEEE encoding so that -0.0 and subnormals survive sqlite.
import sqlite3
import logging
import struct
from dataclasses import dataclass
from typing import List, Optional

from ledgersim.errors import TableStoreError
from ledgersim.storage.index_planes import IndexPlane

logger = logging.getLogger(__name__)

SIGN_OFFSET = 1 << 63


def _to_sql(value: int) -> int:
    return value - SIGN_OFFSET


def _from_sql(value: int) -> int:
    return value + SIGN_OFFSET


_KEY_WIDTHS = {IndexPlane.IDX128: 16, IndexPlane.IDX256: 32}


def _secondary_to_sql(plane, key):
    if plane is IndexPlane.IDX64:
        return _to_sql(key)
    if plane is IndexPlane.IDX_DOUBLE:
        return struct.pack('>d', float(key))
    return int(key).to_bytes(_KEY_WIDTHS[plane], 'big')


def _secondary_from_sql(plane, key):
    if plane is IndexPlane.IDX64:
        return _from_sql(key)
    if plane is IndexPlane.IDX_DOUBLE:
        return struct.unpack('>d', key)[0]
    return int.from_bytes(key, 'big')


@dataclass(frozen=True)
class KeyValueRow:
    table_id: int
    primary_key: int
    payer: int
    value: bytes


@dataclass(frozen=True)
class SecondaryRow:
    table_id: int
    primary_key: int
    secondary_key: object
    payer: int


class Table:
    """One (code, scope, table) triplet; iterates rows by ascending primary key."""

    def __init__(self, store, table_id, code, scope, table, payer):
        self.store = store
        self.id = table_id
        self.code = code
        self.scope = scope
        self.table = table
        self.payer = payer

    def _fetch(self, sql, params):
        cursor = self.store.conn.execute(sql, params)
        row = cursor.fetchone()
        if row is None:
            return None
        return KeyValueRow(self.id, _from_sql(row['primary_key']), _from_sql(row['payer']), bytes(row['value']))

    def get(self, primary_key: int) -> Optional[KeyValueRow]:
        return self._fetch(
            "SELECT primary_key, payer, value FROM rows WHERE table_id = ? AND primary_key = ?",
            (self.id, _to_sql(primary_key)))

    def lowest_key(self) -> Optional[int]:
        cursor = self.store.conn.execute(
            "SELECT MIN(primary_key) AS k FROM rows WHERE table_id = ?", (self.id,))
        row = cursor.fetchone()
        return None if row['k'] is None else _from_sql(row['k'])

    def highest_key(self) -> Optional[int]:
        cursor = self.store.conn.execute(
            "SELECT MAX(primary_key) AS k FROM rows WHERE table_id = ?", (self.id,))
        row = cursor.fetchone()
        return None if row['k'] is None else _from_sql(row['k'])

    def lowerbound(self, key: Optional[int]) -> Optional[KeyValueRow]:
        """First row whose primary key is >= key."""
        if key is None:
            return None
        return self._fetch(
            "SELECT primary_key, payer, value FROM rows WHERE table_id = ? AND primary_key >= ? "
            "ORDER BY primary_key LIMIT 1",
            (self.id, _to_sql(key)))

    def next(self, key: int) -> Optional[KeyValueRow]:
        """First row whose primary key is strictly greater than key."""
        return self._fetch(
            "SELECT primary_key, payer, value FROM rows WHERE table_id = ? AND primary_key > ? "
            "ORDER BY primary_key LIMIT 1",
            (self.id, _to_sql(key)))

    def count(self) -> int:
        cursor = self.store.conn.execute("SELECT COUNT(*) AS n FROM rows WHERE table_id = ?", (self.id,))
        return cursor.fetchone()['n']

    def __repr__(self):
        return f"Table(id={self.id}, code={self.code}, scope={self.scope}, table={self.table})"


class TableStore:
    def __init__(self, db_path=":memory:"):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS table_index (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                code INTEGER NOT NULL,
                scope INTEGER NOT NULL,
                tbl INTEGER NOT NULL,
                payer INTEGER NOT NULL,
                UNIQUE (code, scope, tbl)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS rows (
                table_id INTEGER NOT NULL,
                primary_key INTEGER NOT NULL,
                payer INTEGER NOT NULL,
                value BLOB NOT NULL,
                PRIMARY KEY (table_id, primary_key)
            )
        """)
        for plane in IndexPlane:
            key_type = 'INTEGER' if plane is IndexPlane.IDX64 else 'BLOB'
            self.conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {plane.sql_table} (
                    table_id INTEGER NOT NULL,
                    primary_key INTEGER NOT NULL,
                    secondary_key {key_type} NOT NULL,
                    payer INTEGER NOT NULL,
                    PRIMARY KEY (table_id, primary_key)
                )
            """)
        self.conn.commit()

    def _table_from_row(self, row) -> Table:
        return Table(self, row['id'], _from_sql(row['code']), _from_sql(row['scope']),
                     _from_sql(row['tbl']), _from_sql(row['payer']))

    # --- Table index ---

    def tables(self) -> List[Table]:
        """Every registered table, ordered by (code, scope, table)."""
        cursor = self.conn.execute("SELECT * FROM table_index ORDER BY code, scope, tbl")
        return [self._table_from_row(row) for row in cursor.fetchall()]

    def find_table(self, code: int, scope: int, table: int) -> Optional[Table]:
        cursor = self.conn.execute(
            "SELECT * FROM table_index WHERE code = ? AND scope = ? AND tbl = ?",
            (_to_sql(code), _to_sql(scope), _to_sql(table)))
        row = cursor.fetchone()
        return self._table_from_row(row) if row else None

    def find_or_create_table(self, code: int, scope: int, table: int, payer: int) -> Table:
        existing = self.find_table(code, scope, table)
        if existing:
            return existing
        self.conn.execute(
            "INSERT INTO table_index (code, scope, tbl, payer) VALUES (?, ?, ?, ?)",
            (_to_sql(code), _to_sql(scope), _to_sql(table), _to_sql(payer)))
        self.conn.commit()
        return self.find_table(code, scope, table)

    # --- Primary rows ---

    def store_row(self, table: Table, primary_key: int, payer: int, value: bytes):
        if table.get(primary_key) is not None:
            raise TableStoreError(f"Primary key {primary_key} already exists in {table}")
        self.conn.execute(
            "INSERT INTO rows (table_id, primary_key, payer, value) VALUES (?, ?, ?, ?)",
            (table.id, _to_sql(primary_key), _to_sql(payer), value))
        self.conn.commit()

    def update_row(self, table: Table, primary_key: int, payer: int, value: bytes):
        cursor = self.conn.execute(
            "UPDATE rows SET payer = ?, value = ? WHERE table_id = ? AND primary_key = ?",
            (_to_sql(payer), value, table.id, _to_sql(primary_key)))
        if cursor.rowcount == 0:
            raise TableStoreError(f"Cannot update missing primary key {primary_key} in {table}")
        self.conn.commit()

    def erase_row(self, table: Table, primary_key: int):
        """Remove a primary row together with every secondary entry pointing at it."""
        cursor = self.conn.execute(
            "DELETE FROM rows WHERE table_id = ? AND primary_key = ?",
            (table.id, _to_sql(primary_key)))
        if cursor.rowcount == 0:
            raise TableStoreError(f"Cannot erase missing primary key {primary_key} in {table}")
        for plane in IndexPlane:
            self.conn.execute(
                f"DELETE FROM {plane.sql_table} WHERE table_id = ? AND primary_key = ?",
                (table.id, _to_sql(primary_key)))
        self.conn.commit()

    # --- Secondary indexes ---

    def set_secondary(self, plane, table: Table, primary_key: int, secondary_key, payer: int):
        """Store or replace the ``plane`` entry of a row; the primary row must exist."""
        plane = IndexPlane.from_label(plane)
        if table.get(primary_key) is None:
            raise TableStoreError(
                f"Secondary {plane.label} entry for primary key {primary_key} has no primary row in {table}")
        self.find_or_create_table(table.code, table.scope, plane.index_table_handle(table.table), payer)
        self.conn.execute(
            f"INSERT OR REPLACE INTO {plane.sql_table} (table_id, primary_key, secondary_key, payer) "
            f"VALUES (?, ?, ?, ?)",
            (table.id, _to_sql(primary_key), _secondary_to_sql(plane, secondary_key), _to_sql(payer)))
        self.conn.commit()

    def get_secondary(self, plane, table_id: int, primary_key: int) -> Optional[SecondaryRow]:
        plane = IndexPlane.from_label(plane)
        cursor = self.conn.execute(
            f"SELECT secondary_key, payer FROM {plane.sql_table} WHERE table_id = ? AND primary_key = ?",
            (table_id, _to_sql(primary_key)))
        row = cursor.fetchone()
        if row is None:
            return None
        return SecondaryRow(table_id, primary_key, _secondary_from_sql(plane, row['secondary_key']),
                            _from_sql(row['payer']))

    def erase_secondary(self, plane, table: Table, primary_key: int):
        plane = IndexPlane.from_label(plane)
        self.conn.execute(
            f"DELETE FROM {plane.sql_table} WHERE table_id = ? AND primary_key = ?",
            (table.id, _to_sql(primary_key)))
        self.conn.commit()

    def close(self):
        if self.conn:
            try:
                self.conn.close()
            finally:
                self.conn = None
