# tests/part1_core/test_table_store.py
"""
Unit tests for the sqlite-backed physical store (ledgersim/storage/table_store.py).

Tests cover:
- Table index registration and ordering
- Unsigned 64-bit primary key ordering (lowest_key / lowerbound / next)
- Store / update / erase invariants
- Secondary index planes and their derived index tables
"""

import unittest

from ledgersim.engine.names import string_to_name
from ledgersim.errors import TableStoreError
from ledgersim.storage.index_planes import IndexPlane
from ledgersim.storage.table_store import TableStore

CODE = string_to_name('kv')
SCOPE = string_to_name('kv')
TABLE = string_to_name('entries')


class TestTableStore(unittest.TestCase):

    def setUp(self):
        self.store = TableStore()
        self.table = self.store.find_or_create_table(CODE, SCOPE, TABLE, CODE)

    def tearDown(self):
        self.store.close()

    def test_find_or_create_is_idempotent(self):
        again = self.store.find_or_create_table(CODE, SCOPE, TABLE, CODE)
        self.assertEqual(again.id, self.table.id)
        self.assertEqual(len(self.store.tables()), 1)
        self.assertIsNone(self.store.find_table(CODE, SCOPE, string_to_name('other')))

    def test_tables_ordered_by_code_scope_table(self):
        self.store.find_or_create_table(CODE, string_to_name('a'), TABLE, CODE)
        self.store.find_or_create_table(string_to_name('zed'), SCOPE, TABLE, CODE)
        handles = [(t.code, t.scope, t.table) for t in self.store.tables()]
        self.assertEqual(handles, sorted(handles))

    def test_unsigned_primary_key_order(self):
        keys = [(1 << 64) - 1, 5, 1 << 63, 0]
        for key in keys:
            self.store.store_row(self.table, key, CODE, b'{}')

        self.assertEqual(self.table.lowest_key(), 0)
        self.assertEqual(self.table.highest_key(), (1 << 64) - 1)

        visited = []
        row = self.table.lowerbound(self.table.lowest_key())
        while row:
            visited.append(row.primary_key)
            row = self.table.next(row.primary_key)
        self.assertEqual(visited, sorted(keys))
        self.assertEqual(self.table.count(), 4)

    def test_lowerbound(self):
        for key in (10, 20, 30):
            self.store.store_row(self.table, key, CODE, b'{}')
        self.assertEqual(self.table.lowerbound(15).primary_key, 20)
        self.assertEqual(self.table.lowerbound(20).primary_key, 20)
        self.assertIsNone(self.table.lowerbound(31))
        self.assertIsNone(self.table.lowerbound(None))

    def test_empty_table(self):
        self.assertIsNone(self.table.lowest_key())
        self.assertEqual(self.table.count(), 0)

    def test_duplicate_primary_key(self):
        self.store.store_row(self.table, 1, CODE, b'1')
        with self.assertRaises(TableStoreError):
            self.store.store_row(self.table, 1, CODE, b'2')

    def test_update_and_erase(self):
        payer = string_to_name('alice')
        self.store.store_row(self.table, 1, CODE, b'1')
        self.store.update_row(self.table, 1, payer, b'2')
        row = self.table.get(1)
        self.assertEqual(row.value, b'2')
        self.assertEqual(row.payer, payer)

        self.store.erase_row(self.table, 1)
        self.assertIsNone(self.table.get(1))

    def test_missing_rows(self):
        with self.assertRaises(TableStoreError):
            self.store.update_row(self.table, 9, CODE, b'')
        with self.assertRaises(TableStoreError):
            self.store.erase_row(self.table, 9)

    def test_secondary_requires_primary_row(self):
        with self.assertRaises(TableStoreError):
            self.store.set_secondary(IndexPlane.IDX64, self.table, 1, 42, CODE)

    def test_secondary_planes_round_trip(self):
        self.store.store_row(self.table, 1, CODE, b'{}')
        keys = {
            IndexPlane.IDX64: (1 << 64) - 2,
            IndexPlane.IDX128: (1 << 127) + 3,
            IndexPlane.IDX256: (1 << 255) + 7,
            IndexPlane.IDX_DOUBLE: -0.1,
        }
        for plane, key in keys.items():
            self.store.set_secondary(plane, self.table, 1, key, CODE)

        for plane, key in keys.items():
            self.assertEqual(self.store.get_secondary(plane, self.table.id, 1).secondary_key, key)

    def test_secondary_registers_index_table(self):
        self.store.store_row(self.table, 1, CODE, b'{}')
        self.store.set_secondary('idx128', self.table, 1, 9, CODE)
        index_handle = (TABLE & 0xFFFFFFFFFFFFFFF0) | 2
        self.assertIsNotNone(self.store.find_table(CODE, SCOPE, index_handle))

    def test_one_secondary_entry_per_plane(self):
        self.store.store_row(self.table, 1, CODE, b'{}')
        self.store.set_secondary(IndexPlane.IDX64, self.table, 1, 1, CODE)
        self.store.set_secondary(IndexPlane.IDX64, self.table, 1, 2, CODE)
        self.assertEqual(self.store.get_secondary(IndexPlane.IDX64, self.table.id, 1).secondary_key, 2)

    def test_erase_removes_secondaries(self):
        self.store.store_row(self.table, 1, CODE, b'{}')
        self.store.set_secondary(IndexPlane.IDX64, self.table, 1, 5, CODE)
        self.store.erase_row(self.table, 1)
        self.assertIsNone(self.store.get_secondary(IndexPlane.IDX64, self.table.id, 1))

    def test_erase_secondary(self):
        self.store.store_row(self.table, 1, CODE, b'{}')
        self.store.set_secondary(IndexPlane.IDX_DOUBLE, self.table, 1, 1.5, CODE)
        self.store.erase_secondary(IndexPlane.IDX_DOUBLE, self.table, 1)
        self.assertIsNone(self.store.get_secondary(IndexPlane.IDX_DOUBLE, self.table.id, 1))
        self.assertIsNotNone(self.table.get(1))

    def test_unknown_plane(self):
        with self.assertRaises(ValueError):
            IndexPlane.from_label('idx512')


if __name__ == '__main__':
    unittest.main()
