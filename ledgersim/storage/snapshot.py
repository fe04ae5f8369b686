"""
ledgersim/storage/snapshot.py

Logical view of the physical store: ``account -> table -> scope -> [Row]``.

The projector walks every table of the store's table index in ascending
primary-key order, decodes each row through the owning account, and attaches
the row's secondary index entries (one per plane at most, in plane order).
Tables registered for secondary planes are folded back into their primary
table by name normalization.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ledgersim.engine.names import name_to_string
from ledgersim.storage.index_planes import IndexPlane, SecondaryIndexValue

logger = logging.getLogger(__name__)


def primary_table_name(table_name: str) -> str:
    """Recover the primary table name from a (possibly secondary-index) table name."""
    if len(table_name) == 13:
        table_name = table_name[:-1]
    return table_name.rstrip('.')


@dataclass
class Row:
    primary_key: int
    payer: str
    value: Any
    secondary_indexes: List[SecondaryIndexValue] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            'primary_key': self.primary_key,
            'payer': self.payer,
            'value': copy.deepcopy(self.value),
        }
        if self.secondary_indexes:
            data['secondary_indexes'] = [index.to_dict() for index in self.secondary_indexes]
        return data


class Snapshot:
    """Nested ``account -> table -> scope -> [Row]`` mapping, in encounter order."""

    def __init__(self):
        self.accounts: Dict[str, Dict[str, Dict[str, List[Row]]]] = {}

    def bucket(self, account: str, table: str, scope: str) -> List[Row]:
        return self.accounts.setdefault(account, {}).setdefault(table, {}).setdefault(scope, [])

    def add_row(self, account: str, table: str, scope: str, row: Row):
        self.bucket(account, table, scope).append(row)

    def rows(self, account: str, table: str, scope: str) -> List[Row]:
        return list(self.accounts.get(account, {}).get(table, {}).get(scope, []))

    def to_dict(self) -> dict:
        return {
            account: {
                table: {
                    scope: [row.to_dict() for row in rows]
                    for scope, rows in scopes.items()
                }
                for table, scopes in tables.items()
            }
            for account, tables in self.accounts.items()
        }

    def __getitem__(self, account):
        return self.accounts[account]

    def __contains__(self, account):
        return account in self.accounts

    def __eq__(self, other):
        return isinstance(other, Snapshot) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Snapshot({self.to_dict()!r})"


class StorageProjector:
    def __init__(self, store, registry):
        self.store = store
        self.registry = registry

    def _decode_value(self, code_name, table_name, table, row):
        account = self.registry.resolve(code_name)
        if account is None:
            logger.warning(f"No account registered for table owner '{code_name}', keeping raw row bytes")
            return row.value.hex()
        return account.table_row_accessor(table_name, table.scope)(row.primary_key)

    def _secondary_indexes(self, row) -> List[SecondaryIndexValue]:
        indexes = []
        for plane in IndexPlane:
            entry = self.store.get_secondary(plane, row.table_id, row.primary_key)
            if entry is not None:
                indexes.append(plane.decode(entry.secondary_key))
        return indexes

    def snapshot(self) -> Snapshot:
        snapshot = Snapshot()

        for table in self.store.tables():
            code_name = name_to_string(table.code)
            scope_name = name_to_string(table.scope) or '.'
            table_name = primary_table_name(name_to_string(table.table))

            bucket = snapshot.bucket(code_name, table_name, scope_name)

            row = table.lowerbound(table.lowest_key())
            while row:
                bucket.append(Row(
                    primary_key=row.primary_key,
                    payer=name_to_string(row.payer),
                    value=self._decode_value(code_name, table_name, table, row),
                    secondary_indexes=self._secondary_indexes(row),
                ))
                row = table.next(row.primary_key)

        return snapshot
