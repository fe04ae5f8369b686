"""
ledgersim/storage/deltas.py

Leaves of the storage delta tree. Inner nodes are plain dicts (account, table,
row fields) and lists (scope buckets); a changed value is replaced by one of:

- ``Updated(old, new)``: the value existed before and after the transaction.
- ``Added(new)``: the value (row, scope, table or account) is new.

Removed rows are not represented.
"""
import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Added:
    new: Any

    def to_dict(self) -> dict:
        return {'new': self.new}


@dataclass(frozen=True)
class Updated:
    old: Any
    new: Any

    def to_dict(self) -> dict:
        return {'old': self.old, 'new': self.new}


def to_plain(tree):
    """Replace every delta leaf by its ``{old, new}`` / ``{new}`` dict form."""
    if isinstance(tree, (Added, Updated)):
        return {key: to_plain(value) for key, value in tree.to_dict().items()}
    if isinstance(tree, dict):
        return {key: to_plain(value) for key, value in tree.items()}
    if isinstance(tree, list):
        return [to_plain(item) for item in tree]
    return tree


def _json_default(value):
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_deltas(tree, indent=4) -> str:
    return json.dumps(to_plain(tree), indent=indent, default=_json_default)
