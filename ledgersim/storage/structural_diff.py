"""
ledgersim/storage/structural_diff.py

Generic structural diff between two JSON-like trees (dicts, lists, scalars).

``diff`` returns a nested changeset: containers present on both sides produce
an UPDATE carrying ``changes``; everything else is a leaf ADD / REMOVE / UPDATE.
Lists are compared position by position. ``flatten_changeset`` turns the nested
changeset into leaf operations whose ``path`` is the root marker followed by
every key, joined by ``|`` (e.g. ``$|eosio.token|accounts|alice|0|value``).
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional

ROOT = '$'
PATH_SEPARATOR = '|'


class Operation(Enum):
    ADD = 'ADD'
    REMOVE = 'REMOVE'
    UPDATE = 'UPDATE'


@dataclass
class Change:
    type: Operation
    key: str
    value: Any = None
    old_value: Any = None
    changes: Optional[List["Change"]] = None
    path: Optional[str] = None


_MISSING = object()


def _same_leaf(a, b) -> bool:
    return type(a) is type(b) and a == b


def _compare(key, old, new) -> List[Change]:
    if isinstance(old, dict) and isinstance(new, dict) or isinstance(old, list) and isinstance(new, list):
        nested = diff(old, new)
        return [Change(Operation.UPDATE, key, changes=nested)] if nested else []
    if _same_leaf(old, new):
        return []
    return [Change(Operation.UPDATE, key, value=new, old_value=old)]


def _items(tree):
    if isinstance(tree, list):
        return [(str(i), v) for i, v in enumerate(tree)]
    return [(str(k), v) for k, v in tree.items()]


def diff(old, new) -> List[Change]:
    """Nested changeset turning ``old`` into ``new``."""
    changes: List[Change] = []
    old_items = dict(_items(old))
    new_items = dict(_items(new))

    for key, old_value in old_items.items():
        new_value = new_items.get(key, _MISSING)
        if new_value is _MISSING:
            changes.append(Change(Operation.REMOVE, key, value=old_value))
        else:
            changes.extend(_compare(key, old_value, new_value))

    for key, new_value in new_items.items():
        if key not in old_items:
            changes.append(Change(Operation.ADD, key, value=new_value))

    return changes


def flatten_changeset(changes: List[Change], path: str = ROOT) -> List[Change]:
    """Leaf operations of a nested changeset, each with its full ``path``."""
    flat: List[Change] = []
    for change in changes:
        change_path = f"{path}{PATH_SEPARATOR}{change.key}"
        if change.changes is not None:
            flat.extend(flatten_changeset(change.changes, change_path))
        else:
            flat.append(replace(change, path=change_path))
    return flat


def split_path(path: str) -> List[str]:
    """Path components below the root marker."""
    prefix = ROOT + PATH_SEPARATOR
    body = path[len(prefix):] if path.startswith(prefix) else path
    return body.split(PATH_SEPARATOR) if body else []
