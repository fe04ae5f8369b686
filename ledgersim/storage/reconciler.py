"""
ledgersim/storage/reconciler.py

Turns the flat structural diff of two snapshots into a storage delta tree
shaped like a snapshot (``account -> table -> scope -> [row]``).

- UPDATE: the scope's rows from the pre-snapshot are restored first, so rows
  the transaction did not touch stay visible, then the changed leaf becomes
  ``Updated(old, new)``.
- ADD: the added substructure is copied from the post-snapshot and recorded as
  ``Added(new)``. A new account, table or scope is copied wholesale.
- REMOVE: removed rows are left out of the delta tree.

Buckets restored for an update are compacted at the end, dropping placeholder
slots. A bucket that only received added rows keeps them at their post-snapshot
positions, with ``None`` in the untouched slots before them.
"""
import copy
import logging
from typing import List, Set, Tuple

from ledgersim.storage.deltas import Added, Updated
from ledgersim.storage.snapshot import Snapshot
from ledgersim.storage.structural_diff import Change, Operation, diff, flatten_changeset, split_path

logger = logging.getLogger(__name__)

ROW_DEPTH = 4


def _child(node, key):
    return node[int(key)] if isinstance(node, list) else node[key]


def _assign(node, key, value):
    if isinstance(node, list):
        index = int(key)
        while len(node) <= index:
            node.append(None)
        node[index] = value
    else:
        node[key] = value


class DiffReconciler:
    def __init__(self):
        self.changesets: List[Change] = []

    @staticmethod
    def _bucket(deltas, account, table, scope) -> list:
        return deltas.setdefault(account, {}).setdefault(table, {}).setdefault(scope, [])

    def _restore_bucket(self, deltas, pre_tree, post_tree, account, table, scope):
        """Fill the scope bucket with the pre-change rows wherever it has no entry yet.

        Positions past the end of the post-change bucket were removed and stay out.
        """
        bucket = self._bucket(deltas, account, table, scope)
        surviving = len(post_tree[account][table][scope])
        for index, row in enumerate(pre_tree[account][table][scope][:surviving]):
            if index >= len(bucket):
                bucket.append(copy.deepcopy(row))
            elif bucket[index] is None:
                bucket[index] = copy.deepcopy(row)

    def _set_path(self, deltas, parts, leaf):
        if len(parts) < ROW_DEPTH:
            node = deltas
            for key in parts[:-1]:
                node = node.setdefault(key, {})
            node[parts[-1]] = leaf
            return

        node = self._bucket(deltas, *parts[:3])
        for key in parts[3:-1]:
            node = _child(node, key)
        _assign(node, parts[-1], leaf)

    def _fill(self, deltas, post_tree, parts):
        """Copy the substructure at ``parts`` from the post-snapshot as an addition."""
        source = post_tree
        for key in parts:
            source = _child(source, key)
        self._set_path(deltas, parts, Added(copy.deepcopy(source)))

    def reconcile(self, pre: Snapshot, post: Snapshot) -> dict:
        pre_tree = pre.to_dict()
        post_tree = post.to_dict()
        self.changesets = flatten_changeset(diff(pre_tree, post_tree))

        deltas = {}
        restored: Set[Tuple[str, str, str]] = set()

        for change in self.changesets:
            parts = split_path(change.path)
            if not parts:
                continue
            account, table, scope, index = (parts + [None] * ROW_DEPTH)[:ROW_DEPTH]

            if change.type is Operation.UPDATE:
                if index is not None:
                    self._restore_bucket(deltas, pre_tree, post_tree, account, table, scope)
                    restored.add((account, table, scope))
                self._set_path(deltas, parts, Updated(old=change.old_value, new=change.value))
            elif change.type is Operation.ADD:
                if len(parts) > ROW_DEPTH:
                    self._restore_bucket(deltas, pre_tree, post_tree, account, table, scope)
                    restored.add((account, table, scope))
                self._fill(deltas, post_tree, parts)
            else:
                logger.debug(f"Removal at {change.path} is not reflected in storage deltas")

        for account, table, scope in restored:
            bucket = deltas[account][table][scope]
            deltas[account][table][scope] = [row for row in bucket if row is not None]

        return deltas
