"""
ledgersim/engine/account.py

Accounts and the registry the dispatch engine resolves receivers through.
An account owns its VM instance, which is thrown away and rebuilt at the start
of every transaction so no in-memory state leaks across transactions.
"""
import logging
from typing import Callable, Dict, Iterator, Optional

from ledgersim.engine.names import normalize_name, string_to_name
from ledgersim.engine.vm import HandlerVM, decode_row

logger = logging.getLogger(__name__)


class NullVM:
    """VM of an account without a contract: it accepts notifications and does nothing."""

    def __init__(self, account):
        self.account = account

    def apply(self, context):
        context.is_notification = context.receiver.name != context.first_receiver.name
        context.actions_queue = []
        context.notifications_queue = []


class Account:
    def __init__(self, name, bc, contract=None, wasm=None, abi=None):
        self.name = normalize_name(name)
        self.bc = bc
        self.contract = contract
        self.wasm = wasm
        self.abi = abi
        self.vm = None
        self.recreate_vm()

    @property
    def name_value(self) -> int:
        return string_to_name(self.name)

    @property
    def is_contract(self) -> bool:
        return self.contract is not None

    def recreate_vm(self):
        if self.contract is None:
            self.vm = NullVM(self)
        else:
            self.vm = HandlerVM(self, self.contract)
        return self.vm

    def set_contract(self, contract, wasm=None, abi=None):
        self.contract = contract
        self.wasm = wasm
        self.abi = abi
        self.recreate_vm()

    def find_table(self, table_name, scope):
        return self.bc.store.find_table(self.name_value, _scope_value(scope), string_to_name(table_name))

    def table_row_accessor(self, table_name, scope) -> Callable[[int], Optional[object]]:
        """Return a function mapping a primary key of (table_name, scope) to its decoded row value."""
        def get_table_row(primary_key):
            table = self.find_table(table_name, scope)
            if table is None:
                return None
            row = table.get(primary_key)
            return decode_row(row.value) if row is not None else None
        return get_table_row

    def __eq__(self, other):
        return isinstance(other, Account) and other.name == self.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return f"Account({self.name!r}, contract={self.is_contract})"


def _scope_value(scope) -> int:
    if isinstance(scope, int):
        return scope
    return string_to_name(normalize_name(scope))


class AccountRegistry:
    """Name -> Account mapping, keyed by the canonical (lower-case) name string."""

    def __init__(self, accounts: Optional[Dict[str, Account]] = None):
        self._accounts: Dict[str, Account] = {}
        for account in (accounts or {}).values():
            self.add(account)

    def add(self, account: Account) -> Account:
        self._accounts[account.name] = account
        return account

    def resolve(self, name) -> Optional[Account]:
        try:
            return self._accounts.get(normalize_name(name))
        except ValueError:
            return None

    def values(self):
        return list(self._accounts.values())

    def names(self):
        return list(self._accounts.keys())

    def __contains__(self, name):
        return self.resolve(name) is not None

    def __getitem__(self, name) -> Account:
        account = self.resolve(name)
        if account is None:
            raise KeyError(name)
        return account

    def __iter__(self) -> Iterator[Account]:
        return iter(list(self._accounts.values()))

    def __len__(self):
        return len(self._accounts)
