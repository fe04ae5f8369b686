"""
ledgersim/engine/vm.py

Python contract VM.

Contracts are plain Python classes deriving from ``Contract``. Methods marked
with ``@action(...)`` handle actions addressed to the contract, methods marked
with ``@on_notify("code::action")`` handle notifications forwarded from other
contracts (glob patterns allowed, e.g. ``"*::transfer"``).

A fresh contract instance is built every time the VM is recreated, i.e. once
per transaction. During ``apply`` the VM fills in the context's result fields:
``is_notification``, ``is_inline``, ``actions_queue`` and
``notifications_queue``; the dispatch engine reads nothing else.

Action data and row values are JSON-encoded bytes.
"""
import inspect
import json
import logging
from fnmatch import fnmatchcase
from typing import Dict, List, Optional, Tuple

from ledgersim.engine.context import ActionContext, PermissionLevel, decode_data, encode_data
from ledgersim.engine.names import normalize_name, string_to_name
from ledgersim.errors import ContractAssertion, MissingContractError
from ledgersim.storage.index_planes import IndexPlane

logger = logging.getLogger(__name__)


def encode_row(value) -> bytes:
    return json.dumps(value, separators=(',', ':')).encode('utf-8')


def decode_row(blob: bytes):
    return json.loads(blob.decode('utf-8'))


def action(name=None):
    """Register a contract method as the handler of action ``name`` (defaults to the method name)."""
    def decorator(fn):
        fn.__ledgersim_action__ = action_name or fn.__name__
        return fn

    if callable(name):
        action_name = None
        return decorator(name)
    action_name = name
    return decorator


def on_notify(pattern):
    """Register a contract method for notifications matching ``"code::action"``."""
    def decorator(fn):
        fn.__ledgersim_notify__ = pattern
        return fn
    return decorator


class TableView:
    """Row access for one (code, table, scope) from inside a contract."""

    def __init__(self, vm, name, scope, code):
        self.vm = vm
        self.name = normalize_name(name)
        self.scope = scope if isinstance(scope, int) else string_to_name(normalize_name(scope))
        self.code = normalize_name(code)

    @property
    def physical_store(self):
        return self.vm.account.bc.store

    def _table(self):
        return self.physical_store.find_table(string_to_name(self.code), self.scope, string_to_name(self.name))

    def _check_write_access(self):
        if self.code != self.vm.account.name:
            raise ContractAssertion(f"db access violation: {self.vm.account.name} cannot write to {self.code} tables")

    def _writable_table(self, payer):
        self._check_write_access()
        return self.physical_store.find_or_create_table(
            string_to_name(self.code), self.scope, string_to_name(self.name), payer)

    def _existing_row(self, primary_key, verb):
        self._check_write_access()
        table = self._table()
        row = table.get(primary_key) if table is not None else None
        self.vm.contract.check(row is not None, f"cannot {verb} missing row {primary_key} in {self.name}")
        return table, row

    def _payer(self, payer):
        return string_to_name(normalize_name(payer if payer is not None else self.vm.account.name))

    def get(self, primary_key):
        table = self._table()
        if table is None:
            return None
        row = table.get(primary_key)
        return decode_row(row.value) if row is not None else None

    def find(self, primary_key) -> bool:
        table = self._table()
        return table is not None and table.get(primary_key) is not None

    def rows(self) -> List[Tuple[int, object]]:
        table = self._table()
        if table is None:
            return []
        result = []
        row = table.lowerbound(table.lowest_key())
        while row:
            result.append((row.primary_key, decode_row(row.value)))
            row = table.next(row.primary_key)
        return result

    def store(self, primary_key, value, payer=None):
        payer_value = self._payer(payer)
        table = self._writable_table(payer_value)
        self.physical_store.store_row(table, primary_key, payer_value, encode_row(value))

    def modify(self, primary_key, value, payer=None):
        """Replace a row's value; the row keeps its payer unless a new one is given."""
        table, existing = self._existing_row(primary_key, 'modify')
        payer_value = self._payer(payer) if payer is not None else existing.payer
        self.physical_store.update_row(table, primary_key, payer_value, encode_row(value))

    def erase(self, primary_key):
        table, _ = self._existing_row(primary_key, 'erase')
        self.physical_store.erase_row(table, primary_key)

    def set_secondary(self, plane, primary_key, secondary_key, payer=None):
        payer_value = self._payer(payer)
        table = self._writable_table(payer_value)
        self.physical_store.set_secondary(IndexPlane.from_label(plane), table, primary_key, secondary_key, payer_value)


class Contract:
    """Base class for contracts run by ``HandlerVM``."""

    def __init__(self, vm):
        self.vm = vm

    @property
    def context(self) -> ActionContext:
        return self.vm.context

    @property
    def blockchain(self):
        return self.vm.account.bc

    @property
    def receiver(self) -> str:
        return self.vm.account.name

    @property
    def first_receiver(self) -> str:
        return self.context.first_receiver.name

    @property
    def current_time_ms(self) -> int:
        return self.blockchain.clock.timestamp_ms

    @property
    def current_block_num(self):
        return self.blockchain.clock.block_num

    def is_account(self, name) -> bool:
        return self.blockchain.get_account(name) is not None

    def check(self, condition, message):
        if not condition:
            raise ContractAssertion(f"assertion failure with message: {message}")

    def has_auth(self, actor) -> bool:
        actor = normalize_name(actor)
        return any(level.actor == actor for level in self.context.authorization)

    def require_auth(self, actor):
        if not self.has_auth(actor):
            raise ContractAssertion(f"missing required authority {normalize_name(actor)}")

    def require_recipient(self, name):
        self.vm.require_recipient(name)

    def send_inline(self, account, action_name, data=None, authorization=None):
        self.vm.send_inline(account, action_name, data, authorization)

    def table(self, name, scope=None, code=None) -> TableView:
        return TableView(self.vm, name, scope if scope is not None else self.receiver,
                         code if code is not None else self.receiver)

    def print(self, *args):
        self.blockchain.console += ' '.join(str(arg) for arg in args)


class HandlerVM:
    def __init__(self, account, contract_cls):
        self.account = account
        self.contract_cls = contract_cls
        self.context: Optional[ActionContext] = None
        self.actions: Dict[str, object] = {}
        self.notify_handlers: List[Tuple[str, object]] = []
        self._notified = set()

        for _, member in inspect.getmembers(contract_cls, predicate=inspect.isfunction):
            action_name = getattr(member, '__ledgersim_action__', None)
            if action_name:
                self.actions[action_name] = member
            pattern = getattr(member, '__ledgersim_notify__', None)
            if pattern:
                self.notify_handlers.append((pattern, member))

        self.contract = contract_cls(self)

    def _find_notify_handler(self, code, action_name):
        key = f"{code}::{action_name}"
        for pattern, handler in self.notify_handlers:
            if fnmatchcase(key, pattern):
                return handler
        return None

    def apply(self, context: ActionContext):
        context.actions_queue = []
        context.notifications_queue = []
        context.is_notification = context.receiver.name != context.first_receiver.name
        self.context = context
        self._notified = {context.receiver.name, context.first_receiver.name}

        data = decode_data(context.data)
        if context.decoded_data is None:
            context.decoded_data = data

        try:
            if context.is_notification:
                handler = self._find_notify_handler(context.first_receiver.name, context.action)
                if handler is None:
                    logger.debug(f"{self.account.name} has no handler for {context.first_receiver.name}::{context.action}")
                    return
            else:
                handler = self.actions.get(context.action)
                if handler is None:
                    raise ContractAssertion(f"Action {context.action} not found on contract {self.account.name}")
            handler(self.contract, data)
        finally:
            self.context = None

    def require_recipient(self, name):
        recipient = self.account.bc.get_account(name)
        if recipient is None:
            raise ContractAssertion(f"{name} is not an account, cannot be notified")
        if recipient.name in self._notified:
            return
        self._notified.add(recipient.name)
        self.context.notifications_queue.append(self.context.notification_for(recipient))

    def send_inline(self, account, action_name, data=None, authorization=None):
        target = self.account.bc.get_account(account)
        if target is None or not target.is_contract:
            raise MissingContractError(account)

        if authorization:
            authorization = [PermissionLevel.from_value(level) for level in authorization]
        else:
            authorization = [PermissionLevel(self.account.name, 'active')]
        data = data if data is not None else {}

        self.context.actions_queue.append(ActionContext(
            receiver=target,
            first_receiver=target,
            action=action_name,
            data=encode_data(data),
            authorization=authorization,
            transaction=self.context.transaction,
            decoded_data=data,
            sender=self.context.receiver,
            is_inline=True,
        ))
