"""
ledgersim/engine/context.py

Transaction input types, the per-dispatch ActionContext, and the immutable
ExecutionTrace recorded for every dispatched context.
"""
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class PermissionLevel:
    actor: str
    permission: str = "active"

    @classmethod
    def from_value(cls, value) -> "PermissionLevel":
        """Accept a PermissionLevel, an (actor, permission) pair, 'actor@permission' or a dict."""
        if isinstance(value, PermissionLevel):
            return value
        if isinstance(value, dict):
            return cls(value['actor'], value.get('permission', 'active'))
        if isinstance(value, (tuple, list)):
            return cls(*value)
        actor, _, permission = str(value).partition('@')
        return cls(actor, permission or 'active')

    def to_dict(self) -> dict:
        return {'actor': self.actor, 'permission': self.permission}


def encode_data(data) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return json.dumps(data, separators=(',', ':')).encode('utf-8')


def decode_data(data: bytes):
    if not data:
        return {}
    return json.loads(data.decode('utf-8'))


@dataclass
class Action:
    account: str
    name: str
    authorization: List[PermissionLevel] = field(default_factory=list)
    data: bytes = b''
    decoded_data: Optional[Any] = None

    @classmethod
    def from_json(cls, account, name, data=None, authorization=None) -> "Action":
        """Build an action whose payload is the JSON encoding of ``data``."""
        data = data if data is not None else {}
        return cls(
            account=str(account),
            name=name,
            authorization=[PermissionLevel.from_value(a) for a in (authorization or [])],
            data=encode_data(data),
            decoded_data=data,
        )


@dataclass
class Transaction:
    actions: List[Action] = field(default_factory=list)

    @classmethod
    def single(cls, account, name, data=None, authorization=None) -> "Transaction":
        return cls(actions=[Action.from_json(account, name, data, authorization)])


class ActionContext:
    """One dispatch of one action to one receiver.

    The engine owns the context until it is recorded in the trace. The VM fills
    in ``actions_queue``, ``notifications_queue``, ``is_notification`` and
    ``is_inline``; ``action_ordinal`` and ``execution_order`` are assigned by the
    engine only.
    """

    def __init__(self, receiver, first_receiver, action, data=b'', authorization=None,
                 transaction=None, decoded_data=None, sender=None,
                 is_notification=False, is_inline=False):
        self.receiver = receiver
        self.first_receiver = first_receiver
        self.action = action
        self.data = data
        self.authorization = list(authorization or [])
        self.transaction = transaction
        self.decoded_data = decoded_data
        self.sender = sender

        self.actions_queue: List["ActionContext"] = []
        self.notifications_queue: List["ActionContext"] = []
        self.is_notification = is_notification
        self.is_inline = is_inline

        self.action_ordinal: Optional[int] = None
        self.execution_order: Optional[int] = None

    def notification_for(self, recipient) -> "ActionContext":
        """Copy of this context re-addressed to ``recipient``, keeping the first receiver."""
        return ActionContext(
            receiver=recipient,
            first_receiver=self.first_receiver,
            action=self.action,
            data=self.data,
            authorization=self.authorization,
            transaction=self.transaction,
            decoded_data=self.decoded_data,
            sender=self.sender,
            is_notification=True,
            is_inline=self.is_inline,
        )

    def __repr__(self):
        return (f"ActionContext({self.receiver.name}::{self.action}, first_receiver={self.first_receiver.name}, "
                f"ordinal={self.action_ordinal}, order={self.execution_order})")


@dataclass(frozen=True)
class ExecutionTrace:
    action_ordinal: int
    execution_order: int
    receiver: str
    first_receiver: str
    action: str
    sender: Optional[str]
    authorization: Tuple[PermissionLevel, ...]
    data: Any
    is_notification: bool
    is_inline: bool

    def to_dict(self) -> dict:
        return {
            'action_ordinal': self.action_ordinal,
            'execution_order': self.execution_order,
            'receiver': self.receiver,
            'first_receiver': self.first_receiver,
            'action': self.action,
            'sender': self.sender,
            'authorization': [a.to_dict() for a in self.authorization],
            'data': self.data,
            'is_notification': self.is_notification,
            'is_inline': self.is_inline,
        }


def context_to_execution_trace(context: ActionContext) -> ExecutionTrace:
    return ExecutionTrace(
        action_ordinal=context.action_ordinal,
        execution_order=context.execution_order,
        receiver=context.receiver.name,
        first_receiver=context.first_receiver.name,
        action=context.action,
        sender=context.sender.name if context.sender is not None else None,
        authorization=tuple(context.authorization),
        data=context.decoded_data,
        is_notification=context.is_notification,
        is_inline=context.is_inline,
    )
