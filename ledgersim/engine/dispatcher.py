"""
ledgersim/engine/dispatcher.py

Dispatch engine: runs every action of a transaction, together with the inline
actions and notifications it spawns, in ledger order.

Per top-level action the engine keeps two queues:

- ``notifications_queue`` is always drained first; a notification keeps the
  ordinal of the action that produced it.
- ``actions_queue`` receives inline actions. Actions spawned by a regular
  action go to the FRONT (depth-first, like a call stack); actions spawned
  while handling a notification go to the BACK (breadth-first).

``action_ordinal`` and ``execution_order`` are shared by every top-level action
of the transaction and live in a DispatchCursor owned by one ``execute`` call.
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import List

from ledgersim.engine.context import ActionContext, ExecutionTrace, Transaction, context_to_execution_trace
from ledgersim.errors import MissingContractError

logger = logging.getLogger(__name__)


@dataclass
class DispatchCursor:
    action_ordinal: int = -1
    execution_order: int = -1

    def advance_action(self) -> int:
        self.action_ordinal += 1
        return self.action_ordinal

    def advance_execution(self) -> int:
        self.execution_order += 1
        return self.execution_order


def log_execution_trace(trace: ExecutionTrace):
    logger.debug(
        f"Action {trace.action_ordinal}/{trace.execution_order} | {trace.receiver}::{trace.action} | "
        f"First receiver: {trace.first_receiver} | Sender: {trace.sender} | "
        f"Notification: {trace.is_notification} | Inline: {trace.is_inline} | "
        f"Authorization: {[a.to_dict() for a in trace.authorization]} | Data: {trace.data}"
    )


class DispatchEngine:
    def __init__(self, registry):
        self.registry = registry
        self.action_traces: List[ActionContext] = []
        self.execution_traces: List[ExecutionTrace] = []

    def reset(self):
        self.action_traces = []
        self.execution_traces = []

    def _seed_context(self, action, transaction, decoded_data) -> ActionContext:
        contract = self.registry.resolve(action.account)
        if contract is None or not contract.is_contract:
            raise MissingContractError(action.account)

        return ActionContext(
            receiver=contract,
            first_receiver=contract,
            action=action.name,
            data=action.data,
            authorization=action.authorization,
            transaction=transaction,
            decoded_data=decoded_data if decoded_data is not None else action.decoded_data,
        )

    def execute(self, transaction: Transaction, decoded_data=None) -> List[ExecutionTrace]:
        """Dispatch every action of ``transaction``; returns the execution traces.

        Traces recorded before a failure stay readable on ``execution_traces``.
        Errors from the VM propagate unchanged and nothing is rolled back.
        """
        self.reset()
        cursor = DispatchCursor()

        for action in transaction.actions:
            context = self._seed_context(action, transaction, decoded_data)
            self._run(context, cursor)

        return self.execution_traces

    def _run(self, context: ActionContext, cursor: DispatchCursor):
        actions_queue = deque([context])
        notifications_queue = deque()

        while notifications_queue or actions_queue:
            if notifications_queue:
                context = notifications_queue.popleft()
                context.action_ordinal = cursor.action_ordinal
            else:
                context = actions_queue.popleft()
                context.action_ordinal = cursor.advance_action()
            context.execution_order = cursor.advance_execution()

            self.action_traces.append(context)
            trace = context_to_execution_trace(context)
            self.execution_traces.append(trace)
            log_execution_trace(trace)

            context.receiver.vm.apply(context)

            notifications_queue.extend(context.notifications_queue)
            if context.is_notification:
                actions_queue.extend(context.actions_queue)
            else:
                actions_queue.extendleft(reversed(context.actions_queue))
