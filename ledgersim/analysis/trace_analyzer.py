# ledgersim/analysis/trace_analyzer.py
from collections import OrderedDict


class TraceAnalyzer:
    """Read-only queries over the execution traces of one transaction."""

    def __init__(self, traces):
        self.traces = list(traces)

    def filter(self, receiver=None, action=None, first_receiver=None):
        result = []
        for trace in self.traces:
            if receiver is not None and trace.receiver != receiver:
                continue
            if action is not None and trace.action != action:
                continue
            if first_receiver is not None and trace.first_receiver != first_receiver:
                continue
            result.append(trace)
        return result

    def actions(self):
        return [trace for trace in self.traces if not trace.is_notification]

    def notifications(self):
        return [trace for trace in self.traces if trace.is_notification]

    def inline_actions(self):
        return [trace for trace in self.traces if trace.is_inline and not trace.is_notification]

    def receivers(self):
        """Receivers in dispatch order, e.g. ``['eosio.token', 'alice', 'bob']``."""
        return [trace.receiver for trace in self.traces]

    def group_by_ordinal(self):
        """
        Groups traces by action ordinal.

        Returns:
            OrderedDict: {ordinal: [action trace, notification traces...]}
        """
        groups = OrderedDict()
        for trace in self.traces:
            groups.setdefault(trace.action_ordinal, []).append(trace)
        return groups

    def verify_ordering(self):
        """
        Checks the dispatch ordering rules and returns the list of violations
        (an empty list means the trace is well-ordered):

        - execution orders run 0, 1, 2, ... in trace order
        - a regular action takes the next ordinal
        - a notification keeps the ordinal of the latest action
        - a notification never targets its own first receiver
        """
        violations = []
        current_ordinal = -1

        for position, trace in enumerate(self.traces):
            label = f"#{position} {trace.receiver}::{trace.action}"

            if trace.execution_order != position:
                violations.append(f"{label}: execution order {trace.execution_order}, expected {position}")

            if trace.is_notification:
                if trace.action_ordinal != current_ordinal:
                    violations.append(
                        f"{label}: notification has ordinal {trace.action_ordinal}, expected {current_ordinal}")
                if trace.receiver == trace.first_receiver:
                    violations.append(f"{label}: notification delivered to its own first receiver")
            else:
                if trace.action_ordinal != current_ordinal + 1:
                    violations.append(
                        f"{label}: action has ordinal {trace.action_ordinal}, expected {current_ordinal + 1}")
                current_ordinal = max(current_ordinal, trace.action_ordinal)

        return violations

    def format_trace(self):
        lines = []
        for trace in self.traces:
            marker = 'notify' if trace.is_notification else ('inline' if trace.is_inline else 'action')
            lines.append(
                f"[{trace.action_ordinal}/{trace.execution_order}] {marker:<6} "
                f"{trace.receiver} <- {trace.first_receiver}::{trace.action} {trace.data}")
        return "\n".join(lines)
