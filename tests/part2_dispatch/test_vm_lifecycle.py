"""
Per-transaction VM reset, console output and deterministic replay.

The same transactions applied to independent Blockchain instances must
produce byte-identical execution traces.
"""
import hashlib
import json

import pytest

from ledgersim.engine.blockchain import Blockchain
from ledgersim.engine.vm import Contract, action
from tests.fixtures.contracts import KeyValueContract, ScriptContract


class CounterContract(Contract):
    """Keeps an in-memory counter that must not survive a transaction."""

    def __init__(self, vm):
        super().__init__(vm)
        self.calls = 0

    @action
    def bump(self, data):
        self.calls += 1
        self.print(f"calls={self.calls}")

    @action
    def now(self, data):
        self.print(f"{self.current_time_ms}ms block {self.current_block_num:g}")


SCENARIO = [
    ('a', 'run', {'tag': 'A', 'notify': ['b', 'd'],
                  'inline': [{'account': 'c', 'data': {'tag': 'X', 'notify': ['d']}}],
                  'on_notify': {'b': {'inline': [{'account': 'c', 'data': {'tag': 'Z'}}]}}}),
    ('kv', 'set', {'key': 3, 'value': {'n': 1}}),
    ('kv', 'set', {'key': 3, 'value': {'n': 2}}),
    ('c', 'run', {'tag': 'C', 'notify': ['a']}),
]


def build_chain():
    bc = Blockchain(config={'reset_workers': 2})
    for name in ('a', 'b', 'c'):
        bc.create_contract(name, ScriptContract)
    bc.create_contract('kv', KeyValueContract)
    bc.create_account('d')
    return bc


def compute_trace_hash(traces):
    trace_str = json.dumps([trace.to_dict() for trace in traces], sort_keys=True)
    return hashlib.sha256(trace_str.encode()).hexdigest()


def run_scenario(bc):
    hashes = []
    for account, name, data in SCENARIO:
        hashes.append(compute_trace_hash(bc.push_action(account, name, data, [f"{account}@active"])))
    return hashes


def test_replay_is_deterministic():
    first = run_scenario(build_chain())
    second = run_scenario(build_chain())
    assert first == second


def test_storage_is_identical_after_replay():
    bc1, bc2 = build_chain(), build_chain()
    run_scenario(bc1)
    run_scenario(bc2)
    assert bc1.get_storage() == bc2.get_storage()


class TestVmReset:

    @pytest.fixture
    def bc(self):
        bc = Blockchain()
        bc.create_contract('counter', CounterContract)
        bc.create_contract('script', ScriptContract)
        bc.create_account('alice')
        return bc

    def test_vm_recreated_per_transaction(self, bc):
        account = bc.get_account('counter')
        before = account.vm
        bc.push_action('counter', 'bump', {})
        assert account.vm is not before

    def test_in_memory_state_does_not_leak(self, bc):
        bc.push_action('counter', 'bump', {})
        assert bc.console == 'calls=1'
        bc.push_action('counter', 'bump', {})
        assert bc.console == 'calls=1'

    def test_plain_accounts_get_a_fresh_vm_too(self, bc):
        account = bc.get_account('alice')
        before = account.vm
        bc.reset_vm()
        assert account.vm is not before

    def test_console_is_cleared_per_transaction(self, bc):
        bc.push_action('script', 'run', {'print': 'hello'})
        assert bc.console == 'hello'
        bc.push_action('script', 'run', {})
        assert bc.console == ''

    def test_clear_console(self, bc):
        bc.push_action('script', 'run', {'print': 'hello'})
        bc.clear_console()
        assert bc.console == ''

    def test_reset_with_no_accounts(self):
        Blockchain().reset_vm()

    def test_set_contract_deploys_onto_existing_account(self, bc):
        account = bc.get_account('alice')
        account.set_contract(CounterContract)

        assert account.is_contract
        bc.push_action('alice', 'bump', {})
        assert bc.console == 'calls=1'

    def test_contract_sees_the_chain_clock(self, bc):
        bc.add_blocks(3)
        bc.push_action('counter', 'now', {})
        assert bc.console == '1500ms block 3'
