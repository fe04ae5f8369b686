# tests/part2_dispatch/test_dispatch_errors.py
"""
Failure handling during dispatch.

Tests cover:
- Missing / non-contract receivers for top-level and inline actions
- Contract assertions propagate unchanged out of apply_transaction
- No rollback: writes made before the failing action persist
- Partial execution traces stay readable after a failure
"""

import unittest

import pytest

from ledgersim.contracts.token import TokenContract
from ledgersim.engine.blockchain import Blockchain
from ledgersim.engine.context import Action, Transaction
from ledgersim.errors import ContractAssertion, LedgerSimError, MissingContractError
from tests.fixtures.contracts import KeyValueContract, ScriptContract


class TestMissingContract(unittest.TestCase):

    def setUp(self):
        self.bc = Blockchain()
        self.bc.create_contract('a', ScriptContract)
        self.bc.create_account('plain')

    def test_unknown_account(self):
        with self.assertRaises(MissingContractError) as ctx:
            self.bc.push_action('nobody', 'run', {})
        self.assertEqual(ctx.exception.account, 'nobody')
        self.assertEqual(str(ctx.exception), "Contract nobody missing for inline action")
        self.assertEqual(self.bc.execution_traces, [])

    def test_account_without_contract(self):
        with self.assertRaises(MissingContractError):
            self.bc.push_action('plain', 'run', {})
        self.assertEqual(self.bc.execution_traces, [])

    def test_invalid_name_is_missing(self):
        with self.assertRaises(MissingContractError):
            self.bc.push_action('Not-A-Name!', 'run', {})

    def test_inline_to_missing_contract(self):
        data = {'inline': [{'account': 'plain', 'data': {}}]}
        with self.assertRaises(MissingContractError):
            self.bc.push_action('a', 'run', data, ['a@active'])
        self.assertEqual([t.receiver for t in self.bc.execution_traces], ['a'])

    def test_second_top_level_action_missing(self):
        transaction = Transaction(actions=[
            Action.from_json('a', 'run', {'notify': ['plain']}, ['a@active']),
            Action.from_json('ghost', 'run', {}),
        ])
        with self.assertRaises(MissingContractError):
            self.bc.apply_transaction(transaction)
        self.assertEqual([t.receiver for t in self.bc.execution_traces], ['a', 'plain'])

    def test_notifying_unknown_account(self):
        with self.assertRaises(ContractAssertion):
            self.bc.push_action('a', 'run', {'notify': ['ghost']}, ['a@active'])


class TestContractFailures:

    @pytest.fixture
    def bc(self):
        bc = Blockchain()
        bc.create_contract('kv', KeyValueContract)
        bc.create_contract('other', KeyValueContract)
        bc.create_contract('script', ScriptContract)
        return bc

    def test_assertion_propagates(self, bc):
        with pytest.raises(ContractAssertion, match="assertion failure with message: nope"):
            bc.push_action('kv', 'fail', {'message': 'nope'})
        assert len(bc.execution_traces) == 1

    def test_unknown_action(self, bc):
        with pytest.raises(ContractAssertion, match="Action missing not found"):
            bc.push_action('kv', 'missing', {})

    def test_missing_authority(self, bc):
        data = {'from': 'alice', 'to': 'bob', 'quantity': '1.0000 XPR', 'memo': ''}
        bc.create_contract('eosio.token', TokenContract)
        bc.create_accounts('alice', 'bob')
        with pytest.raises(ContractAssertion, match="missing required authority alice"):
            bc.push_action('eosio.token', 'transfer', data, ['bob@active'])

    def test_writing_foreign_table_is_rejected(self, bc):
        with pytest.raises(ContractAssertion, match="db access violation"):
            bc.push_action('kv', 'poke', {'code': 'other', 'key': 1, 'value': 1})

    def test_failed_erase_or_update_leaves_no_empty_table(self, bc):
        bc.push_action('kv', 'set', {'key': 1, 'value': 'kept'})
        before = bc.get_storage()

        with pytest.raises(ContractAssertion, match="cannot erase missing row 5 in entries"):
            bc.push_action('kv', 'erase', {'key': 5, 'scope': 'bob'})
        with pytest.raises(ContractAssertion, match="cannot modify missing row 5 in entries"):
            bc.push_action('kv', 'update', {'key': 5, 'value': 0, 'scope': 'carol'})

        assert bc.get_storage() == before
        assert list(bc.get_storage()['kv']['entries'].keys()) == ['kv']

    def test_no_rollback_on_failure(self, bc):
        transaction = Transaction(actions=[
            Action.from_json('kv', 'set', {'key': 1, 'value': 'kept'}),
            Action.from_json('kv', 'fail', {}),
        ])
        with pytest.raises(ContractAssertion):
            bc.apply_transaction(transaction)

        assert bc.get_account('kv').table_row_accessor('entries', 'kv')(1) == 'kept'
        assert [t.action for t in bc.execution_traces] == ['set', 'fail']

    def test_failure_inside_inline_action_keeps_partial_trace(self, bc):
        data = {'inline': [{'account': 'kv', 'action': 'set', 'data': {'key': 7, 'value': 1}},
                           {'account': 'kv', 'action': 'fail', 'data': {}}]}
        with pytest.raises(ContractAssertion):
            bc.push_action('script', 'run', data)

        assert [(t.receiver, t.action) for t in bc.execution_traces] == [
            ('script', 'run'), ('kv', 'set'), ('kv', 'fail')]
        assert bc.get_storage()['kv']['entries']['kv'][0].value == 1

    def test_errors_share_a_base_class(self, bc):
        with pytest.raises(LedgerSimError):
            bc.push_action('ghost', 'run', {})

    def test_failed_transaction_does_not_compute_deltas(self, bc):
        bc.enable_storage_deltas()
        with pytest.raises(ContractAssertion):
            bc.push_action('kv', 'fail', {})
        assert bc.storage_deltas is None
