#!/usr/bin/env python3
"""
ledgersim Demo: Token Transfers

Builds a chain from examples/token_chain.yaml, creates and issues a token,
then runs a few transfers and prints the dispatch trace and the storage
deltas of each transaction.

Run:
    python examples/run_token_demo.py
"""

import sys
from pathlib import Path

# Add project root to path (in case running directly)
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ledgersim.analysis.trace_analyzer import TraceAnalyzer
from ledgersim.engine.fixture_parser import build_blockchain, load_fixture_from_file
from ledgersim.errors import ContractAssertion


def run_step(bc, title, action, data, actor):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)

    traces = bc.push_action('eosio.token', action, data, [f"{actor}@active"])
    print(TraceAnalyzer(traces).format_trace())
    print("\nStorage deltas:")
    bc.print_storage_deltas()


def main():
    fixture_path = Path(__file__).parent / 'token_chain.yaml'
    bc = build_blockchain(load_fixture_from_file(fixture_path))

    run_step(bc, "CREATE 1,000,000 XPR (issuer alice)", 'create',
             {'issuer': 'alice', 'maximum_supply': '1000000.0000 XPR'}, 'eosio.token')
    run_step(bc, "ISSUE 1,000 XPR to alice", 'issue',
             {'to': 'alice', 'quantity': '1000.0000 XPR', 'memo': 'genesis'}, 'alice')
    run_step(bc, "TRANSFER 250 XPR alice -> bob", 'transfer',
             {'from': 'alice', 'to': 'bob', 'quantity': '250.0000 XPR', 'memo': 'rent'}, 'alice')

    bc.add_blocks(120)
    run_step(bc, f"TRANSFER 50 XPR bob -> carol (block {bc.block_num:g})", 'transfer',
             {'from': 'bob', 'to': 'carol', 'quantity': '50.0000 XPR', 'memo': 'lunch'}, 'bob')

    print("\n" + "=" * 80)
    print("OVERDRAFT: carol tries to send 51 XPR")
    print("=" * 80)
    try:
        bc.push_action('eosio.token', 'transfer',
                       {'from': 'carol', 'to': 'alice', 'quantity': '51.0000 XPR', 'memo': ''},
                       ['carol@active'])
    except ContractAssertion as e:
        print(f"[REJECTED] {e}")
        print(f"Dispatched before failure: {len(bc.execution_traces)}")


if __name__ == '__main__':
    main()
