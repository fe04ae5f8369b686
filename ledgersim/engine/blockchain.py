# ledgersim/engine/blockchain.py
import logging
import concurrent.futures

from ledgersim.engine.account import Account, AccountRegistry
from ledgersim.engine.clock import Clock
from ledgersim.engine.context import Transaction
from ledgersim.engine.dispatcher import DispatchEngine
from ledgersim.engine.loader import load_abi, read_wasm
from ledgersim.errors import DeltasDisabledError
from ledgersim.storage.deltas import dump_deltas
from ledgersim.storage.reconciler import DiffReconciler
from ledgersim.storage.snapshot import StorageProjector
from ledgersim.storage.table_store import TableStore

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class Blockchain:
    """Root of the simulator: accounts, clock, physical store and the last transaction's results."""

    def __init__(self, accounts=None, timestamp=0, block_num=0, store=None, config=None):
        self.logger = logging.getLogger(f"{__name__}.Blockchain")
        self.config = config or {}

        self.accounts = AccountRegistry(accounts)
        for account in self.accounts:
            account.bc = self
        self.clock = Clock(timestamp, block_num)
        self.store = store or TableStore()
        self.console = ''

        self.dispatcher = DispatchEngine(self.accounts)
        self.reconciler = DiffReconciler()
        self.reset_workers = self.config.get('reset_workers', 8)

        # Storage
        self.is_storage_deltas_enabled = bool(self.config.get('storage_deltas', False))
        self.pre_storage = None
        self.post_storage = None
        self._storage_deltas = None

    # --- Transactions ---

    def apply_transaction(self, transaction: Transaction, decoded_data=None):
        """Execute ``transaction`` and return its execution traces.

        Errors propagate to the caller. Rows written before the failing action
        stay written; traces recorded so far stay on ``execution_traces``.
        """
        self.reset_transaction()

        if self.is_storage_deltas_enabled:
            self.pre_storage = self.get_storage()

        self.logger.debug(f"Applying transaction with {len(transaction.actions)} action(s)")
        try:
            traces = self.dispatcher.execute(transaction, decoded_data)
        except Exception as e:
            self.logger.error(f"Transaction failed after {len(self.execution_traces)} dispatch(es): {e}")
            raise

        if self.is_storage_deltas_enabled:
            self.post_storage = self.get_storage()
            self._set_storage_deltas()

        self.logger.debug(f"Transaction finished with {len(traces)} dispatch(es)")
        return traces

    def push_action(self, account, action, data=None, authorization=None):
        """Apply a one-action transaction whose data is JSON-encoded."""
        return self.apply_transaction(Transaction.single(account, action, data, authorization))

    @property
    def action_traces(self):
        return self.dispatcher.action_traces

    @property
    def execution_traces(self):
        return self.dispatcher.execution_traces

    # --- Accounts ---

    def get_account(self, name):
        return self.accounts.resolve(name)

    def create_account(self, args) -> Account:
        if isinstance(args, str):
            args = {'name': args}
        account = Account(bc=self, **args)
        self.accounts.add(account)
        self.logger.info(f"Created account {account.name}{' (contract)' if account.is_contract else ''}")
        return account

    def create_accounts(self, *names):
        return [self.create_account(name) for name in names]

    def create_contract(self, name, contract, folder=None, client=None) -> Account:
        """Create an account running ``contract``.

        When ``folder`` is given, ``<folder>.wasm`` and ``<folder>.abi`` are loaded
        (locally or over http) and kept on the account.
        """
        wasm = abi = None
        if folder:
            wasm = read_wasm(f"{folder}.wasm", client)
            abi = load_abi(f"{folder}.abi", client)
        return self.create_account({'name': name, 'contract': contract, 'wasm': wasm, 'abi': abi})

    # --- Time ---

    @property
    def timestamp(self) -> int:
        return self.clock.timestamp_ms

    @property
    def block_num(self):
        return self.clock.block_num

    def set_time(self, time):
        self.clock.set_time(time)
        self._log_time()

    def add_time(self, delta):
        self.clock.add_time(delta)
        self._log_time()

    def subtract_time(self, delta):
        self.clock.subtract_time(delta)
        self._log_time()

    def add_blocks(self, number_of_blocks):
        self.clock.add_blocks(number_of_blocks)
        self._log_time()

    def _log_time(self):
        self.logger.debug(f"Time is now {self.clock.timestamp_ms} ms at block {self.clock.block_num}")

    # --- Reset ---

    def reset_transaction(self):
        self.reset_vm()
        self.clear_console()

    def reset_vm(self):
        self.pre_storage = None
        self.post_storage = None
        self._storage_deltas = None
        self.reconciler.changesets = []
        self.dispatcher.reset()

        accounts = self.accounts.values()
        if not accounts:
            return
        # VM states are disjoint, so every account is rebuilt independently; all must finish before dispatch.
        with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.reset_workers, len(accounts))) as executor:
            futures = [executor.submit(account.recreate_vm) for account in accounts]
            for future in concurrent.futures.as_completed(futures):
                future.result()

    def clear_console(self):
        self.console = ''

    def reset_tables(self, store=None):
        self.store = store or TableStore()

    # --- Storage ---

    @property
    def storage_deltas(self):
        if not self.is_storage_deltas_enabled:
            raise DeltasDisabledError()
        return self._storage_deltas

    @property
    def storage_delta_changesets(self):
        return self.reconciler.changesets

    def enable_storage_deltas(self):
        self.is_storage_deltas_enabled = True

    def disable_storage_deltas(self):
        self.is_storage_deltas_enabled = False

    def print_storage_deltas(self):
        print(dump_deltas(self.storage_deltas))

    def get_storage(self):
        return StorageProjector(self.store, self.accounts).snapshot()

    def _set_storage_deltas(self):
        self._storage_deltas = self.reconciler.reconcile(self.pre_storage, self.post_storage)
        self.logger.debug(f"Computed storage deltas from {len(self.storage_delta_changesets)} change(s)")
