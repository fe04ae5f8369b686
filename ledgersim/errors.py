# ledgersim/errors.py
#
# Exceptions raised by the simulator. Everything derives from LedgerSimError so
# test suites can catch the whole family at once.


class LedgerSimError(Exception):
    """Base class for all simulator errors."""
    pass


class MissingContractError(LedgerSimError):
    """Raised when an action targets an account that is absent or has no contract."""

    def __init__(self, account):
        self.account = str(account)
        super().__init__(f"Contract {self.account} missing for inline action")


class NegativeTimeError(LedgerSimError):
    """Raised when a clock mutation would move the timestamp below zero."""

    def __init__(self, message="Blockchain time must not go negative"):
        super().__init__(message)


class DeltasDisabledError(LedgerSimError):
    """Raised when storage deltas are read while delta tracking is off."""

    def __init__(self, message="Storage deltas are not enabled (use enable_storage_deltas)"):
        super().__init__(message)


class ContractAssertion(LedgerSimError):
    """Raised from contract code: failed checks, missing authority, unknown actions."""
    pass


class TableStoreError(LedgerSimError):
    """Raised when a write would break the physical store's invariants."""
    pass


class FixtureValidationError(LedgerSimError):
    """Custom exception for errors during chain fixture validation."""
    pass
