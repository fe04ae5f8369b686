"""
ledgersim/contracts/token.py

Python rendition of the standard token contract.

Tables:
    stat      scope = symbol code, one row holding supply / max_supply / issuer
    accounts  scope = owner, one row per symbol holding the balance

Both tables are keyed by the raw symbol code, as on chain.
"""
import re
from dataclasses import dataclass

from ledgersim.engine.vm import Contract, action
from ledgersim.errors import ContractAssertion

ASSET_PATTERN = re.compile(r'^\s*(-?\d+)(?:\.(\d+))?\s+([A-Z]{1,7})\s*$')
SYMBOL_PATTERN = re.compile(r'^\s*(\d+)\s*,\s*([A-Z]{1,7})\s*$')
MAX_AMOUNT = (1 << 62) - 1


def symbol_code_value(code: str) -> int:
    value = 0
    for i, char in enumerate(code):
        value |= ord(char) << (8 * i)
    return value


@dataclass(frozen=True)
class Asset:
    amount: int
    precision: int
    symbol: str

    @classmethod
    def parse(cls, text) -> "Asset":
        match = ASSET_PATTERN.match(str(text))
        if match is None:
            raise ValueError(f"Invalid asset: {text!r}")
        whole, fraction, symbol = match.groups()
        fraction = fraction or ''
        sign = -1 if whole.startswith('-') else 1
        amount = abs(int(whole)) * 10 ** len(fraction) + (int(fraction) if fraction else 0)
        return cls(sign * amount, len(fraction), symbol)

    @property
    def code_value(self) -> int:
        return symbol_code_value(self.symbol)

    def is_valid(self) -> bool:
        return -MAX_AMOUNT <= self.amount <= MAX_AMOUNT

    def __add__(self, other):
        return Asset(self.amount + other.amount, self.precision, self.symbol)

    def __sub__(self, other):
        return Asset(self.amount - other.amount, self.precision, self.symbol)

    def __str__(self):
        sign = '-' if self.amount < 0 else ''
        amount = abs(self.amount)
        if self.precision == 0:
            return f"{sign}{amount} {self.symbol}"
        whole, fraction = divmod(amount, 10 ** self.precision)
        return f"{sign}{whole}.{fraction:0{self.precision}d} {self.symbol}"


def parse_symbol(text):
    """Parse ``"4,XPR"`` into ``(precision, code)``."""
    match = SYMBOL_PATTERN.match(str(text))
    if match is None:
        raise ValueError(f"Invalid symbol: {text!r}")
    return int(match.group(1)), match.group(2)


class TokenContract(Contract):

    def _stat(self, code):
        return self.table('stat', scope=symbol_code_value(code))

    def _accounts(self, owner):
        return self.table('accounts', scope=owner)

    def _parse_quantity(self, text, verb) -> Asset:
        try:
            quantity = Asset.parse(text)
        except ValueError:
            raise ContractAssertion(f"assertion failure with message: invalid quantity {text!r}")
        self.check(quantity.is_valid(), "invalid quantity")
        self.check(quantity.amount > 0, f"must {verb} positive quantity")
        return quantity

    def _load_stat(self, code):
        stat = self._stat(code).get(symbol_code_value(code))
        self.check(stat is not None, "token with symbol does not exist")
        return stat

    def _sub_balance(self, owner, value: Asset):
        table = self._accounts(owner)
        row = table.get(value.code_value)
        self.check(row is not None, "no balance object found")
        balance = Asset.parse(row['balance'])
        self.check(balance.amount >= value.amount, "overdrawn balance")
        table.modify(value.code_value, {'balance': str(balance - value)}, payer=owner)

    def _add_balance(self, owner, value: Asset, ram_payer):
        table = self._accounts(owner)
        row = table.get(value.code_value)
        if row is None:
            table.store(value.code_value, {'balance': str(value)}, payer=ram_payer)
        else:
            balance = Asset.parse(row['balance'])
            table.modify(value.code_value, {'balance': str(balance + value)})

    @action
    def create(self, data):
        self.require_auth(self.receiver)
        maximum_supply = Asset.parse(data['maximum_supply'])
        self.check(maximum_supply.is_valid(), "invalid supply")
        self.check(maximum_supply.amount > 0, "max-supply must be positive")

        stat = self._stat(maximum_supply.symbol)
        self.check(not stat.find(maximum_supply.code_value), "token with symbol already exists")
        stat.store(maximum_supply.code_value, {
            'supply': str(Asset(0, maximum_supply.precision, maximum_supply.symbol)),
            'max_supply': str(maximum_supply),
            'issuer': data['issuer'],
        })

    @action
    def issue(self, data):
        quantity = self._parse_quantity(data['quantity'], 'issue')
        self.check(len(data.get('memo', '')) <= 256, "memo has more than 256 bytes")
        stat = self._load_stat(quantity.symbol)
        self.check(data['to'] == stat['issuer'], "tokens can only be issued to issuer account")
        self.require_auth(stat['issuer'])

        supply = Asset.parse(stat['supply'])
        max_supply = Asset.parse(stat['max_supply'])
        self.check(quantity.precision == supply.precision, "symbol precision mismatch")
        self.check(quantity.amount <= max_supply.amount - supply.amount, "quantity exceeds available supply")

        stat['supply'] = str(supply + quantity)
        self._stat(quantity.symbol).modify(quantity.code_value, stat)
        self._add_balance(stat['issuer'], quantity, stat['issuer'])

    @action
    def transfer(self, data):
        sender, recipient = data['from'], data['to']
        self.check(sender != recipient, "cannot transfer to self")
        self.require_auth(sender)
        self.check(self.is_account(recipient), "to account does not exist")

        quantity = self._parse_quantity(data['quantity'], 'transfer')
        stat = self._load_stat(quantity.symbol)
        self.check(quantity.precision == Asset.parse(stat['supply']).precision, "symbol precision mismatch")
        self.check(len(data.get('memo', '')) <= 256, "memo has more than 256 bytes")

        self.require_recipient(sender)
        self.require_recipient(recipient)

        payer = recipient if self.has_auth(recipient) else sender
        self._sub_balance(sender, quantity)
        self._add_balance(recipient, quantity, payer)

    @action
    def open(self, data):
        owner, ram_payer = data['owner'], data['ram_payer']
        self.require_auth(ram_payer)
        self.check(self.is_account(owner), "owner account does not exist")

        precision, code = parse_symbol(data['symbol'])
        stat = self._load_stat(code)
        self.check(Asset.parse(stat['supply']).precision == precision, "symbol precision mismatch")

        table = self._accounts(owner)
        if not table.find(symbol_code_value(code)):
            table.store(symbol_code_value(code), {'balance': str(Asset(0, precision, code))}, payer=ram_payer)

    @action
    def close(self, data):
        owner = data['owner']
        self.require_auth(owner)
        _, code = parse_symbol(data['symbol'])

        table = self._accounts(owner)
        row = table.get(symbol_code_value(code))
        self.check(row is not None, "Balance row already deleted or never existed. Action won't have any effect.")
        self.check(Asset.parse(row['balance']).amount == 0, "Cannot close because the balance is not zero.")
        table.erase(symbol_code_value(code))
