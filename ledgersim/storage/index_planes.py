"""
ledgersim/storage/index_planes.py

The four secondary index planes a table may carry, each with its own key width
and its own decoding for the storage snapshot.
"""
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class SecondaryIndexValue:
    """Decoded secondary entry attached to a snapshot row."""
    type: str
    value: Any
    raw_value: Optional[bytes] = None

    def to_dict(self) -> dict:
        data = {'type': self.type, 'value': self.value}
        if self.raw_value is not None:
            data['raw_value'] = self.raw_value
        return data


def _decode_u64(key):
    return SecondaryIndexValue(type='idxu64', value=key)


def _decode_u128(key):
    return SecondaryIndexValue(type='idxU128', value=key, raw_value=key.to_bytes(16, 'little'))


def _decode_u256(key):
    # Keys are held as two 128-bit words, high word first, which is the digest read big-endian.
    return SecondaryIndexValue(type='idxU256', value=key.to_bytes(32, 'big').hex())


def _decode_f64(key):
    little_endian = struct.pack('<d', key)
    normalized = struct.unpack('>d', little_endian[::-1])[0]
    return SecondaryIndexValue(type='idxf64', value=repr(normalized))


class IndexPlane(Enum):
    """Secondary planes in snapshot order: 64-bit, 128-bit, 256-bit, double."""

    IDX64 = ('idx64', 1, _decode_u64)
    IDX128 = ('idx128', 2, _decode_u128)
    IDX256 = ('idx256', 3, _decode_u256)
    IDX_DOUBLE = ('idxDouble', 4, _decode_f64)

    def __init__(self, label, number, decoder):
        self.label = label
        self.number = number
        self._decoder = decoder

    @property
    def sql_table(self) -> str:
        return f"secondary_{self.name.lower()}"

    def decode(self, key) -> SecondaryIndexValue:
        return self._decoder(key)

    def index_table_handle(self, table_handle: int) -> int:
        """Handle of the derived table a ledger registers for this plane."""
        return (table_handle & 0xFFFFFFFFFFFFFFF0) | (self.number & 0x0F)

    @classmethod
    def from_label(cls, label) -> "IndexPlane":
        if isinstance(label, IndexPlane):
            return label
        for plane in cls:
            if plane.label == label or plane.name == label:
                return plane
        raise ValueError(f"Unknown secondary index plane '{label}'")
