"""
ledgersim/engine/clock.py

Simulated wall clock coupled to a block counter. One block is produced every
500 ms of simulated time, so every time mutation moves the block number by
delta / 500. The block number is never rounded and may be fractional.
"""
from datetime import datetime, timedelta, timezone

from ledgersim.errors import NegativeTimeError

BLOCK_INTERVAL_MS = 500
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_milliseconds(value) -> int:
    """Convert an int/float (milliseconds), timedelta or datetime to whole milliseconds."""
    if isinstance(value, timedelta):
        return int(value / timedelta(milliseconds=1))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int((value - EPOCH) / timedelta(milliseconds=1))
    return int(value)


class Clock:
    def __init__(self, timestamp=0, block_num=0):
        self.timestamp_ms = to_milliseconds(timestamp)
        if self.timestamp_ms < 0:
            raise NegativeTimeError()
        self.block_num = block_num

    @property
    def timestamp(self) -> datetime:
        return EPOCH + timedelta(milliseconds=self.timestamp_ms)

    @property
    def timestamp_sec(self) -> int:
        return self.timestamp_ms // 1000

    def _shift(self, delta_ms):
        new_timestamp = self.timestamp_ms + delta_ms
        if new_timestamp < 0:
            raise NegativeTimeError()
        self.timestamp_ms = new_timestamp
        self.block_num += delta_ms / BLOCK_INTERVAL_MS

    def set_time(self, time):
        """Jump to an absolute time; the block number follows the jump."""
        self._shift(to_milliseconds(time) - self.timestamp_ms)

    def add_time(self, delta):
        self._shift(to_milliseconds(delta))

    def subtract_time(self, delta):
        delta_ms = to_milliseconds(delta)
        if self.timestamp_ms < delta_ms:
            raise NegativeTimeError()
        self._shift(-delta_ms)

    def add_blocks(self, number_of_blocks):
        self.add_time(number_of_blocks * BLOCK_INTERVAL_MS)

    def __repr__(self):
        return f"Clock(timestamp_ms={self.timestamp_ms}, block_num={self.block_num})"
