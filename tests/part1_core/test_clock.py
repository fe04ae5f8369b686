# tests/part1_core/test_clock.py
"""
Unit tests for the simulated clock (ledgersim/engine/clock.py) and the
time helpers Blockchain exposes on top of it.
"""

import unittest
from datetime import datetime, timedelta, timezone

import pytest

from ledgersim.engine.blockchain import Blockchain
from ledgersim.engine.clock import BLOCK_INTERVAL_MS, Clock, to_milliseconds
from ledgersim.errors import NegativeTimeError


class TestClock(unittest.TestCase):

    def test_defaults(self):
        clock = Clock()
        self.assertEqual(clock.timestamp_ms, 0)
        self.assertEqual(clock.block_num, 0)
        self.assertEqual(clock.timestamp, datetime(1970, 1, 1, tzinfo=timezone.utc))

    def test_add_time_moves_block_number(self):
        clock = Clock()
        clock.add_time(1500)
        self.assertEqual(clock.timestamp_ms, 1500)
        self.assertEqual(clock.block_num, 3)

    def test_add_time_accepts_timedelta(self):
        clock = Clock()
        clock.add_time(timedelta(seconds=2))
        self.assertEqual(clock.timestamp_ms, 2000)
        self.assertEqual(clock.block_num, 4)
        self.assertEqual(clock.timestamp_sec, 2)

    def test_add_blocks(self):
        clock = Clock(timestamp=10_000, block_num=7)
        clock.add_blocks(4)
        self.assertAlmostEqual(clock.block_num, 11)
        self.assertEqual(clock.timestamp_ms, 10_000 + 4 * BLOCK_INTERVAL_MS)

    def test_subtract_time(self):
        clock = Clock(timestamp=5000, block_num=10)
        clock.subtract_time(1000)
        self.assertEqual(clock.timestamp_ms, 4000)
        self.assertEqual(clock.block_num, 8)

    def test_subtract_more_than_current_time_fails(self):
        clock = Clock(timestamp=1000, block_num=2)
        with self.assertRaises(NegativeTimeError):
            clock.subtract_time(1001)
        self.assertEqual(clock.timestamp_ms, 1000)
        self.assertEqual(clock.block_num, 2)

    def test_set_time_moves_block_number_with_the_jump(self):
        clock = Clock(timestamp=1000, block_num=2)
        clock.set_time(3000)
        self.assertEqual(clock.timestamp_ms, 3000)
        self.assertEqual(clock.block_num, 6)
        clock.set_time(2000)
        self.assertEqual(clock.block_num, 4)

    def test_set_time_accepts_datetime(self):
        clock = Clock()
        clock.set_time(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc))
        self.assertEqual(clock.timestamp_ms, 1000)

    def test_negative_targets_fail(self):
        clock = Clock(timestamp=1000)
        with self.assertRaises(NegativeTimeError):
            clock.set_time(-1)
        with self.assertRaises(NegativeTimeError):
            clock.add_time(-2000)
        self.assertEqual(clock.timestamp_ms, 1000)

    def test_negative_initial_time_fails(self):
        with self.assertRaises(NegativeTimeError):
            Clock(timestamp=-5)

    def test_fractional_blocks(self):
        clock = Clock()
        clock.add_time(250)
        self.assertEqual(clock.block_num, 0.5)


class TestBlockchainTime:

    def test_blockchain_delegates_to_clock(self):
        bc = Blockchain(timestamp=1000, block_num=1)
        bc.add_blocks(2)
        assert bc.timestamp == 2000
        assert bc.block_num == 3

        bc.subtract_time(500)
        assert bc.timestamp == 1500
        assert bc.block_num == 2

    def test_blockchain_subtract_underflow(self):
        bc = Blockchain()
        with pytest.raises(NegativeTimeError, match="must not go negative"):
            bc.subtract_time(1)
        assert bc.timestamp == 0

    def test_timestamp_from_timedelta(self):
        bc = Blockchain(timestamp=to_milliseconds(timedelta(minutes=1)))
        assert bc.clock.timestamp_sec == 60
