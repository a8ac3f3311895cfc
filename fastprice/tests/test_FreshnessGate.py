"""Unit tests for FreshnessGate."""

import pytest

from fastprice.src.errors import (
    ComputationError,
    MinBlockIntervalError,
    TimestampBelowRangeError,
    TimestampExceedsRangeError,
)
from fastprice.src.FeedState import CONFIG, LAST_UPDATED, MAX_TIME_DEVIATION, Config, LastUpdated
from fastprice.src.FreshnessGate import Admission, BlockInfo, FreshnessGate
from fastprice.src.Store import MemoryStore


def make_gate(max_time_deviation: int = 60, min_block_interval: int = 0) -> FreshnessGate:
    store = MemoryStore()
    CONFIG.save(store, Config(price_duration=300, min_block_interval=min_block_interval))
    MAX_TIME_DEVIATION.save(store, max_time_deviation)
    return FreshnessGate(store)


class TestFreshnessGateWindow:
    """Test the timestamp tolerance window."""

    def test_admit_advances_watermark(self) -> None:
        """An in-window timestamp should be admitted and recorded."""
        gate = make_gate()
        assert gate.admit(BlockInfo(height=10, time=1000), 990) is Admission.ADMIT
        assert LAST_UPDATED.load(gate.store) == LastUpdated(990, 10)

    def test_window_edges_inclusive(self) -> None:
        """Both window edges should be admitted."""
        gate = make_gate()
        assert gate.admit(BlockInfo(height=1, time=1000), 940) is Admission.ADMIT
        assert gate.admit(BlockInfo(height=2, time=1000), 1060) is Admission.ADMIT

    def test_below_range(self) -> None:
        """A timestamp too far behind block time should be rejected."""
        gate = make_gate()
        with pytest.raises(TimestampBelowRangeError, match="below allowed range"):
            gate.admit(BlockInfo(height=1, time=1000), 939)

    def test_exceeds_range(self) -> None:
        """A timestamp too far ahead of block time should be rejected."""
        gate = make_gate()
        with pytest.raises(TimestampExceedsRangeError, match="exceeds allowed range"):
            gate.admit(BlockInfo(height=1, time=1000), 1061)

    def test_window_below_zero_rejected(self) -> None:
        """A deviation larger than block time should reject every timestamp."""
        gate = make_gate(max_time_deviation=2000)
        with pytest.raises(TimestampBelowRangeError):
            gate.admit(BlockInfo(height=1, time=1000), 1000)

    def test_rejection_leaves_watermark(self) -> None:
        """Rejected updates should not move the watermark."""
        gate = make_gate()
        gate.admit(BlockInfo(height=1, time=1000), 1000)
        with pytest.raises(TimestampExceedsRangeError):
            gate.admit(BlockInfo(height=2, time=1000), 2000)
        assert LAST_UPDATED.load(gate.store) == LastUpdated(1000, 1)


class TestFreshnessGateStale:
    """Test handling of superseded updates."""

    def test_older_timestamp_is_stale(self) -> None:
        """An older timestamp should be skipped without error."""
        gate = make_gate()
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        assert gate.admit(BlockInfo(height=11, time=1001), 999) is Admission.STALE
        assert LAST_UPDATED.load(gate.store) == LastUpdated(1000, 10)

    def test_equal_timestamp_admitted(self) -> None:
        """Re-submitting the watermark timestamp is not stale."""
        gate = make_gate()
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        assert gate.admit(BlockInfo(height=11, time=1000), 1000) is Admission.ADMIT
        assert LAST_UPDATED.load(gate.store).last_updated_block == 11

    def test_watermark_monotonic(self) -> None:
        """The watermark should never move backwards."""
        gate = make_gate()
        timestamps = [1000, 1010, 995, 1020, 1005, 1030]
        seen = []
        for height, timestamp in enumerate(timestamps, start=1):
            gate.admit(BlockInfo(height=height, time=1000 + height * 5), timestamp)
            seen.append(LAST_UPDATED.load(gate.store))

        ats = [s.last_updated_at for s in seen]
        blocks = [s.last_updated_block for s in seen]
        assert ats == sorted(ats)
        assert blocks == sorted(blocks)
        assert ats[-1] == 1030

    def test_lower_height_rejected_without_interval(self) -> None:
        """A lower block height should not rewind the watermark, even with no interval."""
        gate = make_gate(max_time_deviation=100, min_block_interval=0)
        gate.admit(BlockInfo(height=50, time=1000), 1000)

        with pytest.raises(ComputationError, match="underflow"):
            gate.admit(BlockInfo(height=10, time=1001), 1001)

        assert LAST_UPDATED.load(gate.store) == LastUpdated(1000, 50)


class TestFreshnessGateBlockInterval:
    """Test the minimum block interval."""

    def test_too_few_blocks(self) -> None:
        """Updates closer than min_block_interval blocks should be rejected."""
        gate = make_gate(min_block_interval=3)
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        with pytest.raises(MinBlockIntervalError, match="minBlockInterval"):
            gate.admit(BlockInfo(height=12, time=1001), 1001)

    def test_enough_blocks(self) -> None:
        """Updates at least min_block_interval blocks apart should pass."""
        gate = make_gate(min_block_interval=3)
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        assert gate.admit(BlockInfo(height=13, time=1001), 1001) is Admission.ADMIT

    def test_interval_disabled(self) -> None:
        """A zero interval should allow updates in the same block."""
        gate = make_gate(min_block_interval=0)
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        assert gate.admit(BlockInfo(height=10, time=1000), 1000) is Admission.ADMIT

    def test_height_behind_watermark(self) -> None:
        """A block height behind the watermark is an arithmetic error."""
        gate = make_gate(min_block_interval=1)
        gate.admit(BlockInfo(height=10, time=1000), 1000)
        with pytest.raises(ComputationError, match="underflow"):
            gate.admit(BlockInfo(height=5, time=1001), 1001)
