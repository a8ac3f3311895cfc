"""FreshnessGate: Admission control for incoming price updates.

An update carries its own timestamp. The gate admits it only if:

    1. The block height is not behind the last admitted update, and at least
       ``min_block_interval`` blocks passed since it (when the interval is
       non-zero)
    2. The timestamp lies within ``max_time_deviation`` seconds of block time
    3. The timestamp is not older than the last admitted one

A violation of 1 or 2 is an error. A violation of 3 is not: the update was
superseded by a newer observation, so the caller skips its price writes and
still succeeds. Admitted updates advance the ``LastUpdated`` watermark, which
therefore never moves backwards.

.. code-block:: python

    >>> gate = FreshnessGate(store)
    >>> gate.admit(BlockInfo(height=10, time=1000), 1000)
    <Admission.ADMIT: 'admit'>
    >>> gate.admit(BlockInfo(height=11, time=1001), 999)
    <Admission.STALE: 'stale'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .errors import (
    ComputationError,
    MinBlockIntervalError,
    TimestampBelowRangeError,
    TimestampExceedsRangeError,
)
from .FeedState import CONFIG, LAST_UPDATED, MAX_TIME_DEVIATION, LastUpdated
from .Store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockInfo:
    """The block an operation executes in.

    :ivar height: Block height.
    :ivar time: Block timestamp in seconds.
    """

    height: int
    time: int


class Admission(Enum):
    """Outcome of a successful gate check."""

    ADMIT = "admit"
    STALE = "stale"


class FreshnessGate:
    """Validates update timestamps and maintains the update watermark.

    :ivar store: Store holding the config and watermark.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def admit(self, block: BlockInfo, timestamp: int) -> Admission:
        """Check an update's timestamp and advance the watermark if admitted.

        :param block: Block the update executes in.
        :param timestamp: Timestamp claimed by the update.
        :returns: ADMIT if prices should be written, STALE if superseded.
        :raises MinBlockIntervalError: If too few blocks passed.
        :raises TimestampBelowRangeError: If the timestamp is too old.
        :raises TimestampExceedsRangeError: If the timestamp is too far ahead.
        :raises ComputationError: If the block height is behind the watermark.
        """
        min_block_interval = CONFIG.load(self.store).min_block_interval
        last_updated = LAST_UPDATED.load(self.store)

        blocks_passed = block.height - last_updated.last_updated_block
        if blocks_passed < 0:
            raise ComputationError(
                f"underflow: block {block.height} is behind last update "
                f"block {last_updated.last_updated_block}"
            )
        if min_block_interval > 0 and blocks_passed < min_block_interval:
            raise MinBlockIntervalError(blocks_passed, min_block_interval)

        max_time_deviation = MAX_TIME_DEVIATION.load(self.store)
        lower_bound = block.time - max_time_deviation
        upper_bound = block.time + max_time_deviation

        # A window reaching below zero is rejected outright.
        if lower_bound < 0 or timestamp < lower_bound:
            raise TimestampBelowRangeError(timestamp, max(lower_bound, 0))
        if timestamp > upper_bound:
            raise TimestampExceedsRangeError(timestamp, upper_bound)

        if timestamp < last_updated.last_updated_at:
            logger.warning(
                f"Stale update ignored: timestamp {timestamp} < "
                f"last updated {last_updated.last_updated_at}"
            )
            return Admission.STALE

        LAST_UPDATED.save(
            self.store,
            LastUpdated(last_updated_at=timestamp, last_updated_block=block.height),
        )
        logger.debug(f"Admitted update at {timestamp} (block {block.height})")
        return Admission.ADMIT
