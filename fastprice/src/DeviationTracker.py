"""DeviationTracker: Per-token drift accounting between fast and reference prices.

Each ingestion compares the new fast price with the previously stored one and
the new reference price with the previously seen one. Both moves are
normalized by the previous value and added to per-token accumulators:

    cumulative_ref_delta  += |ref - prev_ref|   * 1e7 / prev_ref
    cumulative_fast_delta += |fast - prev_fast| * 1e7 / prev_fast

The accumulators cover one time bucket (``timestamp // price_data_interval``)
and restart from zero when an ingestion falls in a different bucket than the
previous one. A fast feed drifting much more than the reference within a
bucket is what later makes FastPriceVoting stop favoring it.

A zero previous price contributes zero instead of dividing by zero. A zero
reference price skips accounting entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .FeedState import PRICE_DATA, PRICE_DATA_INTERVAL, PRICES, PriceDataItem
from .fixed_point import (
    CUMULATIVE_DELTA_PRECISION,
    abs_diff,
    checked_add,
    checked_div,
    checked_mul,
)
from .Store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class PriceUpdate:
    """Result of one ingestion, used to build the price-update notification.

    :ivar token: Token address.
    :ivar price: New fast price.
    :ivar ref_price: Reference price used for accounting.
    :ivar record: Deviation record after the update.
    """

    token: str
    price: int
    ref_price: int
    record: PriceDataItem


def _normalized_delta(delta: int, previous: int) -> int:
    if previous == 0:
        return 0
    return checked_div(checked_mul(delta, CUMULATIVE_DELTA_PRECISION), previous)


class DeviationTracker:
    """Stores fast prices and maintains per-token cumulative deltas.

    :ivar store: Store holding prices and deviation records.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def ingest(
        self,
        token: str,
        fast_price: int,
        ref_price: int,
        block_timestamp: int,
    ) -> PriceUpdate:
        """Record a new fast price for a token.

        :param token: Normalized token address.
        :param fast_price: New fast price (30-decimal scale).
        :param ref_price: Current reference price, 0 if unknown.
        :param block_timestamp: Timestamp of the executing block.
        :returns: PriceUpdate describing what was stored.
        :raises ComputationError: On a zero price-data interval or overflow.
        """
        prev_fast_price = PRICES.load(self.store, token)
        prev = PRICE_DATA.load(self.store, token)

        cumulative_ref_delta = prev.cumulative_ref_delta
        cumulative_fast_delta = prev.cumulative_fast_delta

        if ref_price != 0:
            if prev.ref_price > 0:
                ref_delta = abs_diff(ref_price, prev.ref_price)
                fast_delta = abs_diff(fast_price, prev_fast_price)
            else:
                ref_delta = fast_delta = 0

            interval = PRICE_DATA_INTERVAL.load(self.store)
            if checked_div(prev.ref_time, interval) != checked_div(
                block_timestamp, interval
            ):
                cumulative_ref_delta = 0
                cumulative_fast_delta = 0

            cumulative_ref_delta = checked_add(
                cumulative_ref_delta, _normalized_delta(ref_delta, prev.ref_price)
            )
            cumulative_fast_delta = checked_add(
                cumulative_fast_delta, _normalized_delta(fast_delta, prev_fast_price)
            )

        record = PriceDataItem(
            ref_price=ref_price,
            ref_time=block_timestamp,
            cumulative_ref_delta=cumulative_ref_delta,
            cumulative_fast_delta=cumulative_fast_delta,
        )
        PRICE_DATA.save(self.store, token, record)
        PRICES.save(self.store, token, fast_price)

        logger.debug(
            f"{token}: price={fast_price} ref={ref_price} "
            f"cum_ref={cumulative_ref_delta} cum_fast={cumulative_fast_delta}"
        )
        return PriceUpdate(
            token=token, price=fast_price, ref_price=ref_price, record=record
        )

    def get_price_data(self, token: str) -> PriceDataItem:
        """Current deviation record for a token (zeros if never ingested)."""
        return PRICE_DATA.load(self.store, token)
