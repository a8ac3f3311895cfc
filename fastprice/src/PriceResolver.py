"""PriceResolver: Chooses the price downstream consumers should use.

Resolution order (first match wins):
    1. No update for longer than ``max_price_update_delay``: reference price
       widened by the chain-error spread
    2. No update for longer than ``price_duration``: reference price widened
       by the inactive spread
    3. No fast price stored for the token: reference price as-is
    4. Fast price not favored, or disagreeing with the reference by more than
       ``max_deviation_basis_points``: the larger of the two when maximising,
       the smaller otherwise
    5. Otherwise: the fast price

All arithmetic is integer and truncating.

.. code-block:: python

    >>> calculate_price_with_spread(1000, 50, maximise=True)
    1005
    >>> calculate_price_with_spread(1000, 50, maximise=False)
    995
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .FastPriceVoting import FastPriceVoting
from .FeedState import CONFIG, LAST_UPDATED, PRICES, SPREAD_BASIS_POINTS
from .fixed_point import (
    BASIS_POINTS_DIVISOR,
    abs_diff,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
)
from .Store import KeyValueStore

logger = logging.getLogger(__name__)


def calculate_price_with_spread(price: int, spread_bps: int, maximise: bool) -> int:
    """Widen a price by a spread in the requested direction.

    :param price: Price to adjust.
    :param spread_bps: Spread in basis points.
    :param maximise: True to move the price up, False to move it down.
    :returns: ``price * (10000 +/- spread) // 10000``.
    :raises ComputationError: If the spread exceeds 10000 when minimising.
    """
    if maximise:
        factor = checked_add(BASIS_POINTS_DIVISOR, spread_bps)
    else:
        factor = checked_sub(BASIS_POINTS_DIVISOR, spread_bps)
    return checked_mul(price, factor) // BASIS_POINTS_DIVISOR


@dataclass
class Resolution:
    """Resolved price and the rule that produced it.

    :ivar price: Price to use.
    :ivar reason: One of "chain_error", "inactive", "no_fast_price", "spread",
        "fast_price".
    :ivar diff_basis_points: Fast/reference disagreement, when computed.
    :ivar favored: Fast-price trust decision, when computed.
    """

    price: int
    reason: str
    diff_basis_points: int | None = None
    favored: bool | None = None


class PriceResolver:
    """Price resolution engine.

    :ivar store: Store holding config, spreads, watermark and fast prices.
    :ivar voting: Source of the fast-price trust decision.
    """

    def __init__(self, store: KeyValueStore, voting: FastPriceVoting | None = None) -> None:
        self.store = store
        self.voting = voting or FastPriceVoting(store)

    def resolve(
        self,
        token: str,
        ref_price: int,
        now: int,
        maximise: bool,
    ) -> Resolution:
        """Resolve the price for a token, keeping the decision details.

        :param token: Normalized token address.
        :param ref_price: Reference price supplied by the caller.
        :param now: Current timestamp in seconds.
        :param maximise: Whether the caller wants the upper price.
        :returns: Resolution with price and reason.
        :raises ComputationError: On a zero reference price facing a stored
            fast price, or an impossible spread.
        """
        config = CONFIG.load(self.store)
        spread = SPREAD_BASIS_POINTS.load(self.store)
        last_updated_at = LAST_UPDATED.load(self.store).last_updated_at

        if now > last_updated_at + config.max_price_update_delay:
            return Resolution(
                price=calculate_price_with_spread(
                    ref_price, spread.spread_basis_points_if_chain_error, maximise
                ),
                reason="chain_error",
            )

        if now > last_updated_at + config.price_duration:
            return Resolution(
                price=calculate_price_with_spread(
                    ref_price, spread.spread_basis_points_if_inactive, maximise
                ),
                reason="inactive",
            )

        fast_price = PRICES.load(self.store, token)
        if fast_price == 0:
            return Resolution(price=ref_price, reason="no_fast_price")

        diff_basis_points = checked_div(
            checked_mul(abs_diff(ref_price, fast_price), BASIS_POINTS_DIVISOR),
            ref_price,
        )
        favored = self.voting.is_fast_price_favored(token)
        has_spread = (
            not favored or diff_basis_points > config.max_deviation_basis_points
        )

        if has_spread:
            price = max(ref_price, fast_price) if maximise else min(ref_price, fast_price)
            logger.debug(
                f"{token}: spread applied (favored={favored}, "
                f"diff={diff_basis_points}bps), price={price}"
            )
            return Resolution(
                price=price,
                reason="spread",
                diff_basis_points=diff_basis_points,
                favored=favored,
            )

        return Resolution(
            price=fast_price,
            reason="fast_price",
            diff_basis_points=diff_basis_points,
            favored=favored,
        )

    def get_price(self, token: str, ref_price: int, now: int, maximise: bool) -> int:
        """Resolve and return only the price. See resolve()."""
        return self.resolve(token, ref_price, now, maximise).price
