"""FastPriceVoting: Signer kill-switch for the fast price path.

Each signer is either Enabled (no standing vote) or Disabled (voted to stop
trusting the fast price). The aggregate ``vote_count`` always equals the
number of Disabled signers; both are written by one helper so they cannot
drift apart.

.. code-block:: python

    >>> voting = FastPriceVoting(store)
    >>> voting.vote_disable("0xA...")
    1
    >>> voting.vote_disable("0xA...")
    Traceback (most recent call last):
    ...
    AlreadyVotedError: FastPriceFeed: already voted (0xA...)
"""

from __future__ import annotations

import logging

from .errors import AlreadyEnabledError, AlreadyVotedError, ComputationError
from .FeedState import (
    DISABLE_FAST_PRICE_VOTE_COUNT,
    DISABLE_FAST_PRICE_VOTES,
    MAX_CUMULATIVE_DELTA_DIFFS,
    MIN_AUTHORIZATIONS,
    PRICE_DATA,
    SPREAD_ENABLED,
)
from .fixed_point import checked_add
from .Store import KeyValueStore

logger = logging.getLogger(__name__)


class FastPriceVoting:
    """Disable-vote state machine and fast-price trust decision.

    :ivar store: Store holding votes, quorum and deviation records.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def has_voted(self, signer: str) -> bool:
        """True if the signer currently votes to disable the fast price."""
        return DISABLE_FAST_PRICE_VOTES.load(self.store, signer)

    def vote_count(self) -> int:
        return DISABLE_FAST_PRICE_VOTE_COUNT.load(self.store)

    def _set_vote(self, signer: str, disabled: bool) -> int:
        count = self.vote_count()
        if disabled:
            count = checked_add(count, 1)
        else:
            if count == 0:
                raise ComputationError(
                    f"underflow: disable vote count is 0 but {signer} has a vote"
                )
            count -= 1

        DISABLE_FAST_PRICE_VOTES.save(self.store, signer, disabled)
        DISABLE_FAST_PRICE_VOTE_COUNT.save(self.store, count)
        return count

    def vote_disable(self, signer: str) -> int:
        """Move a signer from Enabled to Disabled.

        :param signer: Normalized signer address.
        :returns: New vote count.
        :raises AlreadyVotedError: If the signer is already Disabled.
        """
        if self.has_voted(signer):
            raise AlreadyVotedError(signer)
        count = self._set_vote(signer, True)
        logger.info(f"{signer} voted to disable fast price ({count} votes)")
        return count

    def vote_enable(self, signer: str) -> int:
        """Move a signer from Disabled back to Enabled.

        :param signer: Normalized signer address.
        :returns: New vote count.
        :raises AlreadyEnabledError: If the signer has no standing vote.
        :raises ComputationError: If the count would drop below zero.
        """
        if not self.has_voted(signer):
            raise AlreadyEnabledError(signer)
        count = self._set_vote(signer, False)
        logger.info(f"{signer} withdrew disable vote ({count} votes)")
        return count

    def is_fast_price_favored(self, token: str) -> bool:
        """Decide whether the fast price for a token is trusted as-is.

        Not favored when the global spread flag is set, when disable votes
        reach ``min_authorizations``, or when the token's fast drift exceeds
        its reference drift by more than ``max_cumulative_delta_diff``.

        :param token: Normalized token address.
        :returns: True if the fast price is favored.
        """
        if SPREAD_ENABLED.load(self.store):
            return False

        if self.vote_count() >= MIN_AUTHORIZATIONS.load(self.store):
            return False

        price_data = PRICE_DATA.load(self.store, token)
        max_diff = MAX_CUMULATIVE_DELTA_DIFFS.load(self.store, token)
        excess = price_data.cumulative_fast_delta - price_data.cumulative_ref_delta
        if excess > 0 and excess > max_diff:
            return False

        return True
