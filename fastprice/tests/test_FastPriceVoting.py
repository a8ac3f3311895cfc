"""Unit tests for FastPriceVoting."""

import pytest

from fastprice.src.errors import AlreadyEnabledError, AlreadyVotedError, ComputationError
from fastprice.src.FastPriceVoting import FastPriceVoting
from fastprice.src.FeedState import (
    DISABLE_FAST_PRICE_VOTES,
    MAX_CUMULATIVE_DELTA_DIFFS,
    MIN_AUTHORIZATIONS,
    PRICE_DATA,
    SPREAD_ENABLED,
    PriceDataItem,
)
from fastprice.src.Store import MemoryStore

SIGNERS = ["0x" + f"{i:02d}" * 20 for i in range(1, 4)]
TOKEN = "0x" + "aa" * 20


def make_voting(min_authorizations: int = 2) -> FastPriceVoting:
    store = MemoryStore()
    MIN_AUTHORIZATIONS.save(store, min_authorizations)
    return FastPriceVoting(store)


def disabled_signers(voting: FastPriceVoting) -> int:
    return sum(
        DISABLE_FAST_PRICE_VOTES.load(voting.store, signer) for signer in SIGNERS
    )


class TestVoteTransitions:
    """Test the disable/enable state machine."""

    def test_disable_then_enable(self) -> None:
        """A signer should move Enabled -> Disabled -> Enabled."""
        voting = make_voting()
        assert voting.vote_disable(SIGNERS[0]) == 1
        assert voting.has_voted(SIGNERS[0])
        assert voting.vote_enable(SIGNERS[0]) == 0
        assert not voting.has_voted(SIGNERS[0])

    def test_double_disable(self) -> None:
        """A second disable vote should fail without changing the count."""
        voting = make_voting()
        voting.vote_disable(SIGNERS[0])
        with pytest.raises(AlreadyVotedError, match="already voted"):
            voting.vote_disable(SIGNERS[0])
        assert voting.vote_count() == 1

    def test_enable_without_vote(self) -> None:
        """Enabling without a standing vote should fail without changing the count."""
        voting = make_voting()
        voting.vote_disable(SIGNERS[1])
        with pytest.raises(AlreadyEnabledError, match="already enabled"):
            voting.vote_enable(SIGNERS[0])
        assert voting.vote_count() == 1

    def test_count_matches_flags(self) -> None:
        """vote_count should equal the number of Disabled signers throughout."""
        voting = make_voting()
        steps = [
            (voting.vote_disable, SIGNERS[0]),
            (voting.vote_disable, SIGNERS[1]),
            (voting.vote_enable, SIGNERS[0]),
            (voting.vote_disable, SIGNERS[2]),
            (voting.vote_disable, SIGNERS[0]),
            (voting.vote_enable, SIGNERS[1]),
        ]
        for step, signer in steps:
            step(signer)
            assert voting.vote_count() == disabled_signers(voting)
        assert voting.vote_count() == 2

    def test_count_underflow(self) -> None:
        """A flag without a matching count is an invariant violation."""
        voting = make_voting()
        DISABLE_FAST_PRICE_VOTES.save(voting.store, SIGNERS[0], True)
        with pytest.raises(ComputationError, match="underflow"):
            voting.vote_enable(SIGNERS[0])


class TestFastPriceFavored:
    """Test the fast-price trust decision."""

    def test_favored_by_default(self) -> None:
        """Below quorum with no drift the fast price should be favored."""
        voting = make_voting()
        assert voting.is_fast_price_favored(TOKEN)

    def test_spread_enabled(self) -> None:
        """The global spread flag should disable favoring."""
        voting = make_voting()
        SPREAD_ENABLED.save(voting.store, True)
        assert not voting.is_fast_price_favored(TOKEN)

    def test_quorum_reached(self) -> None:
        """Enough disable votes should stop favoring the fast price."""
        voting = make_voting(min_authorizations=2)
        voting.vote_disable(SIGNERS[0])
        assert voting.is_fast_price_favored(TOKEN)
        voting.vote_disable(SIGNERS[1])
        assert not voting.is_fast_price_favored(TOKEN)

    def test_zero_quorum(self) -> None:
        """With min_authorizations of zero the fast price is never favored."""
        voting = make_voting(min_authorizations=0)
        assert not voting.is_fast_price_favored(TOKEN)

    def test_excess_drift(self) -> None:
        """Fast drift beyond the reference drift plus the ceiling should disfavor."""
        voting = make_voting()
        PRICE_DATA.save(
            voting.store,
            TOKEN,
            PriceDataItem(cumulative_ref_delta=100, cumulative_fast_delta=500),
        )
        MAX_CUMULATIVE_DELTA_DIFFS.save(voting.store, TOKEN, 300)
        assert not voting.is_fast_price_favored(TOKEN)

        MAX_CUMULATIVE_DELTA_DIFFS.save(voting.store, TOKEN, 400)
        assert voting.is_fast_price_favored(TOKEN)

    def test_reference_drifting_more(self) -> None:
        """A reference drifting more than the fast price is not a problem."""
        voting = make_voting()
        PRICE_DATA.save(
            voting.store,
            TOKEN,
            PriceDataItem(cumulative_ref_delta=500, cumulative_fast_delta=100),
        )
        assert voting.is_fast_price_favored(TOKEN)
