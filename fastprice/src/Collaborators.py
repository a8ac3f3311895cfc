"""Collaborators: Narrow interfaces to services the feed consumes.

- ReferencePriceSource: the slower authoritative price for a token
- PositionRouter: request-queue positions of the position-processing service

The feed never fetches anything itself; it asks these interfaces. Static
implementations are provided for local runs and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class ReferencePriceSource(ABC):
    """Abstract provider of reference prices."""

    @abstractmethod
    def get_latest_primary_price(self, vault_price_feed: str, token: str) -> int:
        """Return the latest reference price for a token.

        :param vault_price_feed: Address of the reference feed to query.
        :param token: Normalized token address.
        :returns: Reference price (30-decimal scale), 0 if unknown.
        """
        pass


class StaticReferencePrices(ReferencePriceSource):
    """Reference prices held in a dict.

    :ivar prices: Mapping of token address to reference price.
    """

    def __init__(self, prices: dict[str, int] | None = None) -> None:
        self.prices: dict[str, int] = dict(prices or {})

    def set_price(self, token: str, price: int) -> None:
        self.prices[token] = price

    def get_latest_primary_price(self, vault_price_feed: str, token: str) -> int:
        return self.prices.get(token, 0)


@dataclass
class PositionRouterState:
    """Start indexes of the router's pending request queues."""

    increase_position_request_keys_start: int = 0
    decrease_position_request_keys_start: int = 0


class PositionRouter(ABC):
    """Abstract view of the position-processing service."""

    @abstractmethod
    def load_state(self, address: str) -> PositionRouterState:
        """Return the queue state of the router at ``address``."""
        pass


class StaticPositionRouter(PositionRouter):
    """Position router with fixed queue state.

    :ivar state: State returned for every address.
    """

    def __init__(self, state: PositionRouterState | None = None) -> None:
        self.state = state or PositionRouterState()

    def load_state(self, address: str) -> PositionRouterState:
        return self.state
