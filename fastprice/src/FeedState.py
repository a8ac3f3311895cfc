"""FeedState: Persisted records and storage layout of the fast price feed.

Singletons are Items, per-token and per-account records are Maps keyed by the
normalized address. Records that were never written read back as their zero
defaults, so lazily created state needs no explicit setup.
"""

from __future__ import annotations

from dataclasses import dataclass

from .Store import Item, Map, RecordCodec, RecordListCodec


@dataclass
class Config:
    """Feed configuration.

    :ivar price_duration: Seconds a fast price stays fresh before the inactive
        spread applies.
    :ivar max_price_update_delay: Seconds without updates before the
        chain-error spread applies.
    :ivar min_block_interval: Minimum blocks between accepted updates (0 = off).
    :ivar max_deviation_basis_points: Max fast/reference disagreement before a
        spread is applied.
    :ivar fast_price_events: Address notified of every ingested price.
    :ivar token_manager: Initial holder of the token-manager role.
    """

    price_duration: int = 0
    max_price_update_delay: int = 0
    min_block_interval: int = 0
    max_deviation_basis_points: int = 0
    fast_price_events: str = ""
    token_manager: str = ""


@dataclass
class PriceDataItem:
    """Per-token deviation record.

    :ivar ref_price: Reference price seen on the last ingestion.
    :ivar ref_time: Block timestamp of the last ingestion.
    :ivar cumulative_ref_delta: Reference drift in the current bucket (1e7 scale).
    :ivar cumulative_fast_delta: Fast drift in the current bucket (1e7 scale).
    """

    ref_price: int = 0
    ref_time: int = 0
    cumulative_ref_delta: int = 0
    cumulative_fast_delta: int = 0


@dataclass
class SpreadBasisPoint:
    """Spreads applied to the reference price when the fast feed is unusable."""

    spread_basis_points_if_inactive: int = 0
    spread_basis_points_if_chain_error: int = 0


@dataclass
class LastUpdated:
    """Watermark of the last admitted update."""

    last_updated_at: int = 0
    last_updated_block: int = 0


@dataclass
class TokenData:
    """Registry entry mapping a compact-price slot to a token."""

    token: str
    token_precision: int


# Singletons
IS_INITIALIZED: Item[bool] = Item("is_initialized", default=False)
GOV: Item[str] = Item("gov", default="")
VAULT_PRICE_FEED: Item[str] = Item("vault_price_feed", default="")
MIN_AUTHORIZATIONS: Item[int] = Item("min_authorizations", default=0)
CONFIG: Item[Config] = Item("config", default=Config, codec=RecordCodec(Config))
SPREAD_BASIS_POINTS: Item[SpreadBasisPoint] = Item(
    "spread_basis_points",
    default=SpreadBasisPoint,
    codec=RecordCodec(SpreadBasisPoint),
)
SPREAD_ENABLED: Item[bool] = Item("spread_enabled", default=False)
DISABLE_FAST_PRICE_VOTE_COUNT: Item[int] = Item(
    "disable_fast_price_vote_count", default=0
)
TOKEN_DATA: Item[list[TokenData]] = Item(
    "token_data", default=list, codec=RecordListCodec(TokenData)
)
LAST_UPDATED: Item[LastUpdated] = Item(
    "last_updated", default=LastUpdated, codec=RecordCodec(LastUpdated)
)
MAX_TIME_DEVIATION: Item[int] = Item("max_time_deviation", default=0)
TOKEN_MANAGER: Item[str] = Item("token_manager", default="")
PRICE_DATA_INTERVAL: Item[int] = Item("price_data_interval", default=0)

# Per-account / per-token
IS_UPDATER: Map[bool] = Map("is_updater", default=False)
IS_SIGNER: Map[bool] = Map("is_signer", default=False)
PRICES: Map[int] = Map("prices", default=0)
DISABLE_FAST_PRICE_VOTES: Map[bool] = Map("disable_fast_price_votes", default=False)
MAX_CUMULATIVE_DELTA_DIFFS: Map[int] = Map("max_cumulative_delta_diffs", default=0)
PRICE_DATA: Map[PriceDataItem] = Map(
    "price_data", default=PriceDataItem, codec=RecordCodec(PriceDataItem)
)
