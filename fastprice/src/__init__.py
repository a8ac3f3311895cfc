"""
Fast Price Feed - Dual-Source Price Reconciliation

This module reconciles a frequently-updated fast price with a slower
reference price:
- FastPriceFeed: Operation surface (instantiate / execute / query)
- FreshnessGate: Timestamp and block-interval admission of updates
- CompactPriceDecoder: Unpacking of 4x64-bit price words
- DeviationTracker: Per-token cumulative drift accounting
- PriceResolver: Spread-adjusted price resolution
- FastPriceVoting: Signer disable votes and fast-price trust decision
- Store: Key/value state with atomic transactions
"""

from .Collaborators import (
    PositionRouter,
    PositionRouterState,
    ReferencePriceSource,
    StaticPositionRouter,
    StaticReferencePrices,
)
from .DeviationTracker import DeviationTracker, PriceUpdate
from .EventSink import EventSink, HttpEventSink, MemoryEventSink, OutboundMessage
from .FastPriceFeed import MAX_PRICE_DURATION, FastPriceFeed, Response
from .FastPriceVoting import FastPriceVoting
from .FeedState import Config, LastUpdated, PriceDataItem, SpreadBasisPoint, TokenData
from .FreshnessGate import Admission, BlockInfo, FreshnessGate
from .PriceDecoder import CompactPriceDecoder, decode_price_bits, encode_price_bits
from .PriceResolver import PriceResolver, Resolution
from .RoleGate import RoleGate
from .Store import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "Admission",
    "BlockInfo",
    "CompactPriceDecoder",
    "Config",
    "DeviationTracker",
    "EventSink",
    "FastPriceFeed",
    "FastPriceVoting",
    "FileStore",
    "FreshnessGate",
    "HttpEventSink",
    "KeyValueStore",
    "LastUpdated",
    "MAX_PRICE_DURATION",
    "MemoryEventSink",
    "MemoryStore",
    "OutboundMessage",
    "PositionRouter",
    "PositionRouterState",
    "PriceDataItem",
    "PriceResolver",
    "PriceUpdate",
    "ReferencePriceSource",
    "Resolution",
    "Response",
    "RoleGate",
    "SpreadBasisPoint",
    "StaticPositionRouter",
    "StaticReferencePrices",
    "TokenData",
    "decode_price_bits",
    "encode_price_bits",
]
