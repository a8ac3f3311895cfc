"""Command and query messages accepted by the fast price feed.

Every operation is a frozen dataclass registered under its snake-case wire
name. JSON messages use the externally tagged form, one key naming the variant:

.. code-block:: python

    >>> parse_execute_msg({"set_min_block_interval": {"min_block_interval": "2"}})
    SetMinBlockInterval(min_block_interval=2)
    >>> parse_execute_msg("disable_fast_price")
    DisableFastPrice()

Integer fields accept ints or decimal strings, the usual JSON encoding of
256-bit values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, ClassVar

from .FeedState import Config
from .PriceDecoder import PriceWord


class Message:
    """Base class of all messages.

    :cvar name: Wire name of the variant.
    """

    name: ClassVar[str] = ""


class ExecuteMsg(Message):
    """A state-changing operation."""


class QueryMsg(Message):
    """A read-only operation."""


# Registries of message variants (populated by the decorators below)
EXECUTE_REGISTRY: dict[str, type[ExecuteMsg]] = {}
QUERY_REGISTRY: dict[str, type[QueryMsg]] = {}


def _register(registry: dict[str, type], name: str) -> Callable[[type], type]:
    def decorator(cls: type) -> type:
        if name in registry:
            raise ValueError(f"Message '{name}' registered twice")
        cls.name = name
        registry[name] = cls
        return cls

    return decorator


def register_execute(name: str) -> Callable[[type], type]:
    """Decorator registering an execute message under ``name``."""
    return _register(EXECUTE_REGISTRY, name)


def register_query(name: str) -> Callable[[type], type]:
    """Decorator registering a query message under ``name``."""
    return _register(QUERY_REGISTRY, name)


@dataclass(frozen=True)
class InstantiateMsg:
    """One-time deployment message.

    :ivar config: Initial feed configuration.
    :ivar gov: Governor address (defaults to the deployer).
    :ivar price_data_interval: Width in seconds of deviation buckets.
    :ivar max_time_deviation: Allowed distance between update and block time.
    """

    config: Config
    gov: str = ""
    price_data_interval: int = 0
    max_time_deviation: int = 0


# ---------------------------------------------------------------------------
# Execute messages
# ---------------------------------------------------------------------------

@register_execute("initialize")
@dataclass(frozen=True)
class Initialize(ExecuteMsg):
    min_auth: int
    signers: list[str] = field(default_factory=list)
    updaters: list[str] = field(default_factory=list)


@register_execute("set_signer")
@dataclass(frozen=True)
class SetSigner(ExecuteMsg):
    account: str
    is_active: bool


@register_execute("set_updater")
@dataclass(frozen=True)
class SetUpdater(ExecuteMsg):
    account: str
    is_active: bool


@register_execute("set_fast_price_events")
@dataclass(frozen=True)
class SetFastPriceEvents(ExecuteMsg):
    fast_price_events: str


@register_execute("set_vault_price_feed")
@dataclass(frozen=True)
class SetVaultPriceFeed(ExecuteMsg):
    vault_price_feed: str


@register_execute("set_max_time_deviation")
@dataclass(frozen=True)
class SetMaxTimeDeviation(ExecuteMsg):
    max_time_deviation: int


@register_execute("set_price_duration")
@dataclass(frozen=True)
class SetPriceDuration(ExecuteMsg):
    price_duration: int


@register_execute("set_max_price_update_delay")
@dataclass(frozen=True)
class SetMaxPriceUpdateDelay(ExecuteMsg):
    max_price_update_delay: int


@register_execute("set_spread_basis_points_if_inactive")
@dataclass(frozen=True)
class SetSpreadBasisPointsIfInactive(ExecuteMsg):
    spread_basis_points_if_inactive: int


@register_execute("set_spread_basis_points_if_chain_error")
@dataclass(frozen=True)
class SetSpreadBasisPointsIfChainError(ExecuteMsg):
    spread_basis_points_if_chain_error: int


@register_execute("set_min_block_interval")
@dataclass(frozen=True)
class SetMinBlockInterval(ExecuteMsg):
    min_block_interval: int


@register_execute("set_is_spread_enabled")
@dataclass(frozen=True)
class SetIsSpreadEnabled(ExecuteMsg):
    spread_enabled: bool


@register_execute("set_last_updated_at")
@dataclass(frozen=True)
class SetLastUpdatedAt(ExecuteMsg):
    last_updated_at: int


@register_execute("set_token_manager")
@dataclass(frozen=True)
class SetTokenManager(ExecuteMsg):
    token_manager: str


@register_execute("set_max_deviation_basis_points")
@dataclass(frozen=True)
class SetMaxDeviationBasisPoints(ExecuteMsg):
    max_deviation_basis_points: int


@register_execute("set_max_cumulative_delta_diffs")
@dataclass(frozen=True)
class SetMaxCumulativeDeltaDiffs(ExecuteMsg):
    tokens: list[str]
    max_cumulative_delta_diffs: list[int]


@register_execute("set_price_data_interval")
@dataclass(frozen=True)
class SetPriceDataInterval(ExecuteMsg):
    price_data_interval: int


@register_execute("set_min_authorizations")
@dataclass(frozen=True)
class SetMinAuthorizations(ExecuteMsg):
    min_authorizations: int


@register_execute("set_tokens")
@dataclass(frozen=True)
class SetTokens(ExecuteMsg):
    tokens: list[str]
    token_precision: list[int]


@register_execute("set_prices")
@dataclass(frozen=True)
class SetPrices(ExecuteMsg):
    tokens: list[str]
    prices: list[int]
    timestamp: int


@register_execute("set_compacted_prices")
@dataclass(frozen=True)
class SetCompactedPrices(ExecuteMsg):
    price_bit_array: list[PriceWord]
    timestamp: int


@register_execute("set_prices_with_bits")
@dataclass(frozen=True)
class SetPricesWithBits(ExecuteMsg):
    price_bits: PriceWord
    timestamp: int


@register_execute("set_prices_with_bits_and_execute")
@dataclass(frozen=True)
class SetPricesWithBitsAndExecute(ExecuteMsg):
    """Ingest one price word, then ask the position router to process its queues.

    :ivar position_router: Address of the position-processing service.
    :ivar execution_fee_receiver: Account credited with execution fees
        (defaults to the caller).
    """

    position_router: str
    price_bits: PriceWord
    timestamp: int
    end_index_for_increase_positions: int
    end_index_for_decrease_positions: int
    max_increase_positions: int
    max_decrease_positions: int
    execution_fee_receiver: str = ""


@register_execute("disable_fast_price")
@dataclass(frozen=True)
class DisableFastPrice(ExecuteMsg):
    pass


@register_execute("enable_fast_price")
@dataclass(frozen=True)
class EnableFastPrice(ExecuteMsg):
    pass


# ---------------------------------------------------------------------------
# Query messages
# ---------------------------------------------------------------------------

@register_query("get_price")
@dataclass(frozen=True)
class GetPrice(QueryMsg):
    token: str
    block_timestamp: int
    ref_price: int
    maximise: bool


@register_query("favor_fast_price")
@dataclass(frozen=True)
class FavorFastPrice(QueryMsg):
    token: str


@register_query("get_price_data")
@dataclass(frozen=True)
class GetPriceData(QueryMsg):
    token: str


@register_query("get_config")
@dataclass(frozen=True)
class GetConfig(QueryMsg):
    pass


@register_query("is_updater")
@dataclass(frozen=True)
class IsUpdater(QueryMsg):
    address: str


@register_query("is_signer")
@dataclass(frozen=True)
class IsSigner(QueryMsg):
    address: str


@register_query("prices")
@dataclass(frozen=True)
class Prices(QueryMsg):
    address: str


@register_query("max_cumulative_delta_diffs")
@dataclass(frozen=True)
class MaxCumulativeDeltaDiffs(QueryMsg):
    address: str


@register_query("disable_fast_price_votes")
@dataclass(frozen=True)
class DisableFastPriceVotes(QueryMsg):
    address: str


@register_query("disable_fast_price_vote_count")
@dataclass(frozen=True)
class DisableFastPriceVoteCount(QueryMsg):
    pass


@register_query("min_authorizations")
@dataclass(frozen=True)
class MinAuthorizations(QueryMsg):
    pass


@register_query("max_time_deviation")
@dataclass(frozen=True)
class MaxTimeDeviation(QueryMsg):
    pass


@register_query("spread_basis_point")
@dataclass(frozen=True)
class GetSpreadBasisPoint(QueryMsg):
    pass


@register_query("token_data")
@dataclass(frozen=True)
class GetTokenData(QueryMsg):
    pass


@register_query("last_updated")
@dataclass(frozen=True)
class GetLastUpdated(QueryMsg):
    pass


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _coerce_uint(value: Any, name: str) -> int:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Field '{name}' must be an unsigned integer, got {value!r}")
    return value


def _coerce_fields(cls: type, payload: dict[str, Any]) -> dict[str, Any]:
    # Annotations are strings under postponed evaluation
    types = {f.name: f.type for f in fields(cls)}
    unknown = set(payload) - set(types)
    if unknown:
        raise ValueError(f"Unknown fields for '{cls.name}': {sorted(unknown)}")

    coerced = dict(payload)
    for name, value in payload.items():
        if types[name] == "int":
            coerced[name] = _coerce_uint(value, name)
        elif types[name] == "bool" and not isinstance(value, bool):
            raise ValueError(f"Field '{name}' must be a boolean, got {value!r}")
        elif types[name] == "list[int]":
            if not isinstance(value, list):
                raise ValueError(f"Field '{name}' must be a list, got {value!r}")
            coerced[name] = [_coerce_uint(v, name) for v in value]
    return coerced


def _parse(data: Any, registry: dict[str, type]) -> Any:
    if isinstance(data, str):
        variant, payload = data, {}
    elif isinstance(data, dict) and len(data) == 1:
        variant, payload = next(iter(data.items()))
        if payload is None:
            payload = {}
    else:
        raise ValueError(f"Message must name exactly one variant, got {data!r}")

    if variant not in registry:
        available = ", ".join(sorted(registry))
        raise ValueError(f"Unknown message '{variant}'. Available: {available}")
    if not isinstance(payload, dict):
        raise ValueError(f"Payload of '{variant}' must be an object, got {payload!r}")

    cls = registry[variant]
    try:
        return cls(**_coerce_fields(cls, payload))
    except TypeError as e:
        raise ValueError(f"Invalid '{variant}' message: {e}") from e


def parse_execute_msg(data: Any) -> ExecuteMsg:
    """Build an execute message from its JSON form.

    :param data: Decoded JSON (object with one key, or a bare variant name).
    :returns: Message instance.
    :raises ValueError: On unknown variants or malformed fields.
    """
    return _parse(data, EXECUTE_REGISTRY)


def parse_query_msg(data: Any) -> QueryMsg:
    """Build a query message from its JSON form. See parse_execute_msg()."""
    return _parse(data, QUERY_REGISTRY)


def parse_instantiate_msg(data: Any) -> InstantiateMsg:
    """Build an InstantiateMsg from its JSON form.

    :param data: Object with a ``config`` object and optional top-level fields.
    :returns: Message instance.
    :raises ValueError: On a missing config or malformed fields.
    """
    if not isinstance(data, dict) or not isinstance(data.get("config"), dict):
        raise ValueError("Instantiate message requires a 'config' object")

    config_data = dict(data["config"])
    for f in fields(Config):
        if f.type == "int" and f.name in config_data:
            config_data[f.name] = _coerce_uint(config_data[f.name], f.name)
    try:
        config = Config(**config_data)
    except TypeError as e:
        raise ValueError(f"Invalid config: {e}") from e

    return InstantiateMsg(
        config=config,
        gov=data.get("gov", ""),
        price_data_interval=_coerce_uint(
            data.get("price_data_interval", 0), "price_data_interval"
        ),
        max_time_deviation=_coerce_uint(
            data.get("max_time_deviation", 0), "max_time_deviation"
        ),
    )
