"""FastPriceFeed: Operation surface of the fast price feed.

Wires the components together and exposes three entry points:

- instantiate(): one-time setup of config and role anchors
- execute(): role-checked state changes (price ingestion, votes, settings)
- query(): read-only views, including the resolved price

Every execute handler runs inside a store transaction, so an operation either
commits all of its writes or none. Outbound messages (price notifications,
position-router batches) are collected in the Response and handed to the
EventSink only after the transaction committed.

.. code-block:: python

    >>> feed = FastPriceFeed(MemoryStore(), reference_prices=StaticReferencePrices())
    >>> feed.instantiate(gov, InstantiateMsg(config=Config(price_duration=300, ...)))
    >>> feed.execute(block, gov, Initialize(min_auth=1, signers=[...], updaters=[...]))
    >>> feed.execute(block, updater, SetPrices(tokens=[btc], prices=[...], timestamp=block.time))
    >>> feed.query(GetPrice(token=btc, block_timestamp=block.time, ref_price=..., maximise=True))
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from .address import normalize_address, normalize_addresses
from .Collaborators import (
    PositionRouter,
    ReferencePriceSource,
    StaticPositionRouter,
    StaticReferencePrices,
)
from .DeviationTracker import DeviationTracker
from .errors import (
    AlreadyInitializedError,
    InvalidBasisPointsError,
    InvalidLengthError,
    InvalidPriceDurationError,
    InvalidTokenPrecisionError,
)
from .EventSink import EventSink, MemoryEventSink, OutboundMessage
from .FastPriceVoting import FastPriceVoting
from .FeedState import (
    CONFIG,
    DISABLE_FAST_PRICE_VOTES,
    GOV,
    IS_INITIALIZED,
    IS_SIGNER,
    IS_UPDATER,
    LAST_UPDATED,
    MAX_CUMULATIVE_DELTA_DIFFS,
    MAX_TIME_DEVIATION,
    MIN_AUTHORIZATIONS,
    PRICE_DATA_INTERVAL,
    PRICES,
    SPREAD_BASIS_POINTS,
    SPREAD_ENABLED,
    TOKEN_DATA,
    TOKEN_MANAGER,
    VAULT_PRICE_FEED,
    TokenData,
)
from .fixed_point import BASIS_POINTS_DIVISOR, MAX_UINT64, checked_add, require_uint
from .FreshnessGate import Admission, BlockInfo, FreshnessGate
from .messages import (
    DisableFastPrice,
    DisableFastPriceVoteCount,
    DisableFastPriceVotes,
    EnableFastPrice,
    ExecuteMsg,
    FavorFastPrice,
    GetConfig,
    GetLastUpdated,
    GetPrice,
    GetPriceData,
    GetSpreadBasisPoint,
    GetTokenData,
    Initialize,
    InstantiateMsg,
    IsSigner,
    IsUpdater,
    MaxCumulativeDeltaDiffs,
    MaxTimeDeviation,
    MinAuthorizations,
    Prices,
    QueryMsg,
    SetCompactedPrices,
    SetFastPriceEvents,
    SetIsSpreadEnabled,
    SetLastUpdatedAt,
    SetMaxCumulativeDeltaDiffs,
    SetMaxDeviationBasisPoints,
    SetMaxPriceUpdateDelay,
    SetMaxTimeDeviation,
    SetMinAuthorizations,
    SetMinBlockInterval,
    SetPriceDataInterval,
    SetPriceDuration,
    SetPrices,
    SetPricesWithBits,
    SetPricesWithBitsAndExecute,
    SetSigner,
    SetSpreadBasisPointsIfChainError,
    SetSpreadBasisPointsIfInactive,
    SetTokenManager,
    SetTokens,
    SetUpdater,
    SetVaultPriceFeed,
)
from .PriceDecoder import CompactPriceDecoder, to_price_word
from .PriceResolver import PriceResolver
from .RoleGate import RoleGate
from .Store import KeyValueStore

logger = logging.getLogger(__name__)

# Upper bound (exclusive) for the fast-price freshness window, in seconds
MAX_PRICE_DURATION = 30 * 60


@dataclass
class Response:
    """Outcome of an instantiate or execute call.

    :ivar attributes: Ordered ``(key, value)`` pairs describing the operation.
    :ivar messages: Outbound messages delivered after commit.
    :ivar data: Optional handler result.
    """

    attributes: list[tuple[str, str]] = field(default_factory=list)
    messages: list[OutboundMessage] = field(default_factory=list)
    data: Any = None

    def add_attribute(self, key: str, value: Any) -> Response:
        if isinstance(value, bool):
            value = str(value).lower()
        self.attributes.append((key, str(value)))
        return self

    def add_message(self, message: OutboundMessage) -> Response:
        self.messages.append(message)
        return self

    def attribute(self, key: str) -> str | None:
        """Value of the first attribute named ``key``, or None."""
        for k, v in self.attributes:
            if k == key:
                return v
        return None


def _require_basis_points(value: int, name: str) -> int:
    require_uint(value, name)
    if value > BASIS_POINTS_DIVISOR:
        raise InvalidBasisPointsError(name, value)
    return value


def _require_lengths(expected: int, actual: int) -> None:
    if expected != actual:
        raise InvalidLengthError(expected, actual)


def _require_price_duration(price_duration: int) -> int:
    require_uint(price_duration, "price_duration", MAX_UINT64)
    if price_duration == 0 or price_duration >= MAX_PRICE_DURATION:
        raise InvalidPriceDurationError(price_duration)
    return price_duration


class FastPriceFeed:
    """Fast price feed bound to a store and its collaborators.

    :ivar store: Persistent state.
    :ivar reference_prices: Source of reference prices for deviation tracking.
    :ivar position_router: Queue state of the position-processing service.
    :ivar event_sink: Receiver of outbound messages.
    """

    def __init__(
        self,
        store: KeyValueStore,
        reference_prices: ReferencePriceSource | None = None,
        position_router: PositionRouter | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        """Initialize the feed.

        :param store: Store holding all feed state.
        :param reference_prices: Reference price source (default: empty static).
        :param position_router: Position router view (default: zero queues).
        :param event_sink: Outbound message sink (default: in-memory).
        """
        self.store = store
        self.reference_prices = reference_prices or StaticReferencePrices()
        self.position_router = position_router or StaticPositionRouter()
        self.event_sink = event_sink or MemoryEventSink()

        self.roles = RoleGate(store)
        self.gate = FreshnessGate(store)
        self.tracker = DeviationTracker(store)
        self.voting = FastPriceVoting(store)
        self.resolver = PriceResolver(store, self.voting)

        self._execute_handlers: dict[
            type[ExecuteMsg], Callable[[BlockInfo, str, Any], Response]
        ] = {
            Initialize: self._initialize,
            SetSigner: self._set_signer,
            SetUpdater: self._set_updater,
            SetFastPriceEvents: self._set_fast_price_events,
            SetVaultPriceFeed: self._set_vault_price_feed,
            SetMaxTimeDeviation: self._set_max_time_deviation,
            SetPriceDuration: self._set_price_duration,
            SetMaxPriceUpdateDelay: self._set_max_price_update_delay,
            SetSpreadBasisPointsIfInactive: self._set_spread_basis_points_if_inactive,
            SetSpreadBasisPointsIfChainError: self._set_spread_basis_points_if_chain_error,
            SetMinBlockInterval: self._set_min_block_interval,
            SetIsSpreadEnabled: self._set_is_spread_enabled,
            SetLastUpdatedAt: self._set_last_updated_at,
            SetTokenManager: self._set_token_manager,
            SetMaxDeviationBasisPoints: self._set_max_deviation_basis_points,
            SetMaxCumulativeDeltaDiffs: self._set_max_cumulative_delta_diffs,
            SetPriceDataInterval: self._set_price_data_interval,
            SetMinAuthorizations: self._set_min_authorizations,
            SetTokens: self._set_tokens,
            SetPrices: self._set_prices,
            SetCompactedPrices: self._set_compacted_prices,
            SetPricesWithBits: self._set_prices_with_bits,
            SetPricesWithBitsAndExecute: self._set_prices_with_bits_and_execute,
            DisableFastPrice: self._disable_fast_price,
            EnableFastPrice: self._enable_fast_price,
        }
        self._query_handlers: dict[type[QueryMsg], Callable[[Any], Any]] = {
            GetPrice: self._query_price,
            FavorFastPrice: lambda msg: self.voting.is_fast_price_favored(
                normalize_address(msg.token)
            ),
            GetPriceData: lambda msg: self.tracker.get_price_data(
                normalize_address(msg.token)
            ),
            GetConfig: lambda msg: CONFIG.load(self.store),
            IsUpdater: lambda msg: IS_UPDATER.load(
                self.store, normalize_address(msg.address)
            ),
            IsSigner: lambda msg: IS_SIGNER.load(
                self.store, normalize_address(msg.address)
            ),
            Prices: lambda msg: PRICES.load(self.store, normalize_address(msg.address)),
            MaxCumulativeDeltaDiffs: lambda msg: MAX_CUMULATIVE_DELTA_DIFFS.load(
                self.store, normalize_address(msg.address)
            ),
            DisableFastPriceVotes: lambda msg: DISABLE_FAST_PRICE_VOTES.load(
                self.store, normalize_address(msg.address)
            ),
            DisableFastPriceVoteCount: lambda msg: self.voting.vote_count(),
            MinAuthorizations: lambda msg: MIN_AUTHORIZATIONS.load(self.store),
            MaxTimeDeviation: lambda msg: MAX_TIME_DEVIATION.load(self.store),
            GetSpreadBasisPoint: lambda msg: SPREAD_BASIS_POINTS.load(self.store),
            GetTokenData: lambda msg: TOKEN_DATA.load(self.store),
            GetLastUpdated: lambda msg: LAST_UPDATED.load(self.store),
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def instantiate(self, sender: str, msg: InstantiateMsg) -> Response:
        """Set up a fresh feed.

        :param sender: Deployer address; becomes gov unless ``msg.gov`` is set.
        :param msg: Initial configuration.
        :returns: Response describing the setup.
        :raises AlreadyInitializedError: If the feed was already instantiated.
        :raises InvalidPriceDurationError: If price_duration is zero or too large.
        :raises InvalidBasisPointsError: If max_deviation_basis_points > 10000.
        """
        sender = normalize_address(sender)
        config = msg.config

        with self.store.transaction():
            if CONFIG.may_load(self.store) is not None:
                raise AlreadyInitializedError()

            _require_price_duration(config.price_duration)
            require_uint(config.max_price_update_delay, "max_price_update_delay", MAX_UINT64)
            require_uint(config.min_block_interval, "min_block_interval", MAX_UINT64)
            _require_basis_points(
                config.max_deviation_basis_points, "max_deviation_basis_points"
            )

            config = replace(
                config,
                fast_price_events=(
                    normalize_address(config.fast_price_events)
                    if config.fast_price_events
                    else ""
                ),
                token_manager=(
                    normalize_address(config.token_manager)
                    if config.token_manager
                    else ""
                ),
            )
            gov = normalize_address(msg.gov) if msg.gov else sender

            CONFIG.save(self.store, config)
            GOV.save(self.store, gov)
            TOKEN_MANAGER.save(self.store, config.token_manager)
            PRICE_DATA_INTERVAL.save(
                self.store, require_uint(msg.price_data_interval, "price_data_interval")
            )
            MAX_TIME_DEVIATION.save(
                self.store,
                require_uint(msg.max_time_deviation, "max_time_deviation", MAX_UINT64),
            )

        logger.info(f"Instantiated feed (gov={gov}, price_duration={config.price_duration})")
        return (
            Response()
            .add_attribute("method", "instantiate")
            .add_attribute("gov", gov)
        )

    def execute(self, block: BlockInfo, sender: str, msg: ExecuteMsg) -> Response:
        """Run a state-changing operation atomically.

        :param block: Block the operation executes in.
        :param sender: Caller address.
        :param msg: Operation to run.
        :returns: Response of the handler.
        :raises FastPriceFeedError: If the operation is rejected (no writes kept).
        :raises EventDeliveryError: If outbound delivery fails after commit.
        :raises ValueError: On malformed input or an unknown message type.
        """
        handler = self._execute_handlers.get(type(msg))
        if handler is None:
            raise ValueError(f"Unsupported execute message: {type(msg).__name__}")

        sender = normalize_address(sender)
        with self.store.transaction():
            response = handler(block, sender, msg)

        logger.debug(f"Executed {msg.name} from {sender} at block {block.height}")
        self.event_sink.deliver_all(response.messages)
        return response

    def query(self, msg: QueryMsg) -> Any:
        """Answer a read-only query.

        :param msg: Query to answer.
        :returns: Query result (int, bool or a state record).
        :raises ValueError: On malformed input or an unknown message type.
        """
        handler = self._query_handlers.get(type(msg))
        if handler is None:
            raise ValueError(f"Unsupported query message: {type(msg).__name__}")
        return handler(msg)

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def _initialize(self, block: BlockInfo, sender: str, msg: Initialize) -> Response:
        self.roles.require("gov", sender)
        if IS_INITIALIZED.load(self.store):
            raise AlreadyInitializedError()

        signers = normalize_addresses(msg.signers)
        updaters = normalize_addresses(msg.updaters)
        for signer in signers:
            IS_SIGNER.save(self.store, signer, True)
        for updater in updaters:
            IS_UPDATER.save(self.store, updater, True)
        MIN_AUTHORIZATIONS.save(self.store, require_uint(msg.min_auth, "min_auth"))
        IS_INITIALIZED.save(self.store, True)

        logger.info(
            f"Initialized with {len(signers)} signers, {len(updaters)} updaters, "
            f"min_authorizations={msg.min_auth}"
        )
        return Response().add_attribute("method", "initialize")

    def _set_signer(self, block: BlockInfo, sender: str, msg: SetSigner) -> Response:
        self.roles.require("gov", sender)
        account = normalize_address(msg.account)
        IS_SIGNER.save(self.store, account, msg.is_active)
        logger.info(f"Signer {account} active={msg.is_active}")
        return (
            Response()
            .add_attribute("method", "set_signer")
            .add_attribute("signer", account)
            .add_attribute("is_active", msg.is_active)
        )

    def _set_updater(self, block: BlockInfo, sender: str, msg: SetUpdater) -> Response:
        self.roles.require("gov", sender)
        account = normalize_address(msg.account)
        IS_UPDATER.save(self.store, account, msg.is_active)
        logger.info(f"Updater {account} active={msg.is_active}")
        return (
            Response()
            .add_attribute("method", "set_updater")
            .add_attribute("account", account)
            .add_attribute("is_active", msg.is_active)
        )

    def _update_config(self, **changes: Any) -> None:
        CONFIG.save(self.store, replace(CONFIG.load(self.store), **changes))
        logger.info(f"Config updated: {changes}")

    def _set_fast_price_events(
        self, block: BlockInfo, sender: str, msg: SetFastPriceEvents
    ) -> Response:
        self.roles.require("gov", sender)
        fast_price_events = normalize_address(msg.fast_price_events)
        self._update_config(fast_price_events=fast_price_events)
        return (
            Response()
            .add_attribute("method", "set_fast_price_events")
            .add_attribute("fast_price_events", fast_price_events)
        )

    def _set_vault_price_feed(
        self, block: BlockInfo, sender: str, msg: SetVaultPriceFeed
    ) -> Response:
        self.roles.require("gov", sender)
        vault_price_feed = normalize_address(msg.vault_price_feed)
        VAULT_PRICE_FEED.save(self.store, vault_price_feed)
        logger.info(f"Vault price feed set to {vault_price_feed}")
        return (
            Response()
            .add_attribute("method", "set_vault_price_feed")
            .add_attribute("vault_price_feed", vault_price_feed)
        )

    def _set_max_time_deviation(
        self, block: BlockInfo, sender: str, msg: SetMaxTimeDeviation
    ) -> Response:
        self.roles.require("gov", sender)
        MAX_TIME_DEVIATION.save(
            self.store,
            require_uint(msg.max_time_deviation, "max_time_deviation", MAX_UINT64),
        )
        logger.info(f"Max time deviation set to {msg.max_time_deviation}s")
        return (
            Response()
            .add_attribute("method", "set_max_time_deviation")
            .add_attribute("max_time_deviation", msg.max_time_deviation)
        )

    def _set_price_duration(
        self, block: BlockInfo, sender: str, msg: SetPriceDuration
    ) -> Response:
        self.roles.require("gov", sender)
        self._update_config(price_duration=_require_price_duration(msg.price_duration))
        return (
            Response()
            .add_attribute("method", "set_price_duration")
            .add_attribute("price_duration", msg.price_duration)
        )

    def _set_max_price_update_delay(
        self, block: BlockInfo, sender: str, msg: SetMaxPriceUpdateDelay
    ) -> Response:
        self.roles.require("gov", sender)
        require_uint(msg.max_price_update_delay, "max_price_update_delay", MAX_UINT64)
        self._update_config(max_price_update_delay=msg.max_price_update_delay)
        return (
            Response()
            .add_attribute("method", "set_max_price_update_delay")
            .add_attribute("max_price_update_delay", msg.max_price_update_delay)
        )

    def _set_spread_basis_points_if_inactive(
        self, block: BlockInfo, sender: str, msg: SetSpreadBasisPointsIfInactive
    ) -> Response:
        self.roles.require("gov", sender)
        value = _require_basis_points(
            msg.spread_basis_points_if_inactive, "spread_basis_points_if_inactive"
        )
        spread = SPREAD_BASIS_POINTS.load(self.store)
        spread.spread_basis_points_if_inactive = value
        SPREAD_BASIS_POINTS.save(self.store, spread)
        logger.info(f"Inactive spread set to {value}bps")
        return (
            Response()
            .add_attribute("method", "set_spread_basis_points_if_inactive")
            .add_attribute("spread_basis_points_if_inactive", value)
        )

    def _set_spread_basis_points_if_chain_error(
        self, block: BlockInfo, sender: str, msg: SetSpreadBasisPointsIfChainError
    ) -> Response:
        self.roles.require("gov", sender)
        value = _require_basis_points(
            msg.spread_basis_points_if_chain_error, "spread_basis_points_if_chain_error"
        )
        spread = SPREAD_BASIS_POINTS.load(self.store)
        spread.spread_basis_points_if_chain_error = value
        SPREAD_BASIS_POINTS.save(self.store, spread)
        logger.info(f"Chain-error spread set to {value}bps")
        return (
            Response()
            .add_attribute("method", "set_spread_basis_points_if_chain_error")
            .add_attribute("spread_basis_points_if_chain_error", value)
        )

    def _set_min_block_interval(
        self, block: BlockInfo, sender: str, msg: SetMinBlockInterval
    ) -> Response:
        self.roles.require("gov", sender)
        require_uint(msg.min_block_interval, "min_block_interval", MAX_UINT64)
        self._update_config(min_block_interval=msg.min_block_interval)
        return (
            Response()
            .add_attribute("method", "set_min_block_interval")
            .add_attribute("min_block_interval", msg.min_block_interval)
        )

    def _set_is_spread_enabled(
        self, block: BlockInfo, sender: str, msg: SetIsSpreadEnabled
    ) -> Response:
        self.roles.require("gov", sender)
        SPREAD_ENABLED.save(self.store, msg.spread_enabled)
        logger.info(f"Spread enabled={msg.spread_enabled}")
        return (
            Response()
            .add_attribute("method", "set_is_spread_enabled")
            .add_attribute("spread_enabled", msg.spread_enabled)
        )

    def _set_last_updated_at(
        self, block: BlockInfo, sender: str, msg: SetLastUpdatedAt
    ) -> Response:
        self.roles.require("gov", sender)
        require_uint(msg.last_updated_at, "last_updated_at", MAX_UINT64)
        last_updated = LAST_UPDATED.load(self.store)
        last_updated.last_updated_at = msg.last_updated_at
        LAST_UPDATED.save(self.store, last_updated)
        logger.info(f"Last updated at overridden to {msg.last_updated_at}")
        return (
            Response()
            .add_attribute("method", "set_last_updated_at")
            .add_attribute("last_updated_at", msg.last_updated_at)
        )

    # ------------------------------------------------------------------
    # Token manager
    # ------------------------------------------------------------------

    def _set_token_manager(
        self, block: BlockInfo, sender: str, msg: SetTokenManager
    ) -> Response:
        self.roles.require("token_manager", sender)
        token_manager = normalize_address(msg.token_manager)
        TOKEN_MANAGER.save(self.store, token_manager)
        logger.info(f"Token manager handed over from {sender} to {token_manager}")
        return (
            Response()
            .add_attribute("method", "set_token_manager")
            .add_attribute("token_manager", token_manager)
        )

    def _set_max_deviation_basis_points(
        self, block: BlockInfo, sender: str, msg: SetMaxDeviationBasisPoints
    ) -> Response:
        self.roles.require("token_manager", sender)
        value = _require_basis_points(
            msg.max_deviation_basis_points, "max_deviation_basis_points"
        )
        self._update_config(max_deviation_basis_points=value)
        return (
            Response()
            .add_attribute("method", "set_max_deviation_basis_points")
            .add_attribute("max_deviation_basis_points", value)
        )

    def _set_max_cumulative_delta_diffs(
        self, block: BlockInfo, sender: str, msg: SetMaxCumulativeDeltaDiffs
    ) -> Response:
        self.roles.require("token_manager", sender)
        _require_lengths(len(msg.tokens), len(msg.max_cumulative_delta_diffs))
        tokens = normalize_addresses(msg.tokens)
        for token, diff in zip(tokens, msg.max_cumulative_delta_diffs):
            MAX_CUMULATIVE_DELTA_DIFFS.save(
                self.store, token, require_uint(diff, "max_cumulative_delta_diff")
            )
        logger.info(f"Max cumulative delta diffs updated for {len(tokens)} tokens")
        return (
            Response()
            .add_attribute("method", "set_max_cumulative_delta_diffs")
            .add_attribute("num_tokens_updated", len(tokens))
        )

    def _set_price_data_interval(
        self, block: BlockInfo, sender: str, msg: SetPriceDataInterval
    ) -> Response:
        self.roles.require("token_manager", sender)
        PRICE_DATA_INTERVAL.save(
            self.store, require_uint(msg.price_data_interval, "price_data_interval")
        )
        logger.info(f"Price data interval set to {msg.price_data_interval}s")
        return (
            Response()
            .add_attribute("method", "set_price_data_interval")
            .add_attribute("price_data_interval", msg.price_data_interval)
        )

    def _set_min_authorizations(
        self, block: BlockInfo, sender: str, msg: SetMinAuthorizations
    ) -> Response:
        self.roles.require("token_manager", sender)
        MIN_AUTHORIZATIONS.save(
            self.store, require_uint(msg.min_authorizations, "min_authorizations")
        )
        logger.info(f"Min authorizations set to {msg.min_authorizations}")
        return (
            Response()
            .add_attribute("method", "set_min_authorizations")
            .add_attribute("min_authorizations", msg.min_authorizations)
        )

    # ------------------------------------------------------------------
    # Price ingestion
    # ------------------------------------------------------------------

    def _set_tokens(self, block: BlockInfo, sender: str, msg: SetTokens) -> Response:
        self.roles.require("updater", sender)
        _require_lengths(len(msg.tokens), len(msg.token_precision))
        tokens = normalize_addresses(msg.tokens)
        token_data = []
        for token, precision in zip(tokens, msg.token_precision):
            if require_uint(precision, "token_precision") == 0:
                raise InvalidTokenPrecisionError(token)
            token_data.append(TokenData(token=token, token_precision=precision))
        TOKEN_DATA.save(self.store, token_data)
        logger.info(f"Token registry replaced with {len(token_data)} tokens")
        return (
            Response()
            .add_attribute("method", "set_tokens")
            .add_attribute("num_tokens", len(token_data))
        )

    def _ingest(
        self,
        block: BlockInfo,
        timestamp: int,
        prices: Iterable[tuple[str, int]],
        response: Response,
    ) -> Response:
        """Gate an update and store its prices if admitted.

        ``prices`` is consumed only after admission, so a lazy decoder does no
        work for stale updates.
        """
        require_uint(timestamp, "timestamp", MAX_UINT64)
        if self.gate.admit(block, timestamp) is Admission.STALE:
            return response.add_attribute("stale", True)

        vault_price_feed = VAULT_PRICE_FEED.load(self.store)
        fast_price_events = CONFIG.load(self.store).fast_price_events

        count = 0
        for token, price in prices:
            ref_price = self.reference_prices.get_latest_primary_price(
                vault_price_feed, token
            )
            update = self.tracker.ingest(token, price, ref_price, block.time)
            if fast_price_events:
                response.add_message(
                    OutboundMessage(
                        contract=fast_price_events,
                        action="price_update",
                        payload={"token": update.token, "price": str(update.price)},
                    )
                )
            count += 1

        logger.debug(f"Ingested {count} prices at {timestamp}")
        return response.add_attribute("num_prices", count)

    def _set_prices(self, block: BlockInfo, sender: str, msg: SetPrices) -> Response:
        self.roles.require("updater", sender)
        _require_lengths(len(msg.tokens), len(msg.prices))
        tokens = normalize_addresses(msg.tokens)
        prices = [require_uint(price, "price") for price in msg.prices]
        return self._ingest(
            block,
            msg.timestamp,
            zip(tokens, prices),
            Response().add_attribute("method", "set_prices"),
        )

    def _decode_words(self, words: list[int]) -> Iterable[tuple[str, int]]:
        return CompactPriceDecoder(TOKEN_DATA.load(self.store)).iter_prices(words)

    def _set_compacted_prices(
        self, block: BlockInfo, sender: str, msg: SetCompactedPrices
    ) -> Response:
        words = [to_price_word(word) for word in msg.price_bit_array]
        return self._ingest(
            block,
            msg.timestamp,
            self._decode_words(words),
            Response().add_attribute("method", "set_compacted_prices"),
        )

    def _set_prices_with_bits(
        self, block: BlockInfo, sender: str, msg: SetPricesWithBits
    ) -> Response:
        word = to_price_word(msg.price_bits)
        return self._ingest(
            block,
            msg.timestamp,
            self._decode_words([word]),
            Response().add_attribute("method", "set_prices_with_bits"),
        )

    def _set_prices_with_bits_and_execute(
        self, block: BlockInfo, sender: str, msg: SetPricesWithBitsAndExecute
    ) -> Response:
        self.roles.require("updater", sender)
        word = to_price_word(msg.price_bits)
        router = normalize_address(msg.position_router)
        fee_receiver = (
            normalize_address(msg.execution_fee_receiver)
            if msg.execution_fee_receiver
            else sender
        )
        for name in (
            "end_index_for_increase_positions",
            "end_index_for_decrease_positions",
            "max_increase_positions",
            "max_decrease_positions",
        ):
            require_uint(getattr(msg, name), name)

        response = self._ingest(
            block,
            msg.timestamp,
            self._decode_words([word]),
            Response().add_attribute("method", "set_prices_with_bits_and_execute"),
        )

        state = self.position_router.load_state(router)
        end_index_for_increase = min(
            msg.end_index_for_increase_positions,
            checked_add(
                state.increase_position_request_keys_start, msg.max_increase_positions
            ),
        )
        end_index_for_decrease = min(
            msg.end_index_for_decrease_positions,
            checked_add(
                state.decrease_position_request_keys_start, msg.max_decrease_positions
            ),
        )

        logger.info(
            f"Requesting position execution on {router}: "
            f"increase up to {end_index_for_increase}, "
            f"decrease up to {end_index_for_decrease}"
        )
        return (
            response.add_attribute("end_index_for_increase_positions", end_index_for_increase)
            .add_attribute("end_index_for_decrease_positions", end_index_for_decrease)
            .add_message(
                OutboundMessage(
                    contract=router,
                    action="execute_increase_positions",
                    payload={
                        "end_index": str(end_index_for_increase),
                        "execution_fee_receiver": fee_receiver,
                    },
                )
            )
            .add_message(
                OutboundMessage(
                    contract=router,
                    action="execute_decrease_positions",
                    payload={
                        "end_index": str(end_index_for_decrease),
                        "execution_fee_receiver": fee_receiver,
                    },
                )
            )
        )

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def _disable_fast_price(
        self, block: BlockInfo, sender: str, msg: DisableFastPrice
    ) -> Response:
        self.roles.require("signer", sender)
        count = self.voting.vote_disable(sender)
        return (
            Response()
            .add_attribute("method", "disable_fast_price")
            .add_attribute("sender", sender)
            .add_attribute("vote_count", count)
        )

    def _enable_fast_price(
        self, block: BlockInfo, sender: str, msg: EnableFastPrice
    ) -> Response:
        self.roles.require("signer", sender)
        count = self.voting.vote_enable(sender)
        return (
            Response()
            .add_attribute("method", "enable_fast_price")
            .add_attribute("sender", sender)
            .add_attribute("vote_count", count)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _query_price(self, msg: GetPrice) -> int:
        return self.resolver.get_price(
            normalize_address(msg.token),
            require_uint(msg.ref_price, "ref_price"),
            require_uint(msg.block_timestamp, "block_timestamp", MAX_UINT64),
            msg.maximise,
        )
