"""Error taxonomy for the fast price feed.

Every failure surfaced by an operation derives from FastPriceFeedError, so
callers can catch the whole family at the operation boundary. Errors are
grouped by the kind of rejection:

- Authorization: ForbiddenError
- Validation: InvalidLengthError, InvalidPriceDurationError,
  InvalidBasisPointsError, InvalidTokenPrecisionError,
  TimestampBelowRangeError, TimestampExceedsRangeError, MinBlockIntervalError
- State conflict: AlreadyInitializedError, AlreadyVotedError,
  AlreadyEnabledError
- Arithmetic: ComputationError
- Delivery: EventDeliveryError
"""


class FastPriceFeedError(Exception):
    """Base exception for fast price feed errors."""

    pass


class ForbiddenError(FastPriceFeedError):
    """Raised when the sender does not hold the role an operation requires."""

    def __init__(self, sender: str = "", role: str = ""):
        """Initialize the authorization error.

        :param sender: Address that attempted the operation.
        :param role: Role the operation requires.
        """
        self.sender = sender
        self.role = role
        detail = f" ({sender} is not {role})" if sender and role else ""
        super().__init__(f"FastPriceFeed: forbidden{detail}")


class ValidationError(FastPriceFeedError):
    """Raised when an operation's input is rejected before any state change."""

    pass


class InvalidLengthError(ValidationError):
    """Raised when paired input arrays differ in length."""

    def __init__(self, expected: int, actual: int):
        """Initialize the length error.

        :param expected: Length of the first array.
        :param actual: Length of the array that should match it.
        """
        self.expected = expected
        self.actual = actual
        super().__init__(f"FastPriceFeed: invalid lengths ({expected} != {actual})")


class InvalidPriceDurationError(ValidationError):
    """Raised when a price duration is zero or not below the allowed maximum."""

    def __init__(self, price_duration: int):
        self.price_duration = price_duration
        super().__init__(f"FastPriceFeed: invalid priceDuration {price_duration}")


class InvalidBasisPointsError(ValidationError):
    """Raised when a basis-point setting is outside [0, 10000]."""

    def __init__(self, name: str, value: int):
        self.name = name
        self.value = value
        super().__init__(f"FastPriceFeed: invalid {name} {value}")


class InvalidTokenPrecisionError(ValidationError):
    """Raised when a token is registered with a zero precision."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"FastPriceFeed: invalid token precision 0 for {token}")


class TimestampBelowRangeError(ValidationError):
    """Raised when an update's timestamp is too far behind block time."""

    def __init__(self, timestamp: int, lower_bound: int):
        self.timestamp = timestamp
        self.lower_bound = lower_bound
        super().__init__(
            f"FastPriceFeed: timestamp below allowed range "
            f"({timestamp} < {lower_bound})"
        )


class TimestampExceedsRangeError(ValidationError):
    """Raised when an update's timestamp is too far ahead of block time."""

    def __init__(self, timestamp: int, upper_bound: int):
        self.timestamp = timestamp
        self.upper_bound = upper_bound
        super().__init__(
            f"FastPriceFeed: timestamp exceeds allowed range "
            f"({timestamp} > {upper_bound})"
        )


class MinBlockIntervalError(ValidationError):
    """Raised when too few blocks have passed since the last accepted update."""

    def __init__(self, blocks_passed: int, min_block_interval: int):
        self.blocks_passed = blocks_passed
        self.min_block_interval = min_block_interval
        super().__init__(
            f"FastPriceFeed: minBlockInterval not yet passed "
            f"({blocks_passed} < {min_block_interval})"
        )


class StateConflictError(FastPriceFeedError):
    """Raised when an operation conflicts with the current state."""

    pass


class AlreadyInitializedError(StateConflictError):
    """Raised when initialize runs a second time."""

    def __init__(self) -> None:
        super().__init__("FastPriceFeed: already initialized")


class AlreadyVotedError(StateConflictError):
    """Raised when a signer votes to disable twice without enabling."""

    def __init__(self, signer: str):
        self.signer = signer
        super().__init__(f"FastPriceFeed: already voted ({signer})")


class AlreadyEnabledError(StateConflictError):
    """Raised when a signer votes to enable without a standing disable vote."""

    def __init__(self, signer: str):
        self.signer = signer
        super().__init__(f"FastPriceFeed: already enabled ({signer})")


class ComputationError(FastPriceFeedError):
    """Raised on division by zero, overflow or underflow.

    The whole operation is aborted; nothing it wrote is kept.
    """

    pass


class EventDeliveryError(FastPriceFeedError):
    """Raised when an outbound message cannot be delivered.

    Delivery happens after the operation committed, so state is unaffected.
    """

    pass
