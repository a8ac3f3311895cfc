"""EventSink: Delivery of outbound messages produced by feed operations.

Operations never talk to other services directly. They return
OutboundMessages, which the feed hands to an EventSink after the operation
committed:

- MemoryEventSink keeps them in a list (tests, local runs)
- HttpEventSink POSTs them as JSON to a receiver, retrying with backoff
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

from .errors import EventDeliveryError

logger = logging.getLogger(__name__)

# Retry configuration for HTTP delivery
MAX_RETRIES = 5
BACKOFF_BASE = 0.5
BACKOFF_MAX = 5.0


@dataclass
class OutboundMessage:
    """A message addressed to another service.

    :ivar contract: Address of the receiving service.
    :ivar action: Message kind (e.g. "price_update").
    :ivar payload: JSON-serializable message body.
    """

    contract: str
    action: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EventSink(ABC):
    """Abstract receiver of outbound messages."""

    @abstractmethod
    def deliver(self, message: OutboundMessage) -> None:
        """Deliver one message.

        :param message: Message to deliver.
        :raises EventDeliveryError: If delivery failed for good.
        """
        pass

    def deliver_all(self, messages: list[OutboundMessage]) -> None:
        for message in messages:
            self.deliver(message)


class MemoryEventSink(EventSink):
    """Sink collecting messages in memory.

    :ivar messages: Delivered messages, oldest first.
    """

    def __init__(self) -> None:
        self.messages: list[OutboundMessage] = []

    def deliver(self, message: OutboundMessage) -> None:
        self.messages.append(message)

    def by_action(self, action: str) -> list[OutboundMessage]:
        return [m for m in self.messages if m.action == action]


class HttpEventSink(EventSink):
    """Sink POSTing each message to an HTTP endpoint.

    :ivar url: Receiver endpoint.
    :ivar max_retries: Attempts per message before giving up.
    """

    def __init__(
        self,
        url: str,
        *,
        transport: httpx.BaseTransport | None = None,
        max_retries: int = MAX_RETRIES,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the HTTP sink.

        :param url: Receiver endpoint.
        :param transport: Optional httpx transport (e.g. a MockTransport).
        :param max_retries: Attempts per message (default: 5).
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.url = url
        self.transport = transport
        self.max_retries = max(1, max_retries)
        self.timeout = timeout

    def deliver(self, message: OutboundMessage) -> None:
        payload = message.to_dict()

        with httpx.Client(transport=self.transport, timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = client.post(self.url, json=payload)
                    if response.is_success:
                        logger.debug(
                            f"Delivered {message.action} to {message.contract}"
                        )
                        return
                    logger.warning(
                        "POST %s failed: %s %s (attempt %d/%d)",
                        self.url,
                        response.status_code,
                        response.reason_phrase,
                        attempt + 1,
                        self.max_retries,
                    )
                except httpx.RequestError as exc:
                    logger.warning(
                        "POST %s error: %s (attempt %d/%d)",
                        self.url,
                        exc,
                        attempt + 1,
                        self.max_retries,
                    )
                if attempt + 1 < self.max_retries:
                    delay = min(BACKOFF_BASE * (1.5 ** attempt), BACKOFF_MAX)
                    time.sleep(delay)

        raise EventDeliveryError(
            f"Delivery of {message.action} to {self.url} failed after "
            f"{self.max_retries} attempts"
        )
