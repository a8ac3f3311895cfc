#!/usr/bin/env python3
"""Fast Price Feed.

Runs one feed operation against a persisted state file and prints the result
as JSON. Each invocation is one message in one block: instantiate the feed,
execute a state change, or answer a query.

Configure via CLI args or env vars. See the epilog of --help for examples.
"""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict, is_dataclass
from typing import Any

from .src.address import normalize_address
from .src.Collaborators import StaticReferencePrices
from .src.errors import FastPriceFeedError
from .src.EventSink import EventSink, HttpEventSink, MemoryEventSink
from .src.FastPriceFeed import FastPriceFeed, Response
from .src.FreshnessGate import BlockInfo
from .src.messages import (
    EXECUTE_REGISTRY,
    QUERY_REGISTRY,
    parse_execute_msg,
    parse_instantiate_msg,
    parse_query_msg,
)
from .src.Store import FileStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_reference_prices(prices_str: str | None) -> dict[str, int]:
    """Parse comma-separated reference prices into a dictionary.

    Format: token1=price1,token2=price2
    Prices are integers on the 30-decimal scale.

    :param prices_str: Comma-separated reference price string.
    :returns: Dict mapping normalized token addresses to prices.
    :raises ValueError: On a malformed address or price.
    """
    if not prices_str:
        return {}

    prices = {}
    for item in prices_str.split(","):
        item = item.strip()
        if "=" in item:
            token, price = item.split("=", 1)
            prices[normalize_address(token.strip())] = int(price.strip())
    return prices


def load_message(raw: str) -> Any:
    """Decode a JSON message given inline or as "-" (read from stdin)."""
    if raw == "-":
        raw = sys.stdin.read()
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # Unit variants may be passed bare, e.g. disable_fast_price
        return raw.strip()


def to_jsonable(value: Any) -> Any:
    """Convert query results and responses into JSON-serializable data."""
    if isinstance(value, Response):
        return {
            "attributes": [list(a) for a in value.attributes],
            "messages": [m.to_dict() for m in value.messages],
        }
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Fast Price Feed CLI."""
    parser = argparse.ArgumentParser(
        description="Fast Price Feed: Dual-source price reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Execute messages:
  {', '.join(sorted(EXECUTE_REGISTRY))}

Query messages:
  {', '.join(sorted(QUERY_REGISTRY))}

Examples:
  # Deploy with a 5 minute price duration
  python -m fastprice.main --sender 0x... instantiate \\
      '{{"config": {{"price_duration": 300, "max_price_update_delay": 3600}}}}'

  # Push prices as an updater
  python -m fastprice.main --sender 0x... --block-height 12 execute \\
      '{{"set_prices": {{"tokens": ["0x..."], "prices": ["1000"], "timestamp": 1700000000}}}}'

  # Resolve the price of a token
  python -m fastprice.main query \\
      '{{"get_price": {{"token": "0x...", "block_timestamp": 1700000000, "ref_price": "1000", "maximise": true}}}}'

Environment variables (CLI args take precedence):
  STATE_FILE, SENDER, BLOCK_HEIGHT, BLOCK_TIME, EVENTS_URL, REFERENCE_PRICES
""",
    )

    parser.add_argument(
        "--state-file",
        dest="state_file",
        type=str,
        help="CBOR file holding the feed state (default: fastprice-state.cbor)",
        default=os.environ.get("STATE_FILE") or "fastprice-state.cbor",
    )

    parser.add_argument(
        "--sender",
        type=str,
        help="Address of the caller (required for instantiate and execute)",
        default=os.environ.get("SENDER"),
    )

    parser.add_argument(
        "--block-height",
        dest="block_height",
        type=int,
        help="Height of the executing block (default: 0)",
        default=int(os.environ.get("BLOCK_HEIGHT") or "0"),
    )

    parser.add_argument(
        "--block-time",
        dest="block_time",
        type=int,
        help="Timestamp of the executing block in seconds (default: now)",
        default=int(os.environ.get("BLOCK_TIME") or time.time()),
    )

    parser.add_argument(
        "--events-url",
        dest="events_url",
        type=str,
        help="HTTP endpoint receiving outbound messages (optional)",
        default=os.environ.get("EVENTS_URL"),
    )

    parser.add_argument(
        "--reference-prices",
        dest="reference_prices",
        type=str,
        help="Comma-separated reference prices (e.g., 0xabc...=1000,0xdef...=2000)",
        default=os.environ.get("REFERENCE_PRICES"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser.add_argument(
        "command",
        choices=["instantiate", "execute", "query"],
        help="Operation kind",
    )

    parser.add_argument(
        "message",
        type=str,
        help="JSON message, or - to read it from stdin",
    )

    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command != "query" and not args.sender:
        parser.error(f"--sender is required for {args.command}")

    if args.block_height < 0 or args.block_time < 0:
        parser.error("--block-height and --block-time must be non-negative")

    try:
        reference_prices = parse_reference_prices(args.reference_prices)
    except ValueError as e:
        parser.error(f"Invalid --reference-prices: {e}")

    event_sink: EventSink = (
        HttpEventSink(args.events_url) if args.events_url else MemoryEventSink()
    )
    feed = FastPriceFeed(
        FileStore(args.state_file),
        reference_prices=StaticReferencePrices(reference_prices),
        event_sink=event_sink,
    )
    block = BlockInfo(height=args.block_height, time=args.block_time)

    try:
        data = load_message(args.message)
        if args.command == "instantiate":
            result = feed.instantiate(args.sender, parse_instantiate_msg(data))
        elif args.command == "execute":
            result = feed.execute(block, args.sender, parse_execute_msg(data))
        else:
            result = feed.query(parse_query_msg(data))
    except (FastPriceFeedError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)

    print(json.dumps(to_jsonable(result), indent=2))


if __name__ == "__main__":
    main()
