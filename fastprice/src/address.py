"""Account and token address normalization.

Addresses are opaque identities to the feed, but the same account must always
map to the same storage key. Two encodings are accepted:

- EVM hex addresses, normalized to their EIP-55 checksum form
- bech32 account addresses (e.g. ``wasm1...``), normalized to lowercase

.. code-block:: python

    >>> normalize_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")
    '0x5FbDB2315678afecb367f032d93F642f64180aa3'
"""

from __future__ import annotations

import bech32
from web3 import Web3


def bech32_to_bytes(address: str) -> bytes:
    """Decode a bech32 address to its raw payload bytes.

    :param address: Bech32-encoded address (e.g., "wasm1qr...").
    :returns: Raw address bytes.
    :raises ValueError: If the address is not valid bech32.
    """
    hrp, data = bech32.bech32_decode(address)
    if hrp is None or data is None:
        raise ValueError(f"Invalid bech32 address: {address}")

    # Convert 5-bit groups to bytes
    raw = bech32.convertbits(data, 5, 8, False)
    if raw is None:
        raise ValueError(f"Failed to convert address to bytes: {address}")

    return bytes(raw)


def normalize_address(address: str) -> str:
    """Return the canonical form of an account or token address.

    :param address: Hex or bech32 address.
    :returns: Checksummed hex address or lowercase bech32 address.
    :raises ValueError: If the address is in neither format.
    """
    if not isinstance(address, str) or not address:
        raise ValueError(f"Invalid address: {address!r}")

    address = address.strip()
    if Web3.is_address(address):
        return Web3.to_checksum_address(address)

    lowered = address.lower()
    bech32_to_bytes(lowered)
    return lowered


def normalize_addresses(addresses: list[str]) -> list[str]:
    """Normalize a list of addresses, preserving order."""
    return [normalize_address(a) for a in addresses]
