"""PriceDecoder: Unpacks compact price words into per-token prices.

A price word is a 256-bit unsigned integer holding four 64-bit prices,
little-endian: slot ``j`` occupies bits ``64*j`` to ``64*j + 63``. Slots map to
the token registry by absolute position, so word ``w`` slot ``j`` belongs to
registry entry ``4*w + j``. Decoding stops silently at the end of the registry,
which means a short registry truncates excess packed slots.

Raw slot values are rescaled to the shared 30-decimal precision:

    adjusted = raw * PRICE_PRECISION / token_precision

.. code-block:: python

    >>> word = encode_price_bits([1, 2, 3, 4])
    >>> decode_price_bits(word)
    [1, 2, 3, 4]
    >>> tokens = [TokenData("a", 1), TokenData("b", 10**8)]
    >>> CompactPriceDecoder(tokens).decode([word])
    [('a', 1000000000000000000000000000000), ('b', 20000000000000000000000)]
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from web3 import Web3

from .FeedState import TokenData
from .fixed_point import MAX_UINT64, MAX_UINT256, PRICE_PRECISION, multiply_ratio

PRICES_PER_WORD = 4
BITS_PER_PRICE = 64
WORD_BYTES = 32

PriceWord = int | bytes | str


def to_price_word(word: PriceWord) -> int:
    """Convert a packed word to an int.

    Accepts an int, a 32-byte little-endian byte string, a "0x"-prefixed hex
    string or a decimal string (the JSON form of 256-bit values).

    :param word: Packed word in any accepted form.
    :returns: Word as an unsigned integer.
    :raises ValueError: If the word is malformed or exceeds 256 bits.
    """
    if isinstance(word, bool):
        raise ValueError(f"Invalid price word: {word!r}")
    if isinstance(word, int):
        value = word
    elif isinstance(word, (bytes, bytearray)):
        if len(word) != WORD_BYTES:
            raise ValueError(
                f"Price word must be {WORD_BYTES} bytes, got {len(word)}"
            )
        value = int.from_bytes(word, "little")
    elif isinstance(word, str) and word.startswith(("0x", "0X")):
        try:
            value = Web3.to_int(hexstr=word)
        except ValueError as e:
            raise ValueError(f"Invalid price word hex: {word!r}") from e
    elif isinstance(word, str):
        if not word.isdigit():
            raise ValueError(f"Invalid price word: {word!r}")
        value = int(word)
    else:
        raise ValueError(f"Invalid price word type: {type(word).__name__}")

    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Price word out of range: {value}")
    return value


def decode_price_bits(word: PriceWord) -> list[int]:
    """Split a packed word into its four raw 64-bit prices.

    :param word: Packed word.
    :returns: Raw prices in slot order.
    """
    value = to_price_word(word)
    return [
        (value >> (BITS_PER_PRICE * j)) & MAX_UINT64
        for j in range(PRICES_PER_WORD)
    ]


def encode_price_bits(prices: list[int]) -> int:
    """Pack up to four raw prices into a word.

    :param prices: Raw prices in slot order; missing slots are zero.
    :returns: Packed word.
    :raises ValueError: On more than four prices or a price outside uint64.
    """
    if len(prices) > PRICES_PER_WORD:
        raise ValueError(
            f"At most {PRICES_PER_WORD} prices fit in a word, got {len(prices)}"
        )
    word = 0
    for j, price in enumerate(prices):
        if price < 0 or price > MAX_UINT64:
            raise ValueError(f"Price {price} does not fit in 64 bits")
        word |= price << (BITS_PER_PRICE * j)
    return word


def encode_price_bit_array(prices: list[int]) -> list[int]:
    """Pack any number of raw prices into consecutive words."""
    return [
        encode_price_bits(prices[i:i + PRICES_PER_WORD])
        for i in range(0, len(prices), PRICES_PER_WORD)
    ]


class CompactPriceDecoder:
    """Maps packed words onto a token registry.

    :ivar tokens: Ordered token registry.
    """

    def __init__(self, tokens: list[TokenData]) -> None:
        self.tokens = tokens

    def iter_prices(self, words: Iterable[PriceWord]) -> Iterator[tuple[str, int]]:
        """Yield ``(token, adjusted_price)`` for every slot covered by the registry.

        :param words: Packed words in order.
        :raises ComputationError: If a token precision is zero.
        """
        for w, word in enumerate(words):
            for j, raw_price in enumerate(decode_price_bits(word)):
                index = w * PRICES_PER_WORD + j
                if index >= len(self.tokens):
                    return
                token = self.tokens[index]
                yield token.token, multiply_ratio(
                    raw_price, PRICE_PRECISION, token.token_precision
                )

    def decode(self, words: Iterable[PriceWord]) -> list[tuple[str, int]]:
        """Decode all words eagerly. See iter_prices()."""
        return list(self.iter_prices(words))
