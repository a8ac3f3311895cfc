"""Store: Key-addressed persistent state with atomic transactions.

The feed never keeps state in module globals. Every component receives a
KeyValueStore and reads/writes typed records through Item (singleton) and Map
(per-key) accessors. Values are CBOR-encoded, so any store that can hold bytes
can back the feed.

A transaction snapshots the store and restores it if the operation raises,
which gives every operation all-or-nothing semantics.

.. code-block:: python

    >>> store = MemoryStore()
    >>> counter = Item("count", default=0)
    >>> with store.transaction():
    ...     counter.save(store, 1)
    >>> counter.load(store)
    1
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

import cbor2

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(ABC):
    """Abstract byte-oriented key/value store."""

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under ``key`` or None."""
        pass

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Store ``value`` under ``key``."""
        pass

    @abstractmethod
    def snapshot(self) -> Any:
        """Capture the full store contents for a later restore()."""
        pass

    @abstractmethod
    def restore(self, snapshot: Any) -> None:
        """Replace the store contents with a snapshot."""
        pass

    def commit(self) -> None:
        """Persist a finished transaction. No-op for volatile stores."""

    @contextmanager
    def transaction(self) -> Iterator[KeyValueStore]:
        """Run a block of reads and writes atomically.

        :raises Exception: Whatever the block raised, after rolling back.
        """
        snapshot = self.snapshot()
        try:
            yield self
        except Exception:
            logger.debug("Rolling back transaction")
            self.restore(snapshot)
            raise
        self.commit()


class MemoryStore(KeyValueStore):
    """In-memory store backed by a dict of bytes."""

    def __init__(self, data: dict[bytes, bytes] | None = None) -> None:
        self._data: dict[bytes, bytes] = dict(data or {})

    def get(self, key: bytes) -> bytes | None:
        return self._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._data[key] = value

    def snapshot(self) -> dict[bytes, bytes]:
        # Values are immutable bytes, so a shallow copy is a full snapshot.
        return dict(self._data)

    def restore(self, snapshot: dict[bytes, bytes]) -> None:
        self._data = dict(snapshot)

    def __len__(self) -> int:
        return len(self._data)


class FileStore(MemoryStore):
    """Store persisted as a single CBOR file, rewritten on every commit.

    :ivar path: Location of the state file.
    """

    def __init__(self, path: str | Path) -> None:
        """Load existing state from ``path`` if the file exists.

        :param path: State file location.
        """
        self.path = Path(path)
        data: dict[bytes, bytes] = {}
        if self.path.exists():
            with open(self.path, "rb") as file:
                data = cbor2.load(file)
            logger.debug(f"Loaded {len(data)} keys from {self.path}")
        super().__init__(data)

    def commit(self) -> None:
        """Atomically replace the state file with the current contents."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-")
        try:
            with os.fdopen(fd, "wb") as file:
                cbor2.dump(self._data, file)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise


class Codec(Generic[T]):
    """Converts between Python values and CBOR-serializable data."""

    def to_data(self, value: T) -> Any:
        return value

    def from_data(self, data: Any) -> T:
        return data


class RecordCodec(Codec[T]):
    """Codec for dataclass records stored as CBOR maps."""

    def __init__(self, record_type: type[T]) -> None:
        self.record_type = record_type

    def to_data(self, value: T) -> Any:
        if not is_dataclass(value):
            raise TypeError(f"Expected {self.record_type.__name__}, got {value!r}")
        return asdict(value)

    def from_data(self, data: Any) -> T:
        return self.record_type(**data)


class RecordListCodec(Codec[list[T]]):
    """Codec for ordered lists of dataclass records."""

    def __init__(self, record_type: type[T]) -> None:
        self.item_codec = RecordCodec(record_type)

    def to_data(self, value: list[T]) -> Any:
        return [self.item_codec.to_data(v) for v in value]

    def from_data(self, data: Any) -> list[T]:
        return [self.item_codec.from_data(d) for d in data]


class Item(Generic[T]):
    """A singleton value stored under a fixed namespace.

    :ivar namespace: Storage key.
    :ivar default: Value returned when nothing is stored. Must be immutable
        or a zero-argument factory.
    """

    def __init__(
        self,
        namespace: str,
        *,
        default: Any = None,
        codec: Codec[T] | None = None,
    ) -> None:
        self.namespace = namespace
        self.key = namespace.encode()
        self.default = default
        self.codec: Codec[T] = codec or Codec()

    def _default(self) -> T:
        return self.default() if callable(self.default) else self.default

    def may_load(self, store: KeyValueStore) -> T | None:
        """Load the value, or None if it was never saved."""
        raw = store.get(self.key)
        if raw is None:
            return None
        return self.codec.from_data(cbor2.loads(raw))

    def load(self, store: KeyValueStore) -> T:
        """Load the value, falling back to the default."""
        value = self.may_load(store)
        return self._default() if value is None else value

    def save(self, store: KeyValueStore, value: T) -> None:
        store.set(self.key, cbor2.dumps(self.codec.to_data(value)))


class Map(Generic[T]):
    """Per-key values stored under ``namespace/key``.

    :ivar namespace: Key prefix.
    :ivar default: Value returned for keys that were never saved.
    """

    def __init__(
        self,
        namespace: str,
        *,
        default: Any = None,
        codec: Codec[T] | None = None,
    ) -> None:
        self.namespace = namespace
        self.default = default
        self.codec: Codec[T] = codec or Codec()

    def _key(self, key: str) -> bytes:
        return f"{self.namespace}/{key}".encode()

    def _default(self) -> T:
        return self.default() if callable(self.default) else self.default

    def may_load(self, store: KeyValueStore, key: str) -> T | None:
        raw = store.get(self._key(key))
        if raw is None:
            return None
        return self.codec.from_data(cbor2.loads(raw))

    def load(self, store: KeyValueStore, key: str) -> T:
        value = self.may_load(store, key)
        return self._default() if value is None else value

    def save(self, store: KeyValueStore, key: str, value: T) -> None:
        store.set(self._key(key), cbor2.dumps(self.codec.to_data(value)))

    def has(self, store: KeyValueStore, key: str) -> bool:
        return store.get(self._key(key)) is not None
