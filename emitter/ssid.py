"""Subscription identifiers, subscriber sets and subscription counters."""

from __future__ import annotations

import abc
import dataclasses
import enum
import itertools
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any

SYSTEM = 0
PRESENCE = 3869262148
QUERY = 3939663052
WILDCARD = 1815237614
SHARE = 1480642916


class Ssid(tuple):
    """A subscription ID: a contract followed by hashes of the channel parts."""

    def contract(self) -> int:
        """Return the contract part of the SSID."""
        return self[0]

    def hash_code(self) -> int:
        """Combine all parts of the SSID into a single 32-bit hash."""
        result = 0
        for part in self:
            result ^= part
        return result

    def encode(self) -> str:
        """Encode as hex, with wildcards written as eight dots."""
        return "".join("." * 8 if part == WILDCARD else f"{part:08x}" for part in self)


QUERY_SSID = Ssid((SYSTEM, QUERY))


def new_ssid(contract: int, query: Iterable[int]) -> Ssid:
    """Create an SSID from a contract and the hashed channel parts."""
    return Ssid((contract, *query))


def ssid_for_presence(original: Iterable[int]) -> Ssid:
    """Create the presence SSID for an existing SSID."""
    return Ssid((SYSTEM, PRESENCE, *original))


def ssid_for_share(original: Ssid) -> Ssid:
    """Create the shared-subscription SSID for an existing SSID."""
    return Ssid((original[0], SHARE, *original[1:]))


class SubscriberType(enum.IntEnum):
    """The kind of a subscriber."""

    DIRECT = 0
    REMOTE = 1
    OFFLINE = 2


class Subscriber(abc.ABC):
    """Something that can receive messages for a subscription."""

    @property
    @abc.abstractmethod
    def id(self) -> str:
        """The unique identifier of the subscriber."""

    @property
    @abc.abstractmethod
    def type(self) -> SubscriberType:
        """The kind of subscriber."""

    @abc.abstractmethod
    def send(self, message: Any) -> None:
        """Deliver a message to the subscriber."""


class Subscribers:
    """A set of subscribers, unique by their identifier."""

    def __init__(self, subscribers: Iterable[Subscriber] = ()) -> None:
        self._items: dict[str, Subscriber] = {}
        for subscriber in subscribers:
            self.add_unique(subscriber)

    def add_unique(self, value: Subscriber | None) -> bool:
        """Add a subscriber; return whether it was not already present."""
        if value is None or value.id in self._items:
            return False
        self._items[value.id] = value
        return True

    def add_range(
        self,
        other: Subscribers,
        filter: Callable[[Subscriber], bool] | None = None,
    ) -> None:
        """Add every subscriber of another set that passes the filter."""
        for key, value in other._items.items():
            if filter is None or filter(value):
                self._items[key] = value

    def remove(self, value: Subscriber | None) -> bool:
        """Remove a subscriber; return whether it was present."""
        if value is None:
            return False
        return self._items.pop(value.id, None) is not None

    def reset(self) -> None:
        """Remove every subscriber."""
        self._items.clear()

    def random(self, rnd: int) -> Subscriber | None:
        """Pick a subscriber using a 32-bit random number in [0, 2**32)."""
        index = ((rnd & 0xFFFFFFFF) * len(self._items)) >> 32
        return next(itertools.islice(self._items.values(), index, None), None)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, Subscriber) and value.id in self._items

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(list(self._items.values()))


@dataclasses.dataclass(frozen=True)
class Subscription:
    """A subscriber bound to a parsed channel."""

    ssid: Ssid
    subscriber: Subscriber


@dataclasses.dataclass
class Counter:
    """The number of subscriptions to a single channel."""

    ssid: Ssid
    channel: bytes
    count: int = 0


class Counters:
    """Thread-safe subscription counters keyed by SSID hash."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[int, Counter] = {}

    def increment(self, ssid: Ssid, channel: bytes) -> bool:
        """Increment the counter; return whether it is the first subscription."""
        with self._lock:
            key = Ssid(ssid).hash_code()
            counter = self._counters.get(key)
            if counter is None:
                counter = Counter(Ssid(ssid), channel)
                self._counters[key] = counter
            counter.count += 1
            return counter.count == 1

    def decrement(self, ssid: Ssid) -> bool:
        """Decrement the counter; return whether it was the last subscription."""
        with self._lock:
            key = Ssid(ssid).hash_code()
            counter = self._counters.get(key)
            if counter is None:
                return False
            counter.count -= 1
            if counter.count <= 0:
                del self._counters[key]
                return True
            return False

    def all(self) -> list[Counter]:
        """Return copies of all counters."""
        with self._lock:
            return [dataclasses.replace(counter) for counter in self._counters.values()]