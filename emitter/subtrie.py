"""A trie of subscriptions supporting wildcards and shared groups."""

from __future__ import annotations

import dataclasses
import threading
import time
from collections.abc import Callable, Sequence

from emitter.ssid import SHARE, WILDCARD, Ssid, Subscriber, Subscribers, Subscription

_MASK32 = 0xFFFFFFFF

Filter = Callable[[Subscriber], bool]


@dataclasses.dataclass(eq=False)
class _Node:
    word: int = 0
    parent: _Node | None = None
    subs: Subscribers = dataclasses.field(default_factory=Subscribers)
    children: dict[int, _Node] = dataclasses.field(default_factory=dict)

    def empty(self) -> bool:
        return len(self.subs) == 0 and not self.children

    def orphan(self) -> None:
        node = self
        while node.parent is not None:
            parent = node.parent
            parent.children.pop(node.word, None)
            if not parent.empty():
                return
            node = parent


class Trie:
    """A thread-safe collection of subscriptions with lookup by SSID."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._root = _Node()
        self._count = 0
        seed = time.time_ns()
        self._rand = ((seed >> 32) ^ seed) & _MASK32 or 1

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def subscribe(self, ssid: Sequence[int], subscriber: Subscriber) -> Subscription:
        """Add a subscriber for the SSID and return the subscription."""
        with self._lock:
            node = self._root
            for word in ssid:
                child = node.children.get(word)
                if child is None:
                    child = _Node(word=word, parent=node)
                    node.children[word] = child
                node = child
            if node.subs.add_unique(subscriber):
                self._count += 1
        return Subscription(Ssid(ssid), subscriber)

    def unsubscribe(self, ssid: Sequence[int], subscriber: Subscriber) -> None:
        """Remove a subscriber from the SSID, pruning empty branches."""
        with self._lock:
            node = self._root
            for word in ssid:
                node = node.children.get(word)
                if node is None:
                    return
            if node.subs.remove(subscriber):
                self._count -= 1
            if node.empty():
                node.orphan()

    def lookup(self, ssid: Sequence[int], filter: Filter | None = None) -> Subscribers:
        """Return the subscribers matching the SSID, one per share group."""
        subs = Subscribers()
        with self._lock:
            self._lookup(ssid, subs, self._root, filter)
            contract_node = self._root.children.get(ssid[0])
            if contract_node is not None:
                share_node = contract_node.children.get(SHARE)
                if share_node is not None:
                    self._random_by_group(ssid[1:], subs, share_node, filter)
        return subs

    def _lookup(
        self, query: Sequence[int], subs: Subscribers, node: _Node, filter: Filter | None
    ) -> None:
        subs.add_range(node.subs, filter)
        if not query:
            return
        exact = node.children.get(query[0])
        if exact is not None:
            self._lookup(query[1:], subs, exact, filter)
        wildcard = node.children.get(WILDCARD)
        if wildcard is not None:
            self._lookup(query[1:], subs, wildcard, filter)

    def _next_random(self) -> int:
        x = self._rand
        x ^= (x << 13) & _MASK32
        x ^= x >> 17
        x ^= (x << 5) & _MASK32
        self._rand = x
        return x

    def _random_by_group(
        self, query: Sequence[int], subs: Subscribers, share_node: _Node, filter: Filter | None
    ) -> None:
        group = Subscribers()
        for node in share_node.children.values():
            group.reset()
            self._lookup(query, group, node, filter)
            if len(group) == 0:
                continue
            subs.add_unique(group.random(self._next_random()))