import zlib

import pytest

from emitter.ssid import SHARE, WILDCARD, Subscriber, SubscriberType, Subscribers
from emitter.subtrie import Trie


class _TestSubscriber(Subscriber):
    def __init__(self, ident):
        self._ident = ident

    @property
    def id(self):
        return self._ident

    @property
    def type(self):
        return SubscriberType.DIRECT

    def send(self, message):
        return None


def _hash(part):
    if part == "$share":
        return SHARE
    if part == "+":
        return WILDCARD
    return zlib.crc32(part.encode())


def _sub(topic):
    return [_hash(p) for p in topic.split("/") if p]


def _populate(trie, values):
    for value in values:
        trie.subscribe(_sub(value), _TestSubscriber(value))


def _assert_equal(actual: Subscribers, *expected):
    assert len(actual) == len(expected)
    for sub in expected:
        assert sub in actual


def test_trie_match_single():
    trie = Trie()
    _populate(trie, ["a/"])
    assert len(trie.lookup(_sub("a/b/"))) == 1


@pytest.fixture
def populated():
    trie = Trie()
    _populate(
        trie,
        [
            "key/a/",
            "key/a/b/c/",
            "key/a/+/c/",
            "key/a/b/c/d/",
            "key/a/+/c/+/",
            "key/x/",
            "key/x/y/",
            "key/x/+/z",
            "key/$share/group1/a/+/c/",
            "key/$share/group1/a/b/c/",
            "key/$share/group2/a/b/c/",
            "key/$share/group2/a/b/",
            "key/$share/group3/y/",
            "key/$share/group3/y/",
        ],
    )
    return trie


def test_trie_count(populated):
    assert len(populated) == 13


@pytest.mark.parametrize(
    "topic, n",
    [
        ("key/a/", 1),
        ("key/a/1/", 1),
        ("key/a/2/", 1),
        ("key/a/1/2/", 1),
        ("key/a/1/2/3/", 1),
        ("key/a/x/y/c/", 1),
        ("key/a/x/c/", 3),
        ("key/a/b/c/", 5),
        ("key/a/b/c/d/", 7),
        ("key/a/b/c/e/", 6),
        ("key/x/y/c/e/", 2),
        ("key/y/", 1),
    ],
)
def test_trie_match(populated, topic, n):
    assert len(populated.lookup(_sub(topic))) == n


def test_trie_integration():
    trie = Trie()
    s0, s1, s2 = _TestSubscriber("s0"), _TestSubscriber("s1"), _TestSubscriber("s2")

    subs = [
        trie.subscribe([1, WILDCARD], s0),
        trie.subscribe([WILDCARD, 2], s0),
        trie.subscribe([1, 3], s0),
        trie.subscribe([WILDCARD, 3], s1),
        trie.subscribe([1, WILDCARD], s1),
        trie.subscribe([4], s1),
        trie.subscribe([WILDCARD], s2),
    ]
    trie.subscribe([WILDCARD], s2)

    _assert_equal(trie.lookup([1, 3]), s0, s1, s2)
    _assert_equal(trie.lookup([1]), s2)
    _assert_equal(trie.lookup([4, 5]), s1, s2)
    _assert_equal(trie.lookup([1, 5]), s0, s1, s2)
    _assert_equal(trie.lookup([4]), s1, s2)

    for sub in subs:
        trie.unsubscribe(sub.ssid, sub.subscriber)
    trie.unsubscribe(subs[-1].ssid, subs[-1].subscriber)

    _assert_equal(trie.lookup([1, 3]))
    _assert_equal(trie.lookup([1]))
    _assert_equal(trie.lookup([4, 5]))
    _assert_equal(trie.lookup([1, 5]))
    _assert_equal(trie.lookup([4]))
    assert len(trie) == 0


def test_subscribe_returns_subscription():
    trie = Trie()
    sub = _TestSubscriber("a")
    subscription = trie.subscribe([1, 2], sub)
    assert subscription.ssid == (1, 2)
    assert subscription.subscriber is sub


def test_duplicate_subscription_counted_once():
    trie = Trie()
    sub = _TestSubscriber("a")
    trie.subscribe([1, 2], sub)
    trie.subscribe([1, 2], sub)
    assert len(trie) == 1


def test_unsubscribe_unknown_is_ignored():
    trie = Trie()
    trie.subscribe([1, 2], _TestSubscriber("a"))
    trie.unsubscribe([1, 9], _TestSubscriber("a"))
    assert len(trie) == 1


def test_lookup_filter():
    trie = Trie()
    keep, drop = _TestSubscriber("keep"), _TestSubscriber("drop")
    trie.subscribe([1, 2], keep)
    trie.subscribe([1, 2], drop)
    result = trie.lookup([1, 2], lambda s: s.id == "keep")
    _assert_equal(result, keep)


def test_shared_group_picks_one_member_each_time():
    trie = Trie()
    first, second = _TestSubscriber("first"), _TestSubscriber("second")
    trie.subscribe([1, SHARE, 77, 2], first)
    trie.subscribe([1, SHARE, 77, 2], second)

    seen = set()
    for _ in range(200):
        result = trie.lookup([1, 2])
        assert len(result) == 1
        seen.update(s.id for s in result)
    assert seen == {"first", "second"}