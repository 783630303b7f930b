# emitter

Building blocks for a publish/subscribe message broker, in plain Python
with no third-party dependencies.

## Modules

- `emitter.ssid` — subscription IDs (`Ssid`, `new_ssid`,
  `ssid_for_presence`, `ssid_for_share`), the abstract `Subscriber`,
  subscriber sets unique by ID (`Subscribers`), `Subscription`, and
  thread-safe per-channel subscription counters (`Counters`, `Counter`).
- `emitter.message_id` — sortable message identifiers (`MessageId`,
  `new_id`, `new_prefix`) carrying a time and an SSID, with prefix and
  query matching (`has_prefix`, `match`).
- `emitter.message` — `Message` and `Frame` (a list of messages that can
  be sorted by time, split by byte budget and limited), with a compact
  binary encoding compressed in the snappy block format
  (`Message.encode`, `decode_message`, `Frame.encode`, `decode_frame`,
  `snappy_encode`, `snappy_decode`). Decoding errors raise `CodecError`.
- `emitter.subtrie` — a thread-safe `Trie` of subscriptions with
  wildcard matching and shared groups: a lookup returns every matching
  subscriber plus one randomly chosen subscriber per share group.
- `emitter.mqtt_packets` — MQTT 3.1 packet types (`Connect`, `Connack`,
  `Publish`, `Puback`, `Pubrec`, `Pubrel`, `Pubcomp`, `Subscribe`,
  `Suback`, `Unsubscribe`, `Unsuback`, `Pingreq`, `Pingresp`,
  `Disconnect`) with `encode()` and `encode_to(writer)`, plus
  `encode_length` for the remaining-length field. A publish over 64 KiB
  raises `MessageTooLargeError`.
- `emitter.matcher` — matchers that decide a protocol from the first
  bytes a client sends (`match_http`, `match_prefix`, `match_any`),
  built on an immutable `PatriciaTree`.
- `emitter.conn` — `Conn`, a socket wrapper that queues writes when a
  `RateLimiter` refuses them, flushes the queue periodically, and can
  record incoming bytes while matching (`start_sniffing`) and replay them
  afterwards (`done_sniffing`) through a `Sniffer`.
- `emitter.websocket` — `WebSocketTransport`, which presents a
  message-oriented websocket connection as a byte stream, skipping
  control messages and writing each call as one binary message.

## Install

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from emitter.message import Message, decode_message
from emitter.ssid import Subscriber, SubscriberType, new_ssid
from emitter.subtrie import Trie


class Printer(Subscriber):
    def __init__(self, name):
        self._name = name

    @property
    def id(self):
        return self._name

    @property
    def type(self):
        return SubscriberType.DIRECT

    def send(self, message):
        print(self._name, message.payload)


ssid = new_ssid(1, [10, 20, 30])
msg = Message.create(ssid, b"a/b/c/", b"hello")
assert decode_message(msg.encode()) == msg

trie = Trie()
trie.subscribe(ssid, Printer("first"))
for subscriber in trie.lookup(ssid):
    subscriber.send(msg)
```

Encoding an MQTT packet and matching the start of a stream:

```python
import io

from emitter.matcher import match_http
from emitter.mqtt_packets import Header, Publish

packet = Publish(header=Header(qos=1), topic=b"a/b/c", message_id=1, payload=b"hi")
wire = packet.encode()

is_http = match_http()
assert not is_http(io.BytesIO(wire))
assert is_http(io.BytesIO(b"GET / HTTP/1.1\r\n"))
```

## What this package does not do

- It encodes MQTT packets but has no decoder that reads packets back
  from a stream.
- It has no listener or server: nothing here accepts connections,
  dispatches them to a protocol, or runs a broker. `Conn`, the matchers
  and `WebSocketTransport` are pieces such a server would use.
- It has no HTTP client, no persistent message storage, and no command
  to run.