"""Building blocks for a publish/subscribe message broker: SSIDs, message IDs and frames, a subscription trie, MQTT packet encoding, protocol matchers and connection wrappers."""

__version__ = "0.1.0"