# pubsub.py
"""
FILE: pubsub.py
DESCRIPTION:
  Topic-prefixed publish/subscribe handles that modules publish their state through.
  - MQTTPubSub: bound to a live paho client and a base topic.
  - StubPubSub: discards everything; modules hold one until the first connect.
"""
import config

MUST_QOS = 1


def to_payload(value):
    """Canonical string form of a state value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class MQTTPubSub:
    def __init__(self, client, base_topic):
        self.client = client
        self.base_topic = base_topic

    def publish(self, topic, value):
        full_topic = self.base_topic + topic
        payload = to_payload(value)
        if config.VERBOSE:
            print(f"[MQTT] publish {full_topic} '{payload}'")
        self.client.publish(full_topic, payload, qos=MUST_QOS, retain=False)

    def subscribe(self, topic, callback):
        """Register callback(payload_bytes), invoked once per inbound message."""
        full_topic = self.base_topic + topic

        def _wrap(_client, _userdata, msg):
            callback(msg.payload)

        print(f"[MQTT] subscribe {full_topic}")
        self.client.message_callback_add(full_topic, _wrap)
        self.client.subscribe(full_topic, qos=MUST_QOS)

    def __repr__(self):
        return f"MQTTPubSub({self.base_topic!r})"


class StubPubSub:
    def publish(self, topic, value):
        pass

    def subscribe(self, topic, callback):
        pass

    def __repr__(self):
        return "StubPubSub()"
