import json
import logging
from typing import Callable, Dict, Any, Iterable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class SharedMQTT:
    def __init__(self, host: str, port: int, username: str = None, password: str = None, client=None):
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id="companion-host")
        if username:
            self.client.username_pw_set(username, password)
        self._handlers = []  # list[(filters: list[str], cb: Callable)]
        self.client.on_message = self._on_message
        self.client.on_connect = self._on_connect
        self.host, self.port = host, port

    def start(self):
        self.client.connect(self.host, self.port, 60)
        self.client.loop_start()

    def stop(self):
        self.client.loop_stop()
        self.client.disconnect()

    def subscribe(self, filters: Iterable[str], cb: Callable[[str, Dict[str, Any]], None]):
        filters = list(filters)
        self._handlers.append((filters, cb))
        if self.client.is_connected():
            for f in filters:
                self.client.subscribe(f, qos=1)

    def _on_connect(self, _c, _u, _flags, reason_code, _props=None):
        logger.info("MQTT connected to %s:%s (%s)", self.host, self.port, reason_code)
        # broker drops subscriptions with a clean session
        for filters, _cb in self._handlers:
            for f in filters:
                self.client.subscribe(f, qos=1)

    def publish_json(self, topic: str, obj: Dict[str, Any], qos=1, retain=False):
        self.client.publish(topic, json.dumps(obj), qos=qos, retain=retain)

    def _on_message(self, _c, _u, msg):
        try:
            payload = json.loads(msg.payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Dropping non-JSON message on %s", msg.topic)
            return
        if not isinstance(payload, dict):
            logger.warning("Dropping non-object JSON message on %s", msg.topic)
            return
        for filters, cb in self._handlers:
            if any(self._match(msg.topic, f) for f in filters):
                cb(msg.topic, payload)

    @staticmethod
    def _match(topic: str, pattern: str) -> bool:
        # support '+' single-level wildcard
        t = topic.split('/')
        p = pattern.split('/')
        if len(t) != len(p):
            return False
        for a, b in zip(t, p):
            if b == '+':
                continue
            if a != b:
                return False
        return True
