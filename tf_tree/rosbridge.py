"""
Minimal rosbridge v2 client.

Speaks the JSON rosbridge protocol over a WebSocket:
    - {"op": "subscribe", "topic": ..., "type": ...}
    - {"op": "unsubscribe", "topic": ...}
    - {"op": "call_service", "service": ..., "id": ..., "args": {}}
    - incoming {"op": "publish", "topic": ..., "msg": {...}}
    - incoming {"op": "service_response", "id": ..., "values": {...}, "result": bool}
    - incoming {"op": "status", "level": ..., "msg": ...}

Frames are read only when the host calls spin_once() or spin(), so topic
callbacks run on the host's thread and never concurrently with its queries.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional
import logging

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import connect

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], None]

TOPICS_SERVICE = "/rosapi/topics"


class RosbridgeConnection:
    """
    Rosbridge WebSocket connection implementing the MessageSource interface.

    Example usage:
        connection = RosbridgeConnection("ws://localhost:9090")
        if connection.connect():
            connection.refresh_topics()
            bridge.initialize(connection)
            connection.spin(10.0)
            connection.close()
    """

    def __init__(self, url: str, connect_timeout: float = 5.0):
        """
        Args:
            url: rosbridge server URL, e.g. ws://localhost:9090
            connect_timeout: Seconds to wait for the opening handshake
        """
        self.url = url
        self.connect_timeout = connect_timeout
        self._ws = None
        self._callbacks: Dict[str, MessageCallback] = {}
        self._topic_types: Dict[str, str] = {}
        self._service_responses: Dict[str, Dict[str, Any]] = {}
        self._next_id = 0

    def connect(self) -> bool:
        """
        Open the WebSocket.

        Returns:
            True on success; failures are logged and return False
        """
        if self._ws is not None:
            return True
        try:
            self._ws = connect(self.url, open_timeout=self.connect_timeout)
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
            logger.error(f"Failed to connect to rosbridge at {self.url}: {e}")
            return False
        logger.info(f"Connected to rosbridge at {self.url}")
        return True

    def close(self) -> None:
        """Close the WebSocket and forget all subscriptions."""
        ws, self._ws = self._ws, None
        self._callbacks.clear()
        self._topic_types.clear()
        self._service_responses.clear()
        if ws is not None:
            ws.close()
            logger.info("Rosbridge connection closed")

    def is_connected(self) -> bool:
        return self._ws is not None

    def _send(self, payload: Dict[str, Any]) -> None:
        if self._ws is None:
            raise ConnectionError("Not connected to rosbridge")
        self._ws.send(json.dumps(payload))

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}:{self._next_id}"

    def subscribe(self, topic: str, message_type: str, callback: MessageCallback) -> None:
        """
        Subscribe to a topic, replacing any earlier subscription to it.

        Raises:
            ConnectionError: If not connected
        """
        if topic in self._callbacks:
            self.unsubscribe(topic)
        self._send({
            "op": "subscribe",
            "id": self._new_id("subscribe"),
            "topic": topic,
            "type": message_type,
        })
        self._callbacks[topic] = callback
        logger.debug(f"Subscribed to {topic} ({message_type})")

    def unsubscribe(self, topic: str) -> None:
        """Unsubscribe from a topic; unknown topics are ignored."""
        if self._callbacks.pop(topic, None) is None:
            return
        if self._ws is None:
            return
        self._send({"op": "unsubscribe", "topic": topic})
        logger.debug(f"Unsubscribed from {topic}")

    def get_topic_type(self, topic: str) -> Optional[str]:
        """Message type of a topic as reported by refresh_topics(), if known."""
        return self._topic_types.get(topic)

    def get_topics(self) -> List[str]:
        return sorted(self._topic_types)

    def refresh_topics(self, timeout: float = 5.0) -> bool:
        """
        Fetch the topic list and types from the rosapi node.

        Messages arriving meanwhile are dispatched as usual.

        Returns:
            True if the table was refreshed
        """
        call_id = self._new_id("call_service")
        self._send({"op": "call_service", "id": call_id, "service": TOPICS_SERVICE, "args": {}})

        deadline = time.monotonic() + timeout
        while call_id not in self._service_responses:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not self.is_connected():
                logger.warning(f"No response from {TOPICS_SERVICE} within {timeout:.1f} s")
                return False
            self.spin_once(remaining)

        response = self._service_responses.pop(call_id)
        if not response.get("result", True):
            logger.warning(f"{TOPICS_SERVICE} failed: {response.get('values')}")
            return False

        values = response.get("values") or {}
        topics = values.get("topics") or []
        types = values.get("types") or []
        self._topic_types = {t: ty for t, ty in zip(topics, types) if ty}
        logger.info(f"Discovered {len(self._topic_types)} topics")
        return True

    def spin_once(self, timeout: Optional[float] = None) -> bool:
        """
        Read and dispatch at most one frame.

        Args:
            timeout: Seconds to wait for a frame, None to block

        Returns:
            True if a frame was dispatched
        """
        if self._ws is None:
            return False
        try:
            raw = self._ws.recv(timeout=timeout)
        except TimeoutError:
            return False
        except ConnectionClosed as e:
            logger.warning(f"Rosbridge connection lost: {e}")
            ws, self._ws = self._ws, None
            ws.close()
            return False

        self.dispatch(raw)
        return True

    def spin(self, duration: float) -> None:
        """Dispatch incoming frames for the given number of seconds."""
        deadline = time.monotonic() + duration
        while self.is_connected():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self.spin_once(remaining)

    def dispatch(self, raw: Any) -> None:
        """Route one raw rosbridge frame to its handler."""
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Dropping undecodable rosbridge frame: {e}")
            return
        if not isinstance(frame, dict):
            logger.warning("Dropping rosbridge frame that is not an object")
            return

        op = frame.get("op")
        if op == "publish":
            callback = self._callbacks.get(frame.get("topic"))
            if callback is not None:
                callback(frame.get("msg"))
        elif op == "service_response":
            self._service_responses[str(frame.get("id"))] = frame
        elif op == "status":
            logger.info(f"rosbridge [{frame.get('level')}]: {frame.get('msg')}")
        else:
            logger.debug(f"Ignoring rosbridge op {op!r}")
