"""
Bridge between a message source and the frame tree.

Subscribes to the live (/tf) and latched (/tf_static) transform topics of a
message source and feeds every delivered TFMessage into the tree. Both
channels are handled identically.

A message source is anything implementing MessageSource; RosbridgeConnection
is the WebSocket implementation shipped with this package.
"""

from typing import Any, Callable, List, Optional, Protocol
import logging

from .config import ChannelConfig
from .messages import parse_tf_message
from .tree import TransformTree

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], None]


class MessageSource(Protocol):
    """Interface of a topic-based message transport."""

    def is_connected(self) -> bool:
        ...

    def subscribe(self, topic: str, message_type: str, callback: MessageCallback) -> None:
        ...

    def unsubscribe(self, topic: str) -> None:
        ...

    def get_topic_type(self, topic: str) -> Optional[str]:
        ...


class TransformBridge:
    """
    Binds a TransformTree to a message source.

    Example usage:
        tree = TransformTree()
        bridge = TransformBridge(tree)
        bridge.initialize(connection)
        ...
        bridge.disconnect()  # unsubscribes and clears the tree
    """

    def __init__(self, tree: TransformTree, channels: Optional[ChannelConfig] = None):
        """
        Args:
            tree: Tree receiving the transforms
            channels: Topic names and default message type
        """
        self.tree = tree
        self.channels = channels or ChannelConfig()
        self._source: Optional[MessageSource] = None
        self._subscribed: List[str] = []

    @property
    def source(self) -> Optional[MessageSource]:
        return self._source

    @property
    def subscribed_topics(self) -> List[str]:
        return list(self._subscribed)

    def _on_message(self, message: Any) -> None:
        transforms = parse_tf_message(message)
        if transforms:
            self.tree.add_transforms(transforms)

    def initialize(self, source: MessageSource) -> None:
        """
        Bind to a source and subscribe to both transform topics.

        Binding the source that is already bound does nothing. A failed
        subscription is logged and leaves the other topic usable.
        """
        if source is self._source:
            return

        self.disconnect()
        self._source = source

        if not source.is_connected():
            logger.warning("Message source is not connected; transform topics not subscribed")
            return

        for topic in (self.channels.live_topic, self.channels.static_topic):
            try:
                message_type = source.get_topic_type(topic) or self.channels.message_type
            except Exception as e:
                logger.warning(f"Type lookup for {topic} failed, using {self.channels.message_type}: {e}")
                message_type = self.channels.message_type
            try:
                source.subscribe(topic, message_type, self._on_message)
            except Exception as e:
                logger.error(f"Failed to subscribe to {topic}: {e}")
                continue
            self._subscribed.append(topic)
            logger.info(f"Subscribed to {topic} ({message_type})")

    def disconnect(self) -> None:
        """Unsubscribe, drop the source and clear the tree."""
        source = self._source
        if source is not None:
            for topic in self._subscribed:
                try:
                    source.unsubscribe(topic)
                except Exception as e:
                    logger.error(f"Failed to unsubscribe from {topic}: {e}")
        self._subscribed = []
        self._source = None
        self.tree.clear()
