"""
Configuration module for the transform tree viewer.

Handles loading and validation of configuration from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List
import logging

from .messages import TF_MESSAGE_TYPE

logger = logging.getLogger(__name__)


@dataclass
class BridgeConfig:
    """Rosbridge server connection."""
    url: str = "ws://localhost:9090"  # rosbridge WebSocket URL
    connect_timeout: float = 5.0  # Seconds to wait for the handshake


@dataclass
class ChannelConfig:
    """
    Transform topics.

    Both topics carry tf2_msgs/TFMessage and feed the same tree; the static
    topic is latched by the publisher.
    """
    live_topic: str = "/tf"
    static_topic: str = "/tf_static"
    message_type: str = TF_MESSAGE_TYPE  # Used when the server does not report a type


@dataclass
class Lookup:
    """A frame pair to look up: pose of source expressed in target."""
    target: str
    source: str


@dataclass
class DisplayConfig:
    """What the command line prints."""
    fixed_frame: str = "map"
    rate: float = 2.0  # Prints per second
    lookups: List[Lookup] = field(default_factory=list)


@dataclass
class Config:
    """
    Main configuration class.

    Attributes:
        bridge: Rosbridge connection settings
        channels: Transform topic names
        display: Lookups and print rate of the command line
    """
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: On an empty topic name, a non-positive rate or timeout,
                or a lookup with an empty frame id
        """
        if not self.bridge.url:
            raise ValueError("bridge.url must not be empty")
        if self.bridge.connect_timeout <= 0:
            raise ValueError(f"bridge.connect_timeout must be positive, got {self.bridge.connect_timeout}")
        for name in ("live_topic", "static_topic", "message_type"):
            if not getattr(self.channels, name):
                raise ValueError(f"channels.{name} must not be empty")
        if self.display.rate <= 0:
            raise ValueError(f"display.rate must be positive, got {self.display.rate}")
        for lookup in self.display.lookups:
            if not lookup.target or not lookup.source:
                raise ValueError(f"Lookup needs both target and source: {lookup}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build and validate a configuration from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")

        bridge_data = data.get('bridge') or {}
        bridge = BridgeConfig(
            url=str(bridge_data.get('url', BridgeConfig.url)),
            connect_timeout=float(bridge_data.get('connect_timeout', BridgeConfig.connect_timeout)),
        )

        chan_data = data.get('channels') or {}
        channels = ChannelConfig(
            live_topic=str(chan_data.get('live_topic', ChannelConfig.live_topic)),
            static_topic=str(chan_data.get('static_topic', ChannelConfig.static_topic)),
            message_type=str(chan_data.get('message_type', ChannelConfig.message_type)),
        )

        disp_data = data.get('display') or {}
        lookups = []
        for item in disp_data.get('lookups') or []:
            if not isinstance(item, dict) or 'target' not in item or 'source' not in item:
                raise ValueError(f"Lookup needs both target and source: {item!r}")
            lookups.append(Lookup(target=str(item['target']), source=str(item['source'])))

        display = DisplayConfig(
            fixed_frame=str(disp_data.get('fixed_frame', DisplayConfig.fixed_frame)),
            rate=float(disp_data.get('rate', DisplayConfig.rate)),
            lookups=lookups,
        )

        config = cls(bridge=bridge, channels=channels, display=display)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, config_path: str) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config object with loaded parameters

        Example YAML structure:
            bridge:
              url: ws://localhost:9090
              connect_timeout: 5.0
            channels:
              live_topic: /tf
              static_topic: /tf_static
              message_type: tf2_msgs/TFMessage
            display:
              fixed_frame: map
              rate: 2.0
              lookups:
                - target: map
                  source: base_link
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        logger.info(f"Loading configuration from {config_path}")

        # An empty file means all defaults
        return cls.from_dict(data if data is not None else {})

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        data = {
            'bridge': {
                'url': self.bridge.url,
                'connect_timeout': self.bridge.connect_timeout,
            },
            'channels': {
                'live_topic': self.channels.live_topic,
                'static_topic': self.channels.static_topic,
                'message_type': self.channels.message_type,
            },
            'display': {
                'fixed_frame': self.display.fixed_frame,
                'rate': self.display.rate,
                'lookups': [
                    {'target': lookup.target, 'source': lookup.source}
                    for lookup in self.display.lookups
                ],
            },
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
