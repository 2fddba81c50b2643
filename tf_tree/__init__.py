"""
Transform Tree Package

A live tree of named coordinate frames fed by ROS transform messages
(tf2_msgs/TFMessage on /tf and /tf_static) received over a rosbridge
WebSocket, queried to express the pose of one frame in another.

Data Flow:
    rosbridge → TransformBridge → TransformTree → change callbacks
    consumers → TransformTree.find_transform(target, source)

Conventions:
    - header.frame_id is the parent frame, child_frame_id the child
    - Quaternions are (x, y, z, w)
    - find_transform(target, source) maps source coordinates into target
      coordinates (the pose of source expressed in target)
    - Only the latest transform per frame is held; no interpolation
"""

from .config import Config, BridgeConfig, ChannelConfig, DisplayConfig, Lookup
from .transforms import Transform, MalformedTransformError
from .messages import StampedTransform, Stamp, parse_tf_message
from .notifier import ChangeNotifier
from .tree import Frame, TransformTree, TransformCycleError
from .bridge import MessageSource, TransformBridge
from .rosbridge import RosbridgeConnection

__version__ = "1.0.0"
__all__ = [
    "Config",
    "BridgeConfig",
    "ChannelConfig",
    "DisplayConfig",
    "Lookup",
    "Transform",
    "MalformedTransformError",
    "StampedTransform",
    "Stamp",
    "parse_tf_message",
    "ChangeNotifier",
    "Frame",
    "TransformTree",
    "TransformCycleError",
    "MessageSource",
    "TransformBridge",
    "RosbridgeConnection",
]
