"""
Message decoding module.

Decodes rosbridge payloads of type tf2_msgs/TFMessage into StampedTransform
objects.

TFMessage payload (JSON as delivered by rosbridge):
    {
      "transforms": [
        {
          "header": {"frame_id": "map", "stamp": {"sec": 12, "nsec": 500}},
          "child_frame_id": "base_link",
          "transform": {
            "translation": {"x": 1.0, "y": 0.0, "z": 0.0},
            "rotation": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}
          }
        },
        ...
      ]
    }

    header.frame_id is the parent frame, child_frame_id the child frame.
    ROS 2 names the stamp's second field "nanosec" instead of "nsec";
    both are accepted. A missing stamp decodes as zero.
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple
import logging

import numpy as np

from .transforms import MalformedTransformError, as_quaternion, as_translation

logger = logging.getLogger(__name__)

TF_MESSAGE_TYPE = "tf2_msgs/TFMessage"


@dataclass
class Stamp:
    """Message time stamp."""
    sec: int = 0
    nsec: int = 0

    def to_sec(self) -> float:
        return self.sec + self.nsec * 1e-9


@dataclass
class StampedTransform:
    """A timestamped rigid transform from a parent frame to a child frame."""
    parent_id: str  # header.frame_id
    child_id: str  # child_frame_id
    translation: np.ndarray  # (x, y, z)
    rotation: np.ndarray  # Unit quaternion (x, y, z, w)
    stamp: Stamp

    @classmethod
    def from_message(cls, entry: Mapping[str, Any]) -> "StampedTransform":
        """
        Decode a single geometry_msgs/TransformStamped mapping.

        Args:
            entry: Decoded JSON object of one transform

        Returns:
            StampedTransform with a normalized rotation

        Raises:
            MalformedTransformError: If ids, translation or rotation are
                missing or invalid
        """
        if not isinstance(entry, Mapping):
            raise MalformedTransformError(f"Transform entry is not an object: {type(entry).__name__}")

        header = entry.get("header")
        if not isinstance(header, Mapping):
            raise MalformedTransformError("Missing header")

        parent_id = _frame_id(header.get("frame_id"), "header.frame_id")
        child_id = _frame_id(entry.get("child_frame_id"), "child_frame_id")

        transform = entry.get("transform")
        if not isinstance(transform, Mapping):
            raise MalformedTransformError(f"Missing transform for {parent_id} -> {child_id}")

        translation = as_translation(_components(transform.get("translation"), "xyz", "translation"))
        rotation = as_quaternion(_components(transform.get("rotation"), "xyzw", "rotation"))

        return cls(
            parent_id=parent_id,
            child_id=child_id,
            translation=translation,
            rotation=rotation,
            stamp=_stamp(header.get("stamp")),
        )


def _frame_id(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedTransformError(f"Missing or empty {field_name}")
    return value


def _components(value: Any, keys: str, field_name: str) -> Tuple[Any, ...]:
    if not isinstance(value, Mapping):
        raise MalformedTransformError(f"Missing {field_name}")

    missing = [k for k in keys if k not in value]
    if missing:
        raise MalformedTransformError(f"{field_name} lacks component(s): {', '.join(missing)}")

    values = tuple(value[k] for k in keys)
    # bool is an int subclass
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise MalformedTransformError(f"{field_name} has non-numeric component {v!r}")
    return values


def _stamp(value: Any) -> Stamp:
    if not isinstance(value, Mapping):
        return Stamp()
    try:
        sec = int(value.get("sec", value.get("secs", 0)))
        nsec = int(value.get("nsec", value.get("nanosec", value.get("nsecs", 0))))
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Ignoring unreadable stamp {value!r}")
        return Stamp()
    return Stamp(sec=sec, nsec=nsec)


def parse_tf_message(message: Mapping[str, Any]) -> List[StampedTransform]:
    """
    Decode a whole TFMessage, skipping malformed entries.

    Args:
        message: Decoded JSON payload with a "transforms" list

    Returns:
        List of decoded transforms, in message order
    """
    entries: Optional[Any] = message.get("transforms") if isinstance(message, Mapping) else None
    if not isinstance(entries, list):
        logger.warning("TF message without a transforms list, ignoring")
        return []

    transforms = []
    for index, entry in enumerate(entries):
        try:
            transforms.append(StampedTransform.from_message(entry))
        except MalformedTransformError as e:
            logger.warning(f"Skipping malformed transform #{index}: {e}")
            continue
    return transforms
