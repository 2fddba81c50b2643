"""
Frame tree store.

Holds the live tree of coordinate frames built from incoming stamped
transforms. One TransformTree is created per session and handed to every
consumer (renderer, position read-outs, overlays); only the bridge writes it.

Structure:
    - Frames live in a flat table keyed by frame id
    - A frame refers to its parent and children by id, never by object
    - The first frame ever referenced is the root until it gets a parent

Updates:
    - A transform (parent, child) reparents the child under the parent,
      creating either frame on first reference
    - Updates that would make a frame its own ancestor are rejected
    - Only the latest transform per child is kept; stamps are informational

Frames are never evicted individually; clear() resets the whole tree.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union
import logging

import numpy as np

from . import composer
from .messages import Stamp, StampedTransform
from .notifier import ChangeCallback, ChangeNotifier, Unsubscribe
from .transforms import ArrayLike, MalformedTransformError, Transform

logger = logging.getLogger(__name__)

TransformEntry = Union[StampedTransform, Mapping]


class TransformCycleError(ValueError):
    """Raised when a transform would make a frame its own ancestor."""


@dataclass
class Frame:
    """A named coordinate frame of the tree."""
    frame_id: str
    parent: Optional[str] = None  # Parent frame id, None for a root
    children: Set[str] = field(default_factory=set)  # Child frame ids
    transform_to_parent: Optional[Transform] = None  # Pose of this frame in its parent
    matrix: Optional[np.ndarray] = None  # Cached 4x4 of transform_to_parent
    stamp: Optional[Stamp] = None  # Stamp of the last recorded transform


class TransformTree:
    """
    Live tree of coordinate frames.

    Example usage:
        tree = TransformTree()
        tree.add_transform("map", "base_link", [1.0, 0.0, 0.0], [0, 0, 0, 1])
        tree.add_transform("base_link", "laser", [0.0, 1.0, 0.0], [0, 0, 0, 1])
        T = tree.find_transform("map", "laser")  # translation (1, 1, 0)
    """

    def __init__(self):
        self._frames: Dict[str, Frame] = {}
        self._root: Optional[str] = None
        self._notifier = ChangeNotifier()

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, frame_id: object) -> bool:
        return frame_id in self._frames

    @property
    def root(self) -> Optional[str]:
        """Id of the frame currently treated as root, None when empty."""
        return self._root

    def get_frames(self) -> List[str]:
        """Ids of all known frames."""
        return list(self._frames)

    def has_frame(self, frame_id: str) -> bool:
        return frame_id in self._frames

    def get_parent(self, frame_id: str) -> Optional[str]:
        """Parent id of a frame, None for a root or an unknown frame."""
        frame = self._frames.get(frame_id)
        return frame.parent if frame is not None else None

    def get_children(self, frame_id: str) -> List[str]:
        """Sorted child ids of a frame (empty for an unknown frame)."""
        frame = self._frames.get(frame_id)
        return sorted(frame.children) if frame is not None else []

    def get_frame(self, frame_id: str) -> Optional[Frame]:
        return self._frames.get(frame_id)

    def get_or_create_frame(self, frame_id: str) -> Frame:
        """
        Return a frame, registering a new parentless one on first reference.

        The first frame ever created becomes the provisional root.
        """
        frame = self._frames.get(frame_id)
        if frame is None:
            frame = Frame(frame_id=frame_id)
            self._frames[frame_id] = frame
            if self._root is None:
                self._root = frame_id
            logger.debug(f"Created frame {frame_id}")
        return frame

    def _is_ancestor(self, ancestor_id: str, frame_id: str) -> bool:
        """True if ancestor_id is frame_id or lies on its path to the root."""
        current: Optional[str] = frame_id
        while current is not None:
            if current == ancestor_id:
                return True
            current = self._frames[current].parent
        return False

    def _top_ancestor(self, frame_id: str) -> str:
        return composer.path_to_root(self._frames, frame_id)[-1]

    def add_transform(
        self,
        parent_id: str,
        child_id: str,
        translation: ArrayLike,
        rotation: ArrayLike,
        stamp: Optional[Stamp] = None,
    ) -> None:
        """
        Record the pose of a child frame in its parent.

        The child is detached from its previous parent, if any. If the child
        was the root, the root moves to the top-most ancestor of the new
        parent. Does not notify; see add_transforms.

        Args:
            parent_id: Parent frame id (header.frame_id)
            child_id: Child frame id (child_frame_id)
            translation: (x, y, z) of the child origin in the parent frame
            rotation: Quaternion (x, y, z, w) of the child in the parent frame
            stamp: Message stamp, kept for introspection

        Raises:
            MalformedTransformError: If ids, translation or rotation are invalid
            TransformCycleError: If the child is the parent or one of its ancestors
        """
        for name, value in (("parent", parent_id), ("child", child_id)):
            if not isinstance(value, str) or not value:
                raise MalformedTransformError(f"Invalid {name} frame id {value!r}")

        # Validate everything before touching the table
        transform = Transform.from_values(translation, rotation)

        if parent_id == child_id:
            raise TransformCycleError(f"Frame {child_id} cannot be its own parent")
        if child_id in self._frames and parent_id in self._frames and self._is_ancestor(child_id, parent_id):
            raise TransformCycleError(
                f"Transform {parent_id} -> {child_id} would make {child_id} its own ancestor"
            )

        parent = self.get_or_create_frame(parent_id)
        child = self.get_or_create_frame(child_id)

        if child.parent is not None and child.parent != parent_id:
            self._frames[child.parent].children.discard(child_id)
            logger.debug(f"Reparenting {child_id}: {child.parent} -> {parent_id}")

        child.parent = parent_id
        child.transform_to_parent = transform
        child.matrix = transform.as_matrix()
        child.stamp = stamp
        parent.children.add(child_id)

        if self._root == child_id:
            self._root = self._top_ancestor(parent_id)
            logger.debug(f"Root frame is now {self._root}")

    def add_transforms(self, entries: Iterable[TransformEntry]) -> int:
        """
        Apply a batch of transforms and notify observers once.

        Entries may be StampedTransform objects or raw rosbridge mappings.
        Malformed or cycle-forming entries are skipped with a warning; the
        rest of the batch is still applied.

        Args:
            entries: Transforms in application order

        Returns:
            Number of transforms applied
        """
        applied = 0
        for index, entry in enumerate(entries):
            try:
                if not isinstance(entry, StampedTransform):
                    entry = StampedTransform.from_message(entry)
                self.add_transform(
                    entry.parent_id,
                    entry.child_id,
                    entry.translation,
                    entry.rotation,
                    stamp=entry.stamp,
                )
            except (MalformedTransformError, TransformCycleError) as e:
                logger.warning(f"Skipping transform #{index}: {e}")
                continue
            applied += 1

        if applied:
            self._notifier.notify()
        return applied

    def find_transform(self, target_id: str, source_id: str) -> Optional[Transform]:
        """
        Pose of the source frame expressed in the target frame.

        Returns:
            Transform mapping source coordinates into target coordinates, or
            None if either frame is unknown or they are not connected
        """
        return composer.find_transform(self._frames, target_id, source_id)

    def on_transform_change(self, callback: ChangeCallback) -> Unsubscribe:
        """Register a callback fired after each applied batch and each clear."""
        return self._notifier.subscribe(callback)

    def clear(self) -> None:
        """Drop every frame and the root, then notify observers."""
        count = len(self._frames)
        self._frames.clear()
        self._root = None
        logger.debug(f"Cleared {count} frame(s)")
        self._notifier.notify()
