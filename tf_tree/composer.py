"""
Transform composition over the frame table.

Given two frames of the tree, finds their lowest common ancestor and composes
the rigid transform between them:

    T_target<-source = inv(T_common<-target) @ T_common<-source

where T_common<-x is the product of the parent links from x up to the common
ancestor. The result is the pose of the source frame expressed in the target
frame, i.e. it maps source coordinates into target coordinates.

The functions here only read the table; they never create frames.
"""

import numpy as np
from typing import List, Mapping, Optional, TYPE_CHECKING

from .transforms import Transform, invert_matrix

if TYPE_CHECKING:
    from .tree import Frame


def path_to_root(frames: Mapping[str, "Frame"], frame_id: str) -> List[str]:
    """
    Collect the ids from a frame up to its root, both included.

    Args:
        frames: Frame table keyed by id
        frame_id: Starting frame (must be in the table)

    Returns:
        Ordered list [frame_id, parent, grandparent, ..., root]
    """
    path = []
    current: Optional[str] = frame_id
    while current is not None:
        path.append(current)
        current = frames[current].parent
    return path


def chain_matrix(frames: Mapping[str, "Frame"], chain: List[str]) -> np.ndarray:
    """
    Compose the parent links of a chain, child first.

    For chain [a, b, c] with c's parent being the ancestor P, the result is
    T_P<-a = T_P<-c @ T_c<-b @ T_b<-a.

    Args:
        frames: Frame table keyed by id
        chain: Frame ids ordered child to parent, ancestor excluded

    Returns:
        4x4 homogeneous matrix (identity for an empty chain)
    """
    T = np.eye(4, dtype=np.float64)
    for frame_id in chain:
        link = frames[frame_id].matrix
        if link is None:
            raise RuntimeError(f"Frame {frame_id} has a parent but no transform")
        T = link @ T
    return T


def find_common_ancestor(source_path: List[str], target_path: List[str]) -> Optional[str]:
    """First frame of the source path that also lies on the target path."""
    on_target_path = set(target_path)
    for frame_id in source_path:
        if frame_id in on_target_path:
            return frame_id
    return None


def find_transform(
    frames: Mapping[str, "Frame"],
    target_id: str,
    source_id: str,
) -> Optional[Transform]:
    """
    Compose the transform taking source-frame coordinates into the target frame.

    Args:
        frames: Frame table keyed by id
        target_id: Frame the result is expressed in
        source_id: Frame whose pose is looked up

    Returns:
        The composed transform, or None when either frame is unknown or the
        two frames lie in disconnected subtrees
    """
    if target_id not in frames or source_id not in frames:
        return None

    source_path = path_to_root(frames, source_id)
    target_path = path_to_root(frames, target_id)

    common = find_common_ancestor(source_path, target_path)
    if common is None:
        return None

    T_common_source = chain_matrix(frames, source_path[:source_path.index(common)])
    T_common_target = chain_matrix(frames, target_path[:target_path.index(common)])

    return Transform.from_matrix(invert_matrix(T_common_target) @ T_common_source)
