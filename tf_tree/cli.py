"""
Command-line interface for watching a live transform tree.

Usage:
    tf-tree config.yaml [--url URL] [--duration SECONDS] [--tree] [-v]
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from .bridge import TransformBridge
from .config import Config
from .rosbridge import RosbridgeConnection
from .tree import TransformTree


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def format_lookup(tree: TransformTree, target: str, source: str) -> str:
    """One line describing the pose of source in target."""
    transform = tree.find_transform(target, source)
    if transform is None:
        return f"{target} <- {source}: unavailable"
    tx, ty, tz = transform.translation
    qx, qy, qz, qw = transform.rotation
    return (
        f"{target} <- {source}: "
        f"t=({tx:.3f}, {ty:.3f}, {tz:.3f}) "
        f"q=({qx:.4f}, {qy:.4f}, {qz:.4f}, {qw:.4f})"
    )


def format_tree(tree: TransformTree) -> List[str]:
    """Indented frame hierarchy, one line per frame, roots first."""
    lines: List[str] = []

    def walk(frame_id: str, depth: int) -> None:
        frame = tree.get_frame(frame_id)
        stamp = f" @ {frame.stamp.to_sec():.3f}" if frame is not None and frame.stamp else ""
        lines.append(f"{'  ' * depth}{frame_id}{stamp}")
        for child in tree.get_children(frame_id):
            walk(child, depth + 1)

    # The tracked root first, then any disconnected subtrees
    roots = [f for f in tree.get_frames() if tree.get_parent(f) is None]
    roots.sort(key=lambda f: (f != tree.root, f))
    for root in roots:
        walk(root, 0)
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Watch the transform tree published over rosbridge',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Print the configured lookups until interrupted
    tf-tree config.yaml

    # Override the server and stop after 30 seconds
    tf-tree config.yaml --url ws://robot:9090 --duration 30

    # Also print the frame hierarchy
    tf-tree config.yaml --tree -v
'''
    )

    parser.add_argument(
        'config',
        type=str,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--url',
        type=str,
        default=None,
        help='rosbridge URL (default: bridge.url from the config file)'
    )

    parser.add_argument(
        '--duration', '-d',
        type=float,
        default=None,
        help='Seconds to run (default: until interrupted)'
    )

    parser.add_argument(
        '--tree',
        action='store_true',
        help='Print the frame hierarchy with each update'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_yaml(args.config)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    url = args.url or config.bridge.url
    connection = RosbridgeConnection(url, connect_timeout=config.bridge.connect_timeout)
    if not connection.connect():
        return 1

    tree = TransformTree()
    bridge = TransformBridge(tree, config.channels)

    try:
        if connection.refresh_topics():
            logger.debug(f"Topics: {', '.join(connection.get_topics())}")
        bridge.initialize(connection)

        lookups = config.display.lookups
        if not lookups:
            logger.info(f"No lookups configured; showing frames in {config.display.fixed_frame}")

        period = 1.0 / config.display.rate
        started = time.monotonic()
        while connection.is_connected():
            elapsed = time.monotonic() - started
            if args.duration is not None and elapsed >= args.duration:
                break
            step = period if args.duration is None else min(period, args.duration - elapsed)
            connection.spin(step)

            print(f"--- {len(tree)} frame(s), root: {tree.root}")
            if lookups:
                for lookup in lookups:
                    print(format_lookup(tree, lookup.target, lookup.source))
            else:
                fixed = config.display.fixed_frame
                for frame_id in sorted(tree.get_frames()):
                    if frame_id != fixed:
                        print(format_lookup(tree, fixed, frame_id))
            if args.tree:
                print("\n".join(format_tree(tree)))

        if not connection.is_connected():
            logger.error("Lost connection to rosbridge")
            return 1
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        bridge.disconnect()
        connection.close()


if __name__ == '__main__':
    sys.exit(main())
