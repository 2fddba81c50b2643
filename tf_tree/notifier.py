"""
Change notification for the frame tree.

Observers register a zero-argument callback and receive one call per applied
batch of transforms (and one per clear). Delivery is synchronous, on the
thread that mutated the tree.
"""

from typing import Callable, Dict
import logging

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


class ChangeNotifier:
    """
    Registry of change callbacks.

    Callbacks are called in registration order. Iteration runs over a snapshot
    of the registry, so a callback may register or unregister callbacks
    (including itself) while being notified; such changes take effect on the
    next notification.
    """

    def __init__(self):
        self._callbacks: Dict[int, ChangeCallback] = {}
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        """
        Register a callback.

        Args:
            callback: Called with no arguments after each change

        Returns:
            Function removing this registration; calling it twice is harmless
        """
        if not callable(callback):
            raise TypeError(f"Change callback must be callable, got {type(callback).__name__}")

        # Tokens keep registering the same function twice distinct
        token = self._next_token
        self._next_token += 1
        self._callbacks[token] = callback

        def unsubscribe() -> None:
            self._callbacks.pop(token, None)

        return unsubscribe

    def notify(self) -> None:
        """Call every registered callback once."""
        snapshot = tuple(self._callbacks.values())
        logger.debug(f"Notifying {len(snapshot)} change callback(s)")
        for callback in snapshot:
            callback()
