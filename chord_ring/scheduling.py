"""Background schedules and finger-table triggers.

Each joined peer runs its own ``StabilizeTimer`` thread; the timers are
not synchronized with each other.  All workers of a network share one
stop event which ``Network.shutdown`` sets.
"""

import logging
import random
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class StabilizeTimer(threading.Thread):
    """Calls ``peer.stabilize`` now and then every *interval* seconds."""

    def __init__(self, peer, interval: float, stop_event: threading.Event):
        super().__init__(name=f"stabilize-{peer.node_id}", daemon=True)
        self.peer = peer
        self.interval = interval
        self._stop_event = stop_event
        self.ticks = 0

    def run(self):
        while not self._stop_event.is_set():
            try:
                self.peer.stabilize(self.peer)
            except Exception:
                logger.exception("stabilize tick failed on %r", self.peer)
            self.ticks += 1
            if self._stop_event.wait(self.interval):
                break


class FingerUpdater(threading.Thread):
    """Every *interval* seconds, fixes one random row of one random peer."""

    def __init__(self, network, interval: float, stop_event: threading.Event,
                 rng: Optional[random.Random] = None):
        super().__init__(name="finger-updater", daemon=True)
        self.network = network
        self.interval = interval
        self._stop_event = stop_event
        self._rng = rng if rng is not None else random.Random()

    def run(self):
        while not self._stop_event.wait(self.interval):
            peer = self.network.random_peer()
            if peer is None:
                continue
            index = self._rng.randrange(self.network.bits)
            try:
                update_fingers(peer, index, index)
            except Exception:
                logger.exception("finger update failed on %r", peer)


def update_fingers(peer, from_index: int, to_index: int) -> tuple[int, int]:
    """Fix rows *from_index*..*to_index* of *peer*, clamped to the table."""
    from_index = max(from_index, 0)
    to_index = min(to_index, peer.m - 1)
    peer.fix_fingers(from_index, to_index)
    return from_index, to_index


def update_all_fingers(network):
    """Fix every row of every registered peer."""
    for peer in network.peers():
        update_fingers(peer, 0, peer.m - 1)
