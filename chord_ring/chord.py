"""Chord DHT implementation.

Reference
---------
Stoica et al., "Chord: A Scalable Peer-to-peer Lookup Service
for Internet Applications" (SIGCOMM 2001)

Key properties
--------------
- Peers arranged on an identifier ring of size 2^m
- Each peer maintains a finger table with m entries
- Lookups resolved in O(log N) hops with populated fingers,
  O(N) hops when only successors are used
- Responsible peer = successor of the key on the ring

Deviations from the paper
-------------------------
- The predecessor is never empty: a peer that has no predecessor yet
  points to itself.
- ``notify`` stabilizes the predecessor it replaces right away, so the
  pointers around a joining peer are correct after a single round.
- ``fix_fingers`` repairs an explicit range of rows instead of one
  random row.

Calls between peers are direct method calls but stand for remote
procedure calls: every such call goes through the target's accessors
and is recorded in the network's message log.  No lock is held across
a call into another peer.
"""

import logging
import threading
from typing import Optional

from . import config
from .base import ConfigurationError, Network, PeerNode
from .finger_table import FingerTable
from .messages import MessageType
from .ring import HashFunction, ring_successor, sha1_hash
from .scheduling import FingerUpdater, StabilizeTimer

logger = logging.getLogger(__name__)


class ChordPeer(PeerNode):

    def __init__(self, network: "ChordNetwork", node_id: str,
                 use_successor_only: bool = False):
        super().__init__(network, node_id)
        self.m = network.bits
        self.use_successor_only = use_successor_only
        self.finger = FingerTable(self, self.m)
        self._predecessor: "ChordPeer" = self
        self._predecessor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Pointers
    # ------------------------------------------------------------------

    @property
    def successor(self) -> Optional["ChordPeer"]:
        return self.finger.get(0).node

    def _set_successor(self, peer: "ChordPeer"):
        self.finger.get(0).node = peer

    @property
    def predecessor(self) -> "ChordPeer":
        with self._predecessor_lock:
            return self._predecessor

    def _replace_predecessor(self, peer: "ChordPeer"):
        # caller holds _predecessor_lock
        self.connections.remove(self._predecessor.node_id)
        self.connections.add(peer.node_id)
        self._predecessor = peer

    def get_successor(self, origin: Optional[PeerNode]) -> "ChordPeer":
        self.network.log_message(MessageType.CHORD_GET_SUCCESSOR, origin, self)
        successor = self.successor
        self.network.log_message(
            MessageType.CHORD_GET_SUCCESSOR_RESPONSE, self, origin)
        return successor

    def get_predecessor(self, origin: Optional[PeerNode]) -> "ChordPeer":
        self.network.log_message(MessageType.CHORD_GET_PREDECESSOR, origin, self)
        predecessor = self.predecessor
        self.network.log_message(
            MessageType.CHORD_GET_PREDECESSOR_RESPONSE, self, origin)
        return predecessor

    def set_predecessor(self, origin: Optional[PeerNode],
                        peer: "ChordPeer"):
        self.network.log_message(MessageType.CHORD_SET_PREDECESSOR, origin, self)
        with self._predecessor_lock:
            self._replace_predecessor(peer)
        self.network.log_message(
            MessageType.CHORD_SET_PREDECESSOR_RESPONSE, self, origin)

    # ------------------------------------------------------------------
    # Routing (Figure 4)
    # ------------------------------------------------------------------

    def find_successor(self, origin: Optional[PeerNode],
                       identifier: int) -> "ChordPeer":
        self.network.log_message(MessageType.CHORD_FIND_SUCCESSOR, origin, self)
        predecessor = self.find_predecessor(self, identifier)
        successor = predecessor.get_successor(self)
        self.network.log_message(
            MessageType.CHORD_FIND_SUCCESSOR_RESPONSE, self, origin)
        return successor

    def find_predecessor(self, origin: Optional[PeerNode],
                         identifier: int) -> "ChordPeer":
        self.network.log_message(MessageType.CHORD_FIND_PREDECESSOR, origin, self)
        candidate = self
        # every jump lands strictly closer to identifier, so this terminates
        while not self.network.is_element_of(
                identifier, candidate.n, candidate.get_successor(self).n,
                False, True):
            candidate = candidate.closest_preceding_finger(self, identifier)
        self.network.log_message(
            MessageType.CHORD_FIND_PREDECESSOR_RESPONSE, self, origin)
        return candidate

    def closest_preceding_finger(self, origin: Optional[PeerNode],
                                 identifier: int) -> "ChordPeer":
        self.network.log_message(
            MessageType.CHORD_CLOSEST_PRECEDING_FINGER, origin, self)
        result = self
        for k in range(self.m - 1, -1, -1):
            node = self.finger.get(k).node
            if node is None:
                continue
            if self.network.is_element_of(node.n, self.n, identifier,
                                          False, False):
                result = node
                break
        self.network.log_message(
            MessageType.CHORD_CLOSEST_PRECEDING_FINGER_RESPONSE, self, origin)
        return result

    # ------------------------------------------------------------------
    # Join / stabilization (Figure 7)
    # ------------------------------------------------------------------

    def join(self, bootstrap: Optional["ChordPeer"]):
        """Enter the ring through *bootstrap*, or found it if ``None``."""
        self.set_predecessor(self, self)
        if bootstrap is not None:
            self._set_successor(bootstrap.find_successor(self, self.n))
            if self.use_successor_only:
                self.stabilize(self)
        else:
            self._set_successor(self)
        self.network.schedule_stabilization(self)

    def stabilize(self, origin: Optional[PeerNode]):
        self.network.log_message(MessageType.CHORD_STABILIZE, origin, self)
        successor = self.successor
        x = successor.get_predecessor(self)
        if self.network.is_element_of(x.n, self.n, successor.n, False, False):
            self._set_successor(x)
            successor = x
        successor.notify(self)
        self.network.log_message(
            MessageType.CHORD_STABILIZE_RESPONSE, self, origin)

    def notify(self, candidate: "ChordPeer"):
        """*candidate* thinks it might be our predecessor."""
        self.network.log_message(MessageType.CHORD_NOTIFY, candidate, self)
        if candidate is not self:
            with self._predecessor_lock:
                old = self._predecessor
                adopt = old is self or self.network.is_element_of(
                    candidate.n, old.n, self.n, False, False)
                if adopt:
                    self._replace_predecessor(candidate)
            if adopt:
                logger.debug("%r: predecessor %r -> %r", self, old, candidate)
                # fixes old's successor now instead of on its next tick
                old.stabilize(self)
        self.network.log_message(MessageType.CHORD_NOTIFY_RESPONSE, self,
                                 candidate)

    def fix_fingers(self, from_inclusive: int, to_inclusive: int):
        for k in range(from_inclusive, to_inclusive + 1):
            entry = self.finger.get(k)
            entry.node = self.find_successor(self, entry.start)

    # ------------------------------------------------------------------
    # Data items
    # ------------------------------------------------------------------

    def lookup_node_for_item(self, origin: Optional[PeerNode],
                             key: str) -> "ChordPeer":
        self.network.log_message(MessageType.LOOKUP, origin, self)
        key_id = self.network.hash(key)

        if self.use_successor_only:
            node = self._walk_successors(key_id)
            method = "successor"
        else:
            predecessor = self.get_predecessor(self)
            if self.network.is_element_of(key_id, predecessor.n, self.n,
                                          False, True):
                node = self
            else:
                node = self.find_successor(self, key_id)
            method = "finger table"

        logger.debug("lookup (%s): item with hash %d belongs to %r",
                     method, key_id, node)
        self.network.log_message(MessageType.LOOKUP_RESPONSE, self, origin)
        return node

    def _walk_successors(self, key_id: int) -> "ChordPeer":
        """Forward the lookup along successor pointers until the owner.

        Every hop is a LOOKUP from the previous peer; once the owner is
        known the responses travel back along the path, last hop first.
        """
        path = [self]
        current = self
        while True:
            successor = current.get_successor(current)
            if key_id == current.n:
                node = current
                break
            if self.network.is_element_of(key_id, current.n, successor.n,
                                          False, True):
                node = successor
                break
            self.network.log_message(MessageType.LOOKUP, current, successor)
            path.append(successor)
            current = successor
        for i in range(len(path) - 1, 0, -1):
            self.network.log_message(
                MessageType.LOOKUP_RESPONSE, path[i], path[i - 1])
        return node

    def get_data_item(self, origin: Optional[PeerNode],
                      key: str) -> Optional[str]:
        self.network.log_message(MessageType.GET, origin, self)
        value = self._read_local(key)
        self.network.log_message(MessageType.GET_RESPONSE, self, origin)
        return value

    def set_data_item(self, origin: Optional[PeerNode], key: str,
                      value: str):
        self.network.log_message(MessageType.SET, origin, self)
        self._write_local(key, value)
        self.network.log_message(MessageType.SET_RESPONSE, self, origin)

    def dump_finger_table(self) -> str:
        return str(self.finger)


class ChordNetwork(Network):
    """A Chord ring whose peers keep the overlay intact themselves.

    ``stabilize_interval=None`` disables the per-peer background
    schedule; the ring then only moves when ``stabilize`` is called.
    """

    def __init__(self, bits: int = config.DEFAULT_NETWORK_BITS,
                 hash_function: HashFunction = sha1_hash,
                 rng=None,
                 stabilize_interval: Optional[float] = config.STABILIZE_INTERVAL,
                 use_successor_only: bool = False):
        super().__init__(bits, hash_function, rng)
        if stabilize_interval is not None and stabilize_interval <= 0:
            raise ConfigurationError(
                f"stabilize interval must be positive, got {stabilize_interval}")
        self.stabilize_interval = stabilize_interval
        self.use_successor_only = use_successor_only
        self._join_lock = threading.Lock()
        self._workers: list[threading.Thread] = []
        self._workers_lock = threading.Lock()

    def create_peer(self, node_id: str,
                    use_successor_only: Optional[bool] = None) -> ChordPeer:
        if use_successor_only is None:
            use_successor_only = self.use_successor_only
        with self._join_lock:
            bootstrap = self.random_peer()
            peer = ChordPeer(self, node_id, use_successor_only)
            peer.join(bootstrap)
            # only fully joined peers are visible to clients and workers
            self.add_peer(peer)
        logger.info("peer %r joined via %r", peer, bootstrap)
        return peer

    def arrange_overlay_structure(self):
        """Nothing to do: Chord peers maintain the ring themselves."""

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _start_worker(self, worker: threading.Thread):
        with self._workers_lock:
            self._workers.append(worker)
        worker.start()

    def schedule_stabilization(self, peer: ChordPeer):
        if self.stabilize_interval is None or self.stop_event.is_set():
            return
        self._start_worker(
            StabilizeTimer(peer, self.stabilize_interval, self.stop_event))

    def start_finger_updates(
            self, interval: float = config.FINGER_UPDATE_INTERVAL
    ) -> FingerUpdater:
        if interval <= 0:
            raise ConfigurationError(
                f"finger update interval must be positive, got {interval}")
        updater = FingerUpdater(self, interval, self.stop_event)
        self._start_worker(updater)
        return updater

    def stabilize_all(self, rounds: int = 1):
        """Run *rounds* stabilization ticks on every peer, in join order."""
        for _ in range(rounds):
            for peer in self.peers():
                peer.stabilize(peer)

    def shutdown(self):
        super().shutdown()
        with self._workers_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout=config.SHUTDOWN_JOIN_TIMEOUT)
        logger.info("stopped %d background workers", len(workers))

    # ------------------------------------------------------------------
    # Ground truth (for checks and statistics)
    # ------------------------------------------------------------------

    def ring_order(self) -> list[ChordPeer]:
        return sorted(self.peers(), key=lambda p: (p.n, p.node_id))

    def expected_owner(self, key: str) -> ChordPeer:
        """Correct owner of *key*: first peer with identifier >= hash(key)."""
        by_id = {p.n: p for p in self.ring_order()}
        return by_id[ring_successor(self.hash(key), by_id)]

    def is_stable(self) -> bool:
        """Do successor/predecessor pointers follow the sorted ring?"""
        ring = self.ring_order()
        for i, peer in enumerate(ring):
            if peer.successor is not ring[(i + 1) % len(ring)]:
                return False
            if peer.predecessor is not ring[i - 1]:
                return False
        return True
