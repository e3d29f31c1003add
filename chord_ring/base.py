"""Base classes shared by every overlay.

Provides the abstract peer and network (the registry of live peers),
reference-counted connection bookkeeping, and helpers for generating
deterministic peer names and test keys.
"""

import logging
import random
import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Optional

from . import config
from .messages import MessageLog, MessageType
from .ring import HashFunction, is_element_of, sha1_hash

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when a network cannot be built from the given settings."""


@dataclass
class LookupResult:
    """Owner of a key as resolved from one entry peer."""
    key: str
    key_id: int
    owner: "PeerNode"
    message_count: int


class Connections:
    """Reference-counted adjacency of one peer, for rendering only."""

    def __init__(self, owner_id: str):
        self._owner_id = owner_id
        self._lock = threading.Lock()
        self._counts: Counter = Counter()

    def add(self, to_id: str):
        if to_id == self._owner_id:
            return
        with self._lock:
            self._counts[to_id] += 1

    def remove(self, to_id: str):
        with self._lock:
            count = self._counts.get(to_id)
            if not count:
                return
            if count == 1:
                del self._counts[to_id]
            else:
                self._counts[to_id] = count - 1

    def count(self, to_id: str) -> int:
        with self._lock:
            return self._counts.get(to_id, 0)

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._counts)

    def __contains__(self, to_id: str) -> bool:
        with self._lock:
            return to_id in self._counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)


class PeerNode(ABC):
    """A member of an overlay: identity, local store and connections.

    ``n`` is the peer's ring identifier, hashed once from ``node_id``.
    ``origin`` arguments name the calling peer and only serve the message
    log; ``None`` is the client.
    """

    def __init__(self, network: "Network", node_id: str):
        self.network = network
        self.node_id = node_id
        self.n = network.hash(node_id)
        self.connections = Connections(node_id)
        self._data: dict[str, str] = {}
        self._data_lock = threading.Lock()

    @abstractmethod
    def get_data_item(self, origin: Optional["PeerNode"],
                      key: str) -> Optional[str]:
        """Return the value stored for *key*, ``None`` if absent."""
        ...

    @abstractmethod
    def set_data_item(self, origin: Optional["PeerNode"], key: str,
                      value: str):
        ...

    @abstractmethod
    def lookup_node_for_item(self, origin: Optional["PeerNode"],
                             key: str) -> "PeerNode":
        """Return the peer where *key* is (or should be) stored."""
        ...

    def has_data_item(self, key: str) -> bool:
        with self._data_lock:
            return key in self._data

    @property
    def local_data(self) -> dict[str, str]:
        with self._data_lock:
            return dict(sorted(self._data.items()))

    def _read_local(self, key: str) -> Optional[str]:
        with self._data_lock:
            return self._data.get(key)

    def _write_local(self, key: str, value: str):
        with self._data_lock:
            self._data[key] = value

    def __repr__(self) -> str:
        return f"{self.node_id} - {self.n}"


class Network(ABC):
    """Registry of live peers plus the shared message log.

    Peers live in this process and call each other directly; the network
    lets any peer pick a bootstrap and records passed messages.
    """

    def __init__(self, bits: int = config.DEFAULT_NETWORK_BITS,
                 hash_function: HashFunction = sha1_hash,
                 rng: Optional[random.Random] = None):
        if not config.MIN_NETWORK_BITS <= bits <= config.MAX_NETWORK_BITS:
            raise ConfigurationError(
                f"Number of bits: {bits} not supported "
                f"(expected {config.MIN_NETWORK_BITS}.."
                f"{config.MAX_NETWORK_BITS})")
        self.bits = bits
        self.id_space = 1 << bits
        self.message_log = MessageLog()
        self._hash_function = hash_function
        self._rng = rng if rng is not None else random.Random()
        self._peers: dict[str, PeerNode] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Overlay-specific behaviour
    # ------------------------------------------------------------------

    @abstractmethod
    def create_peer(self, node_id: str,
                    use_successor_only: Optional[bool] = None) -> PeerNode:
        """Create a new peer, connect it to the overlay and register it.

        ``use_successor_only`` selects the routing mode where the overlay
        has one; ``None`` keeps the network's default.
        """
        ...

    @abstractmethod
    def arrange_overlay_structure(self):
        ...

    # ------------------------------------------------------------------
    # Identifier space
    # ------------------------------------------------------------------

    def hash(self, value: str) -> int:
        return self._hash_function(value, self.bits)

    def is_element_of(self, value: int, start: int, end: int,
                      start_inclusive: bool, end_inclusive: bool) -> bool:
        return is_element_of(value, start, end, start_inclusive,
                             end_inclusive, self.bits)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_peer(self, peer: PeerNode):
        with self._lock:
            self._peers[peer.node_id] = peer
        logger.debug("registered peer %r", peer)

    def get_peer(self, node_id: str) -> Optional[PeerNode]:
        with self._lock:
            return self._peers.get(node_id)

    def random_peer(self) -> Optional[PeerNode]:
        with self._lock:
            if not self._peers:
                return None
            return self._rng.choice(list(self._peers.values()))

    def peers(self) -> list[PeerNode]:
        with self._lock:
            return list(self._peers.values())

    def __iter__(self) -> Iterator[PeerNode]:
        return iter(self.peers())

    @property
    def peer_count(self) -> int:
        with self._lock:
            return len(self._peers)

    # ------------------------------------------------------------------
    # Message log
    # ------------------------------------------------------------------

    def log_message(self, msg_type: MessageType,
                    from_peer: Optional[PeerNode],
                    to_peer: Optional[PeerNode]):
        from_id = from_peer.node_id if from_peer is not None else None
        to_id = to_peer.node_id if to_peer is not None else None
        self.message_log.record(msg_type, from_id, to_id)

    def messages(self):
        return self.message_log.snapshot()

    def message_count(self, msg_type: Optional[MessageType] = None) -> int:
        return self.message_log.count(msg_type)

    def clear_logs(self):
        self.message_log.clear()

    # ------------------------------------------------------------------
    # Client operations
    # ------------------------------------------------------------------

    def lookup(self, entry: PeerNode, key: str) -> LookupResult:
        """Resolve the owner of *key* starting at *entry*.

        ``message_count`` is the growth of the message log during the
        lookup, so it is exact only while no background traffic runs.
        """
        before = self.message_log.count()
        owner = entry.lookup_node_for_item(None, key)
        return LookupResult(key, self.hash(key), owner,
                            self.message_log.count() - before)

    def get(self, entry: PeerNode, key: str) -> Optional[str]:
        owner = entry.lookup_node_for_item(None, key)
        return owner.get_data_item(None, key)

    def set(self, entry: PeerNode, key: str, value: str) -> PeerNode:
        owner = entry.lookup_node_for_item(None, key)
        owner.set_data_item(None, key, value)
        return owner

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def shutdown(self):
        self._stop.set()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False


# ---------------------------------------------------------------------------
# Deterministic name / key generators (for reproducible tests and benchmarks)
# ---------------------------------------------------------------------------

def generate_node_names(count: int, bits: int,
                        hash_function: HashFunction = sha1_hash,
                        prefix: str = config.NODE_NAME_PREFIX) -> list[str]:
    """Return *count* peer names whose identifiers do not collide."""
    if count > 1 << bits:
        raise ValueError(f"cannot place {count} peers on a {bits}-bit ring")
    names: list[str] = []
    seen: set[int] = set()
    i = 0
    while len(names) < count:
        name = f"{prefix}{i}"
        ident = hash_function(name, bits)
        if ident not in seen:
            seen.add(ident)
            names.append(name)
        i += 1
    return names


def generate_keys(count: int, seed: int = 123) -> list[str]:
    """Return *count* deterministic test keys."""
    return [f"key-{seed}-{i}" for i in range(count)]
