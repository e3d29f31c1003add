"""Chord finger table.

Row ``k`` of the table owned by a peer with identifier ``n`` covers the
half-open arc ``[n + 2^k, n + 2^(k+1))`` and caches the peer currently
believed to own its start.  Row 0 therefore holds the successor.
"""

import logging
import threading
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class FingerEntry:

    def __init__(self, owner, n: int, m: int, k: int):
        self.owner = owner
        self.index = k
        self.start: int = (n + (1 << k)) % (1 << m)      # inclusive
        self.end: int = (n + (1 << (k + 1))) % (1 << m)  # exclusive
        self._node = None
        self._lock = threading.Lock()

    @property
    def node(self):
        with self._lock:
            return self._node

    @node.setter
    def node(self, node):
        with self._lock:
            previous = self._node
            if previous is not None:
                self.owner.connections.remove(previous.node_id)
            self._node = node
            self.owner.connections.add(node.node_id)
        if previous is not node:
            logger.debug("finger changed at %d: %s", self.owner.n, self)

    def __str__(self) -> str:
        return f"[{self.start},{self.end}) : {self._node!r}"


class FingerTable:

    def __init__(self, owner, m: int):
        self.owner = owner
        self._entries = [FingerEntry(owner, owner.n, m, k) for k in range(m)]

    def get(self, index: int) -> FingerEntry:
        return self._entries[index]

    def size(self) -> int:
        return len(self._entries)

    def nodes(self) -> list[Optional[object]]:
        """Snapshot of the cached node of every row."""
        return [entry.node for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FingerEntry]:
        return iter(self._entries)

    def __str__(self) -> str:
        return "".join(f"finger {i}: {entry}\n"
                       for i, entry in enumerate(self._entries))
