"""Fully connected overlay.

Every peer knows every other peer.  There is no notion of an owner: a
value is stored wherever the client sets it, and a client get that
misses locally is broadcast to all connections.
"""

import logging
from typing import Optional

from .base import Network, PeerNode
from .messages import MessageType

logger = logging.getLogger(__name__)


class FullyConnectedPeer(PeerNode):

    def set_data_item(self, origin: Optional[PeerNode], key: str,
                      value: str):
        self.network.log_message(MessageType.SET, origin, self)
        self._write_local(key, value)
        self.network.log_message(MessageType.SET_RESPONSE, self, origin)

    def get_data_item(self, origin: Optional[PeerNode],
                      key: str) -> Optional[str]:
        self.network.log_message(MessageType.GET, origin, self)
        value = self._read_local(key)

        # only client queries are broadcast, peers answer from local data
        if value is None and origin is None:
            for node_id in sorted(self.connections.ids()):
                peer = self.network.get_peer(node_id)
                if peer is None:
                    continue
                value = peer.get_data_item(self, key)
                if value is not None:
                    break

        self.network.log_message(MessageType.GET_RESPONSE, self, origin)
        return value

    def lookup_node_for_item(self, origin: Optional[PeerNode],
                             key: str) -> "FullyConnectedPeer":
        self.network.log_message(MessageType.LOOKUP, origin, self)
        self.network.log_message(MessageType.LOOKUP_RESPONSE, self, origin)
        return self


class FullyConnectedNetwork(Network):

    def create_peer(self, node_id: str,
                    use_successor_only: Optional[bool] = None
                    ) -> FullyConnectedPeer:
        peer = FullyConnectedPeer(self, node_id)
        self.add_peer(peer)
        logger.info("peer %r added", peer)
        return peer

    def arrange_overlay_structure(self):
        """Connect every pair of peers."""
        peers = self.peers()
        for p1 in peers:
            for p2 in peers:
                if p1 is not p2 and p2.node_id not in p1.connections:
                    p1.connections.add(p2.node_id)
