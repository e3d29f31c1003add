"""Chord ring simulator.

An in-process Chord overlay: ring arithmetic, finger tables, the
join/stabilize/notify protocol, successor-only and finger-table routing,
plus a fully connected overlay for comparison.
"""

from .base import (
    ConfigurationError,
    LookupResult,
    Network,
    PeerNode,
    generate_keys,
    generate_node_names,
)
from .chord import ChordNetwork, ChordPeer
from .finger_table import FingerEntry, FingerTable
from .fully_connected import FullyConnectedNetwork, FullyConnectedPeer
from .messages import Message, MessageLog, MessageType
from .overlay import OverlayKind, new_network
from .ring import is_element_of, ring_successor, sha1_hash
from .scheduling import update_all_fingers, update_fingers

__all__ = [
    "ChordNetwork",
    "ChordPeer",
    "ConfigurationError",
    "FingerEntry",
    "FingerTable",
    "FullyConnectedNetwork",
    "FullyConnectedPeer",
    "LookupResult",
    "Message",
    "MessageLog",
    "MessageType",
    "Network",
    "OverlayKind",
    "PeerNode",
    "generate_keys",
    "generate_node_names",
    "is_element_of",
    "new_network",
    "ring_successor",
    "sha1_hash",
    "update_all_fingers",
    "update_fingers",
]
