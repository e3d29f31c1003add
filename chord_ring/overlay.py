"""Overlay selection."""

from enum import Enum

from . import config
from .base import ConfigurationError, Network
from .chord import ChordNetwork
from .fully_connected import FullyConnectedNetwork


class OverlayKind(Enum):
    CHORD = "chord"
    FULLY_CONNECTED = "fully-connected"


def new_network(kind: OverlayKind = OverlayKind.CHORD,
                bits: int = config.DEFAULT_NETWORK_BITS,
                **options) -> Network:
    """Build an empty network of the given overlay kind.

    *options* are passed to the network class; the fully connected
    overlay accepts only ``hash_function`` and ``rng``.
    """
    if kind is OverlayKind.CHORD:
        return ChordNetwork(bits, **options)
    if kind is OverlayKind.FULLY_CONNECTED:
        return FullyConnectedNetwork(bits, **options)
    raise ConfigurationError(f"unknown overlay kind: {kind!r}")
