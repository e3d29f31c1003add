import random

import pytest

from chord_ring import ChordNetwork


def int_hash(value: str, bits: int) -> int:
    """Identity hash: peer "6" sits at identifier 6."""
    return int(value) % (1 << bits)


def build_numeric_ring(ids, bits=3, use_successor_only=False,
                       stabilize_interval=None, seed=7):
    """Join peers named after their identifiers, in the given order."""
    network = ChordNetwork(bits, hash_function=int_hash,
                           rng=random.Random(seed),
                           stabilize_interval=stabilize_interval,
                           use_successor_only=use_successor_only)
    peers = [network.create_peer(str(i)) for i in ids]
    return network, peers


@pytest.fixture
def numeric_ring():
    networks = []

    def factory(ids, **kwargs):
        network, peers = build_numeric_ring(ids, **kwargs)
        networks.append(network)
        return network, peers

    yield factory
    for network in networks:
        network.shutdown()
