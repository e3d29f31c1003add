"""Chord protocol: join, stabilize/notify, routing and data items.

Every network here runs without background threads, so each test
decides exactly when stabilization happens.

Run:  pytest tests/test_chord.py -v
"""

import random
import statistics
import threading

import pytest

from chord_ring import (
    ChordNetwork,
    ChordPeer,
    MessageType,
    generate_keys,
    generate_node_names,
    ring_successor,
)
from chord_ring.scheduling import update_all_fingers, update_fingers

from conftest import int_hash

ID_BITS = 16

MODES = [
    pytest.param(True, id="successor-only"),
    pytest.param(False, id="finger-table"),
]


# ──────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────

def build_network(num_nodes, use_successor_only, id_bits=ID_BITS,
                  fix_fingers=False, seed=42):
    """Join *num_nodes* peers and stabilize until the ring is consistent."""
    network = ChordNetwork(id_bits, rng=random.Random(seed),
                           stabilize_interval=None,
                           use_successor_only=use_successor_only)
    for name in generate_node_names(num_nodes, id_bits):
        network.create_peer(name)
    for _ in range(num_nodes * 3):
        if network.is_stable():
            break
        network.stabilize_all()
    assert network.is_stable()
    if fix_fingers:
        update_all_fingers(network)
    return network


def pointers(peer):
    return int(peer.successor.node_id), int(peer.predecessor.node_id)


def finger_snapshot(network):
    return {p.node_id: [n.node_id if n else None for n in p.finger.nodes()]
            for p in network.peers()}


# ──────────────────────────────────────────────────────────────────────
# 1. Join and stabilization
# ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("use_successor_only", MODES)
def test_three_peer_convergence(numeric_ring, use_successor_only):
    network, (p1, p3, p6) = numeric_ring(
        [1, 3, 6], use_successor_only=use_successor_only)
    for peer in (p1, p3, p6):
        peer.stabilize(peer)

    assert pointers(p1) == (3, 6)
    assert pointers(p3) == (6, 1)
    assert pointers(p6) == (1, 3)
    assert network.is_stable()


def test_successor_only_join_is_consistent_immediately(numeric_ring):
    network, _ = numeric_ring([1, 3, 6], use_successor_only=True)
    assert network.is_stable()


@pytest.mark.parametrize("use_successor_only", MODES)
def test_single_peer_ring(numeric_ring, use_successor_only):
    network, (peer,) = numeric_ring([5], use_successor_only=use_successor_only)
    assert peer.successor is peer
    assert peer.predecessor is peer

    peer.stabilize(peer)
    assert peer.successor is peer
    assert peer.predecessor is peer
    for key in ["0", "4", "5", "6", "7"]:
        assert peer.lookup_node_for_item(None, key) is peer


def test_first_peer_joins_without_bootstrap(numeric_ring):
    _, (peer,) = numeric_ring([2])
    assert peer.finger.get(0).node is peer
    assert all(entry.node is None for entry in list(peer.finger)[1:])


@pytest.mark.parametrize("use_successor_only", MODES)
def test_successors_form_single_cycle(use_successor_only):
    network = build_network(25, use_successor_only)
    start = network.peers()[0]
    visited = [start]
    peer = start.successor
    while peer is not start:
        visited.append(peer)
        peer = peer.successor
        assert len(visited) <= network.peer_count
    assert {p.node_id for p in visited} == {p.node_id for p in network.peers()}


def test_notify_adopts_closer_candidate_and_restabilizes_old(numeric_ring):
    network, (p2, p5) = numeric_ring([2, 5])
    network.stabilize_all(2)
    assert p5.predecessor is p2

    # a detached peer at 4 sits between 2 and 5
    p4 = ChordPeer(network, "4")
    p4._set_successor(p5)
    p5.notify(p4)
    assert p5.predecessor is p4
    # the cascade re-stabilized 2, which now points at 4
    assert p2.successor is p4


def test_notify_ignores_farther_candidate(numeric_ring):
    _, (p1, p3, p6) = numeric_ring([1, 3, 6])
    for peer in (p1, p3, p6):
        peer.stabilize(peer)
    p6.notify(p1)
    assert p6.predecessor is p3


def test_notify_from_self_is_ignored(numeric_ring):
    _, (peer,) = numeric_ring([4])
    peer.notify(peer)
    assert peer.predecessor is peer


def test_late_joiner_between_peers(numeric_ring):
    network, (p0, p4) = numeric_ring([0, 4])
    network.stabilize_all(2)
    p2 = network.create_peer("2")
    p2.stabilize(p2)
    assert p0.successor is p2
    assert p2.successor is p4
    assert p4.predecessor is p2
    assert p2.predecessor is p0


# ──────────────────────────────────────────────────────────────────────
# 2. Finger tables
# ──────────────────────────────────────────────────────────────────────

def test_fix_fingers_points_at_ring_successors():
    network = build_network(20, False, fix_fingers=True)
    ids = [p.n for p in network.peers()]
    for peer in network.peers():
        for entry in peer.finger:
            assert entry.node.n == ring_successor(entry.start, ids)


def test_fix_fingers_twice_is_idempotent():
    network = build_network(20, False, fix_fingers=True)
    first = finger_snapshot(network)
    update_all_fingers(network)
    assert finger_snapshot(network) == first


def test_fix_fingers_single_row(numeric_ring):
    network, (p1, p3, p6) = numeric_ring([1, 3, 6])
    for peer in (p1, p3, p6):
        peer.stabilize(peer)
    p1.fix_fingers(2, 2)
    # row 2 of peer 1 starts at 5, owned by 6
    assert p1.finger.get(2).node is p6
    assert p1.finger.get(1).node is None


def test_update_fingers_clamps_indices(numeric_ring):
    network, (p1, p3, p6) = numeric_ring([1, 3, 6])
    network.stabilize_all()
    assert update_fingers(p3, -4, 99) == (0, 2)
    assert [n.node_id for n in p3.finger.nodes()] == ["6", "6", "1"]


# ──────────────────────────────────────────────────────────────────────
# 3. Lookup routing
# ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("fix_fingers", [False, True])
@pytest.mark.parametrize("use_successor_only", MODES)
def test_lookup_finds_ring_successor(use_successor_only, fix_fingers):
    network = build_network(15, use_successor_only, fix_fingers=fix_fingers)
    keys = generate_keys(60)
    for entry in network.peers():
        for key in keys:
            owner = entry.lookup_node_for_item(None, key)
            assert owner is network.expected_owner(key), (
                f"lookup of {key!r} from {entry!r} returned {owner!r}")


def test_routing_modes_agree():
    linear = build_network(15, True)
    routed = build_network(15, False, fix_fingers=True)
    for key in generate_keys(100, seed=7):
        for a, b in zip(linear.peers(), routed.peers()):
            assert (a.lookup_node_for_item(None, key).node_id
                    == b.lookup_node_for_item(None, key).node_id)


def test_key_equal_to_peer_identifier_is_owned_by_that_peer(numeric_ring):
    network, peers = numeric_ring([1, 3, 6], use_successor_only=True)
    network.stabilize_all()
    for entry in peers:
        assert entry.lookup_node_for_item(None, "3").node_id == "3"
        assert entry.lookup_node_for_item(None, "4").node_id == "6"
        assert entry.lookup_node_for_item(None, "7").node_id == "1"


def test_finger_routing_uses_fewer_messages():
    keys = generate_keys(100)
    means = {}
    for successor_only in (True, False):
        network = build_network(32, successor_only, fix_fingers=True)
        peers = network.peers()
        network.clear_logs()
        costs = [network.lookup(random.Random(k).choice(peers), k).message_count
                 for k in keys]
        means[successor_only] = statistics.mean(costs)
    assert means[False] < means[True]


# ──────────────────────────────────────────────────────────────────────
# 4. Data items
# ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("use_successor_only", MODES)
def test_set_then_get_round_trip(use_successor_only):
    network = build_network(10, use_successor_only, fix_fingers=True)
    rng = random.Random(3)
    owner = network.set(rng.choice(network.peers()), "Test", "Value")

    assert owner is network.expected_owner("Test")
    assert owner.has_data_item("Test")
    for entry in network.peers():
        assert network.get(entry, "Test") == "Value"
    assert network.get(rng.choice(network.peers()), "missing") is None
    holders = [p for p in network.peers() if p.has_data_item("Test")]
    assert holders == [owner]


def test_data_access_never_reroutes(numeric_ring):
    _, (p1, p3, p6) = numeric_ring([1, 3, 6])
    p1.set_data_item(None, "5", "stored locally")
    assert p1.get_data_item(None, "5") == "stored locally"
    assert p6.get_data_item(None, "5") is None
    assert p1.local_data == {"5": "stored locally"}


# ──────────────────────────────────────────────────────────────────────
# 5. Message log
# ──────────────────────────────────────────────────────────────────────

def test_client_lookup_is_logged_and_self_calls_are_not(numeric_ring):
    network, (p1, p3, p6) = numeric_ring([1, 3, 6])
    network.stabilize_all()
    network.clear_logs()

    network.set(p1, "4", "x")
    messages = network.messages()
    assert messages[0].msg_type is MessageType.LOOKUP
    assert messages[0].source_id is None
    assert messages[0].destination_id == "1"
    assert all(m.source_id != m.destination_id for m in messages)
    assert network.message_count(MessageType.SET) == 1
    assert network.message_count(MessageType.SET_RESPONSE) == 1


def test_stabilize_round_emits_chord_messages(numeric_ring):
    network, (p1, p3, p6) = numeric_ring([1, 3, 6])
    network.clear_logs()
    p3.stabilize(p3)
    types = {m.msg_type for m in network.messages()}
    assert MessageType.CHORD_GET_PREDECESSOR in types
    assert MessageType.CHORD_NOTIFY in types
    assert MessageType.CHORD_NOTIFY_RESPONSE in types


# ──────────────────────────────────────────────────────────────────────
# 6. Large rings and joining peers
# ──────────────────────────────────────────────────────────────────────

def wire_ring(ids, bits):
    """Consistent successor-only ring built by setting pointers directly."""
    network = ChordNetwork(bits, hash_function=int_hash,
                           stabilize_interval=None, use_successor_only=True)
    peers = [ChordPeer(network, str(i), use_successor_only=True) for i in ids]
    for i, peer in enumerate(peers):
        peer._set_successor(peers[(i + 1) % len(peers)])
        peer.set_predecessor(None, peers[i - 1])
        network.add_peer(peer)
    return network, peers


def test_successor_walk_around_large_ring():
    network, peers = wire_ring(range(0, 2400, 2), bits=12)
    assert network.is_stable()
    network.clear_logs()

    # owner of key 0 is the peer right behind the entry: N-1 hops
    assert peers[1].lookup_node_for_item(None, "0") is peers[0]
    assert network.message_count(MessageType.LOOKUP) == len(peers) - 1
    assert network.message_count(MessageType.LOOKUP_RESPONSE) == len(peers) - 1


def test_successor_walk_message_trace(numeric_ring):
    network, (p1, p3, p6) = numeric_ring([1, 3, 6], use_successor_only=True)
    network.clear_logs()

    assert p1.lookup_node_for_item(None, "0") is p1
    req, resp = MessageType.LOOKUP, MessageType.LOOKUP_RESPONSE
    trace = [(m.msg_type, m.source_id, m.destination_id)
             for m in network.messages()]
    assert trace == [
        (req, None, "1"), (req, "1", "3"), (req, "3", "6"),
        (resp, "6", "3"), (resp, "3", "1"), (resp, "1", None),
    ]


@pytest.mark.parametrize("use_successor_only", MODES)
def test_joining_peer_is_hidden_from_clients(numeric_ring, monkeypatch,
                                             use_successor_only):
    network, (p1, p6) = numeric_ring([1, 6],
                                     use_successor_only=use_successor_only)
    network.stabilize_all(rounds=2)
    assert network.is_stable()

    entered, release = threading.Event(), threading.Event()
    visible_after_join = []
    join = ChordPeer.join

    def held_join(peer, bootstrap):
        entered.set()
        assert release.wait(5)
        join(peer, bootstrap)
        visible_after_join.append(network.get_peer(peer.node_id))

    monkeypatch.setattr(ChordPeer, "join", held_join)
    joiner = threading.Thread(target=network.create_peer, args=("3",))
    joiner.start()
    try:
        assert entered.wait(5)
        assert network.get_peer("3") is None
        assert network.peer_count == 2
        for _ in range(20):
            entry = network.random_peer()
            assert entry is p1 or entry is p6
            assert network.set(entry, "1", "v") is p1
            assert network.get(entry, "1") == "v"
    finally:
        release.set()
        joiner.join(timeout=5)

    # join finished before the peer was registered
    assert visible_after_join == [None]
    p3 = network.get_peer("3")
    assert p3.successor is p6

    network.stabilize_all()
    assert network.is_stable()
    assert network.set(p3, "1", "w") is p1
    assert network.get(p6, "1") == "w"
