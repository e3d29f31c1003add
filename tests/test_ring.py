"""Identifier-space arithmetic on small rings.

Run:  pytest tests/test_ring.py -v
"""

import pytest

from chord_ring.ring import is_element_of, ring_successor, sha1_hash

M = 3  # ring of 8 identifiers


# ──────────────────────────────────────────────────────────────────────
# Hashing
# ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("bits", [2, 3, 8, 24, 56])
def test_hash_range(bits):
    for value in ["Node_0", "Node_1", "Test", "", "ünïcødé"]:
        assert 0 <= sha1_hash(value, bits) < (1 << bits)


def test_hash_is_stable_and_spreads():
    assert sha1_hash("Node_0", 24) == sha1_hash("Node_0", 24)
    ids = {sha1_hash(f"Node_{i}", 24) for i in range(100)}
    assert len(ids) > 95


def test_hash_narrow_ring_is_reduction_of_wide_ring():
    wide = sha1_hash("Test", 56)
    assert sha1_hash("Test", 8) == wide % 256


# ──────────────────────────────────────────────────────────────────────
# Interval membership
# ──────────────────────────────────────────────────────────────────────

def test_closed_start_half_open_arc():
    assert is_element_of(5, 5, 6, True, False, M)
    assert not is_element_of(6, 5, 6, True, False, M)


@pytest.mark.parametrize("value,expected", [
    (0, True), (1, True), (2, True),
    (3, False), (4, False), (5, False), (6, False), (7, False),
])
def test_half_open_arc_wraps_through_zero(value, expected):
    assert is_element_of(value, 7, 2, False, True, M) is expected


@pytest.mark.parametrize("start,end", [(4, 5), (0, 1), (6, 7), (7, 0)])
def test_open_arc_between_neighbours_is_empty(start, end):
    assert not any(is_element_of(h, start, end, False, False, M)
                   for h in range(1 << M))


def test_closed_arc_wrapping():
    members = [h for h in range(1 << M) if is_element_of(h, 6, 1, True, True, M)]
    assert members == [0, 1, 6, 7]


def test_degenerate_arcs():
    ring = range(1 << M)
    # (x, x] is the whole ring, (x, x) everything but x, [x, x] only x
    assert all(is_element_of(h, 3, 3, False, True, M) for h in ring)
    assert [h for h in ring if not is_element_of(h, 3, 3, False, False, M)] == [3]
    assert [h for h in ring if is_element_of(h, 3, 3, True, True, M)] == [3]


def test_open_arc_with_gap():
    members = [h for h in range(1 << M) if is_element_of(h, 6, 2, False, False, M)]
    assert members == [0, 1, 7]


# ──────────────────────────────────────────────────────────────────────
# Ground truth
# ──────────────────────────────────────────────────────────────────────

def test_ring_successor():
    ids = [6, 1, 3]
    assert ring_successor(0, ids) == 1
    assert ring_successor(1, ids) == 1
    assert ring_successor(2, ids) == 3
    assert ring_successor(5, ids) == 6
    assert ring_successor(7, ids) == 1
