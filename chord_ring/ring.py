"""Identifier-space arithmetic for the Chord ring.

All functions are pure.  Identifiers are integers in ``[0, 2**bits)`` and
every interval is an arc of the ring which may wrap through 0.
"""

import hashlib
from typing import Callable, Iterable

HashFunction = Callable[[str, int], int]


def sha1_hash(value: str, bits: int) -> int:
    """Hash a string into the identifier space of width *bits*.

    Uses the first seven bytes of the SHA-1 digest (little-endian), which
    covers the widest supported ring of 56 bits.
    """
    digest = hashlib.sha1(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:7], "little") % (1 << bits)


def _in_closed_sector(value: int, start: int, end: int) -> bool:
    """Is *value* in ``[start, end]``, where ``start > end`` crosses 0?"""
    if start <= end:
        return start <= value <= end
    return value >= start or value <= end


def is_element_of(value: int, start: int, end: int,
                  start_inclusive: bool, end_inclusive: bool,
                  bits: int) -> bool:
    """Is *value* on the arc from *start* to *end*?

    ``start_inclusive`` / ``end_inclusive`` select ``[`` / ``(`` and
    ``]`` / ``)``.  Inputs must already be reduced modulo ``2**bits``.
    """
    size = 1 << bits
    if not start_inclusive and not end_inclusive:
        # (i, i+1) and (2^m-1, 0) are empty; normalizing would invert them
        if start == end - 1:
            return False
        if start == size - 1 and end == 0:
            return False
    if not start_inclusive:
        start += 1
        if start == size:
            start = 0
    if not end_inclusive:
        end -= 1
        if end == -1:
            end = size - 1
    return _in_closed_sector(value, start, end)


def ring_successor(identifier: int, identifiers: Iterable[int]) -> int:
    """First identifier at or after *identifier*, wrapping around 0."""
    sorted_ids = sorted(identifiers)
    for nid in sorted_ids:
        if nid >= identifier:
            return nid
    return sorted_ids[0]
