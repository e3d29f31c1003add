"""Message history for statistics and rendering.

Every call that crosses from one peer to another records a ``Message``.
Calls a peer makes on itself are local and are not recorded.
"""

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MessageType(Enum):
    GET = "get"
    GET_RESPONSE = "get-response"
    SET = "set"
    SET_RESPONSE = "set-response"
    LOOKUP = "lookup"
    LOOKUP_RESPONSE = "lookup-response"
    CHORD_GET_SUCCESSOR = "get-successor"
    CHORD_GET_SUCCESSOR_RESPONSE = "get-successor-response"
    CHORD_GET_PREDECESSOR = "get-predecessor"
    CHORD_GET_PREDECESSOR_RESPONSE = "get-predecessor-response"
    CHORD_SET_PREDECESSOR = "set-predecessor"
    CHORD_SET_PREDECESSOR_RESPONSE = "set-predecessor-response"
    CHORD_FIND_SUCCESSOR = "find-successor"
    CHORD_FIND_SUCCESSOR_RESPONSE = "find-successor-response"
    CHORD_FIND_PREDECESSOR = "find-predecessor"
    CHORD_FIND_PREDECESSOR_RESPONSE = "find-predecessor-response"
    CHORD_CLOSEST_PRECEDING_FINGER = "closest-preceding-finger"
    CHORD_CLOSEST_PRECEDING_FINGER_RESPONSE = "closest-preceding-finger-response"
    CHORD_NOTIFY = "notify"
    CHORD_NOTIFY_RESPONSE = "notify-response"
    CHORD_STABILIZE = "stabilize"
    CHORD_STABILIZE_RESPONSE = "stabilize-response"


@dataclass(frozen=True)
class Message:
    """One passed message.  ``None`` ids stand for the client."""
    msg_type: MessageType
    source_id: Optional[str]
    destination_id: Optional[str]
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return (f"{self.timestamp:.3f} {self.msg_type.name} "
                f"{self.source_id} -> {self.destination_id}")


class MessageLog:
    """Thread-safe, append-only list of passed messages."""

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: list[Message] = []

    def record(self, msg_type: MessageType, source_id: Optional[str],
               destination_id: Optional[str]) -> Optional[Message]:
        if source_id is not None and source_id == destination_id:
            return None
        msg = Message(msg_type, source_id, destination_id)
        with self._lock:
            self._messages.append(msg)
        return msg

    def snapshot(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    def count(self, msg_type: Optional[MessageType] = None) -> int:
        with self._lock:
            if msg_type is None:
                return len(self._messages)
            return sum(1 for m in self._messages if m.msg_type is msg_type)

    def counts_by_type(self) -> Counter:
        with self._lock:
            return Counter(m.msg_type for m in self._messages)

    def clear(self):
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        return self.count()
