"""Static rendering of a network and of routing costs.

Peers sit on a circle at the angle of their identifier; dotted lines
are the connection bookkeeping and dashed coloured lines the recorded
messages.  The client is drawn at the top-left corner.
"""

import logging
from typing import Optional

import numpy as np
from matplotlib.figure import Figure

from .base import Network
from .messages import MessageType

logger = logging.getLogger(__name__)

CLIENT_XY = (-1.35, 1.35)

MESSAGE_COLORS = {
    MessageType.GET: "green",
    MessageType.GET_RESPONSE: "green",
    MessageType.SET: "orange",
    MessageType.SET_RESPONSE: "orange",
    MessageType.LOOKUP: "purple",
    MessageType.LOOKUP_RESPONSE: "purple",
}


def peer_angles(network: Network, node_ids) -> np.ndarray:
    hashes = np.array([network.hash(nid) for nid in node_ids], dtype=float)
    return hashes / network.id_space * 2 * np.pi


def _position(network: Network, positions: dict[str, tuple[float, float]],
              node_id: Optional[str]) -> tuple[float, float]:
    if node_id is None:
        return CLIENT_XY
    if node_id not in positions:
        # peer still joining when the message was recorded
        alpha = peer_angles(network, [node_id])[0]
        positions[node_id] = float(np.sin(alpha)), float(np.cos(alpha))
    return positions[node_id]


def render_ring(network: Network, out_path: str,
                show_messages: bool = True, title: str = "Peer-2-Peer ring"):
    """Draw peers, connections and (optionally) messages to *out_path*."""
    peers = network.peers()
    fig = Figure(figsize=(7, 7.8))
    ax = fig.add_subplot(1, 1, 1)

    theta = np.linspace(0, 2 * np.pi, 361)
    ax.plot(np.sin(theta), np.cos(theta), color="gold", linewidth=1)
    ax.plot(*CLIENT_XY, "s", color="red", markersize=8)

    angles = np.array([p.n for p in peers], dtype=float)
    angles = angles / network.id_space * 2 * np.pi
    xs, ys = np.sin(angles), np.cos(angles)
    positions = {p.node_id: (float(x), float(y))
                 for p, x, y in zip(peers, xs, ys)}

    seen: set[int] = set()
    connections = 0
    for peer, x, y in zip(peers, xs, ys):
        ident = peer.n
        if ident in seen:
            logger.warning("node hash duplicate for %s", peer.node_id)
        seen.add(ident)
        for to_id in sorted(peer.connections.ids()):
            x2, y2 = _position(network, positions, to_id)
            ax.plot([x, x2], [y, y2], linestyle=":", color="gray",
                    linewidth=0.8)
            connections += 1
        ax.annotate(str(ident), (x, y), xytext=(1.12 * x, 1.12 * y),
                    ha="center", va="center", fontsize=8)

    messages = network.messages()
    if show_messages:
        for msg in messages:
            x1, y1 = _position(network, positions, msg.source_id)
            x2, y2 = _position(network, positions, msg.destination_id)
            ax.plot([x1, x2], [y1, y2], linestyle="--", linewidth=0.8,
                    color=MESSAGE_COLORS.get(msg.msg_type, "lightsteelblue"))

    ax.plot(xs, ys, "s", color="blue", markersize=7, fillstyle="none")

    per_peer = connections // len(peers) if peers else 0
    stats = (
        f"Number of peers: {len(peers)}\n"
        f"Number of connections: {connections} per Peer: {per_peer}\n"
        f"Number of lookup/get/save queries: "
        f"{network.message_count(MessageType.LOOKUP)}/"
        f"{network.message_count(MessageType.GET)}/"
        f"{network.message_count(MessageType.SET)}\n"
        f"Number of messages: {len(messages)}"
    )
    ax.text(-1.4, -1.45, stats, va="top", fontsize=9, family="monospace")

    ax.set_xlim(-1.5, 1.5)
    ax.set_ylim(-1.9, 1.5)
    ax.set_aspect("equal")
    ax.axis("off")
    ax.set_title(title)
    fig.savefig(out_path, dpi=120, bbox_inches="tight")
    logger.info("wrote ring rendering to %s", out_path)


def plot_message_costs(costs: dict[str, dict[int, list[int]]], out_path: str):
    """Mean messages per lookup vs N, one line per routing mode."""
    fig = Figure(figsize=(6, 4))
    ax = fig.add_subplot(1, 1, 1)
    for mode, by_n in costs.items():
        ns = sorted(by_n)
        means = [float(np.mean(by_n[n])) for n in ns]
        ax.plot(ns, means, "o-", linewidth=2, markersize=6, label=mode)
    all_ns = sorted({n for by_n in costs.values() for n in by_n})
    if all_ns:
        x_curve = np.linspace(min(all_ns), max(all_ns), 200)
        ax.plot(x_curve, np.log2(x_curve), "--", color="gray",
                linewidth=1.2, label=r"$\log_2 N$")
        ax.set_xticks(all_ns)
    ax.set_xlabel("Network size N")
    ax.set_ylabel("Mean messages per lookup")
    ax.set_title("Chord: lookup cost by routing mode")
    ax.legend()
    fig.tight_layout()
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
