"""Command-line bootstrap.

Builds a network, joins the initial peers, stores one item through a
random peer and reads it back through another, then prints the ring
state and message statistics.

Usage
-----
    chord-ring --debug --run-for 3 --plot ring.png
"""

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from . import config
from .base import ConfigurationError
from .chord import ChordNetwork
from .overlay import OverlayKind, new_network
from .scheduling import update_all_fingers

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chord-ring",
        description="Simulate a Chord (or fully connected) peer-to-peer overlay.")
    parser.add_argument(
        "--debug", action="store_true",
        help=f"Debug mode: use {config.DEBUG_INITIAL_NODES} nodes and "
             f"{config.DEBUG_NETWORK_BITS} network bits, overriding the "
             f"values given.")
    parser.add_argument(
        "-fcn", "--fully-connected", action="store_true",
        help="Use the fully connected overlay instead of Chord.")
    parser.add_argument(
        "--initial-nodes", type=int, default=config.DEFAULT_INITIAL_NODES,
        help="Number of initial nodes (default: %(default)s).")
    parser.add_argument(
        "--network-bits", type=int, default=config.DEFAULT_NETWORK_BITS,
        help="Width m of the identifier space (default: %(default)s).")
    parser.add_argument(
        "--stabilize", type=float, default=config.STABILIZE_INTERVAL,
        help="Per-peer stabilize interval in seconds; 0 disables the "
             "background schedule (default: %(default)s).")
    parser.add_argument(
        "--finger-update-interval", type=float, default=0.0,
        help="Fix one random finger every N seconds; 0 disables "
             "(default: %(default)s).")
    parser.add_argument(
        "--use-successor-only", action="store_true",
        help="Route lookups along successors only, not the finger table.")
    parser.add_argument(
        "--fix-fingers", action="store_true",
        help="Fix every finger of every peer before storing the item.")
    parser.add_argument(
        "--run-for", type=float, default=0.0,
        help="Seconds to let background stabilization run before reporting.")
    parser.add_argument(
        "--key", default="Test", help="Key of the item to store.")
    parser.add_argument(
        "--value", default="Value", help="Value of the item to store.")
    parser.add_argument(
        "--plot", metavar="PATH",
        help="Write a rendering of the ring and its messages to PATH.")
    parser.add_argument(
        "--log-level", default=config.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def _report(network, out):
    print(f"peers: {network.peer_count}  bits: {network.bits}", file=out)
    if isinstance(network, ChordNetwork):
        for peer in network.ring_order():
            print(f"  {peer!r}: successor={peer.successor!r} "
                  f"predecessor={peer.predecessor!r} "
                  f"data={peer.local_data}", file=out)
        print(f"ring stable: {network.is_stable()}", file=out)
    else:
        for peer in network.peers():
            print(f"  {peer!r}: data={peer.local_data}", file=out)
    counts = network.message_log.counts_by_type()
    print(f"messages: {sum(counts.values())}", file=out)
    for msg_type, count in sorted(counts.items(), key=lambda kv: kv[0].name):
        print(f"  {msg_type.name:<42} {count}", file=out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format=config.LOG_FORMAT)

    if args.debug:
        args.initial_nodes = config.DEBUG_INITIAL_NODES
        args.network_bits = config.DEBUG_NETWORK_BITS

    try:
        if args.fully_connected:
            network = new_network(OverlayKind.FULLY_CONNECTED,
                                  args.network_bits)
        else:
            network = new_network(
                OverlayKind.CHORD, args.network_bits,
                stabilize_interval=args.stabilize or None,
                use_successor_only=args.use_successor_only)
    except ConfigurationError as e:
        print(f"chord-ring: {e}", file=sys.stderr)
        return 2

    with network:
        if args.finger_update_interval > 0 and isinstance(network, ChordNetwork):
            network.start_finger_updates(args.finger_update_interval)

        for i in range(args.initial_nodes):
            network.create_peer(f"{config.NODE_NAME_PREFIX}{i}")
        network.arrange_overlay_structure()

        if args.run_for > 0:
            time.sleep(args.run_for)
        if args.fix_fingers and isinstance(network, ChordNetwork):
            update_all_fingers(network)

        if network.peer_count:
            owner = network.set(network.random_peer(), args.key, args.value)
            value = network.get(network.random_peer(), args.key)
            logger.info("stored %r at %r, read back %r",
                        args.key, owner, value)

        _report(network, sys.stdout)
        if args.plot:
            from .plotting import render_ring
            render_ring(network, args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
