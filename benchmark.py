"""Chord routing-mode benchmark.

Builds Chord rings of increasing size and compares successor-only
routing with finger-table routing: messages per lookup, correctness
against the sorted ring, and join cost.

Usage
-----
    python benchmark.py [--plot figures/routing_costs.png]
"""

import argparse
import random
import statistics
import time

from chord_ring import ChordNetwork, generate_keys, generate_node_names
from chord_ring.plotting import plot_message_costs
from chord_ring.scheduling import update_all_fingers

ID_BITS = 16
N_VALUES = [5, 10, 20, 50]

MODES = {
    "successor-only": True,
    "finger-table":   False,
}


# ──────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────

def build_network(num_nodes, use_successor_only, id_bits=ID_BITS,
                  stabilize_rounds=None):
    """Join *num_nodes* peers, stabilize, and fix every finger."""
    if stabilize_rounds is None:
        stabilize_rounds = max(num_nodes, 10)
    network = ChordNetwork(id_bits, rng=random.Random(42),
                           stabilize_interval=None,
                           use_successor_only=use_successor_only)
    join_costs = []
    for name in generate_node_names(num_nodes, id_bits):
        before = network.message_count()
        network.create_peer(name)
        join_costs.append(network.message_count() - before)
    network.stabilize_all(stabilize_rounds)
    update_all_fingers(network)
    return network, join_costs


def benchmark_lookups(network, keys):
    costs = []
    correct = 0
    peers = network.peers()
    for key in keys:
        entry = random.Random(key).choice(peers)
        result = network.lookup(entry, key)
        costs.append(result.message_count)
        if result.owner is network.expected_owner(key):
            correct += 1
    sc = sorted(costs)
    return {
        "costs":  costs,
        "mean":   statistics.mean(costs),
        "median": statistics.median(costs),
        "p95":    sc[int(len(sc) * 0.95)] if len(sc) > 1 else sc[0],
        "max":    max(costs),
        "correctness": correct / len(keys),
    }


def print_table(header, rows, widths):
    print("  " + "".join(str(h).ljust(w) for h, w in zip(header, widths)))
    print("  " + "-" * sum(widths))
    for row in rows:
        print("  " + "".join(str(v).ljust(w) for v, w in zip(row, widths)))


# ──────────────────────────────────────────────────────────────────────
# Main benchmark
# ──────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--plot", help="write a cost-vs-N chart to this path")
    args = parser.parse_args(argv)

    sep = "=" * 70
    print(f"\n{sep}")
    print("  CHORD ROUTING-MODE BENCHMARK")
    print(sep)

    keys = generate_keys(200)
    costs: dict[str, dict[int, list[int]]] = {mode: {} for mode in MODES}

    print("\n  1. MESSAGES PER LOOKUP vs NETWORK SIZE\n")
    for n in N_VALUES:
        print(f"  N = {n}")
        rows = []
        for mode, successor_only in MODES.items():
            network, _ = build_network(n, successor_only)
            t0 = time.perf_counter()
            s = benchmark_lookups(network, keys)
            dt = time.perf_counter() - t0
            costs[mode][n] = s["costs"]
            rows.append([mode, f"{s['mean']:.2f}", f"{s['median']:.1f}",
                         str(s["p95"]), str(s["max"]),
                         f"{s['correctness']:.1%}",
                         f"{len(keys) / dt:,.0f}"])
        print_table(["Mode", "Mean", "Median", "P95", "Max", "Correct",
                     "Lookups/s"], rows, [16, 8, 8, 6, 6, 10, 10])
        print()

    print("  2. JOIN COST (messages per join, N=20)\n")
    rows = []
    for mode, successor_only in MODES.items():
        _, join_costs = build_network(20, successor_only)
        tail = join_costs[1:]  # the first peer joins for free
        rows.append([mode, f"{statistics.mean(tail):.1f}",
                     str(min(tail)), str(max(tail))])
    print_table(["Mode", "Mean", "Min", "Max"], rows, [16, 10, 8, 8])

    if args.plot:
        plot_message_costs(costs, args.plot)
        print(f"\n  Saved {args.plot}")
    print()


if __name__ == "__main__":
    main()
