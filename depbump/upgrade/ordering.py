"""
ordering.py - Leaf-first ordering of dependency nodes.

A Kahn-style pass that always terminates: when no node is free (a cycle),
the node with the fewest remaining children is taken instead. On cyclic
input the resulting order cannot respect every edge, so callers must treat
it as best effort rather than proof of precedence.
"""

from __future__ import annotations

from collections.abc import Iterable

from .graph import DependencyGraph, DependencyNode, VersionDelta


def order_nodes(nodes: Iterable[DependencyNode]) -> list[DependencyNode]:
    """Order nodes so that a node's children come before it.

    Child references to names outside the given nodes are ignored. Ties are
    broken by input order, so the result is deterministic.

    Args:
        nodes: Nodes to order (duplicates by name are dropped)

    Returns:
        A permutation of the input, leaves first
    """
    graph = DependencyGraph(nodes)
    remaining: dict[str, DependencyNode] = {node.name: node for node in graph}
    pending_children: dict[str, list[str]] = {
        name: [child for child in node.children if child in remaining and child != name]
        for name, node in remaining.items()
    }

    ordered: list[DependencyNode] = []
    while remaining:
        next_name = next(
            (name for name in remaining if not pending_children[name]),
            None,
        )
        if next_name is None:
            # Cycle: take the node closest to being free
            next_name = min(remaining, key=lambda name: len(pending_children[name]))

        ordered.append(remaining.pop(next_name))
        del pending_children[next_name]
        for children in pending_children.values():
            if next_name in children:
                children[:] = [child for child in children if child != next_name]

    return ordered


def order_deltas(deltas: Iterable[VersionDelta], graph: DependencyGraph) -> list[VersionDelta]:
    """Order version deltas leaf-first using the after-update graph.

    The whole graph is ordered and then narrowed to the changed packages, so
    precedence that runs through unchanged packages is kept. Deltas whose
    package is missing from the graph go last, in their original order.
    """
    by_name = {delta.name: delta for delta in deltas}
    ordered = [by_name.pop(node.name) for node in order_nodes(graph) if node.name in by_name]
    ordered.extend(by_name.values())
    return ordered
