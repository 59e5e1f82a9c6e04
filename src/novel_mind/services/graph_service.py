"""Incremental character-relationship graph."""

import logging

import networkx as nx

from novel_mind.data_models.entities import (
    GlobalGraph,
    GraphLink,
    GraphNode,
    Relationship,
)

logger = logging.getLogger(__name__)

DEFAULT_NODE_GROUP = 1


def merge_relationships(
    graph: GlobalGraph, relationships: list[Relationship]
) -> GlobalGraph:
    """
    Fold one chunk's relationships into the global graph.

    Nodes are keyed by the trimmed character name. Every mention of a name
    increments its node value, even when the relation adds no new link.
    Links are undirected for uniqueness: (A, B) and (B, A) are the same edge,
    and the first label seen for a pair is kept. Relations with an empty
    source or target are skipped. Nothing is ever removed.

    Args:
        graph: Current graph (not modified)
        relationships: Relations extracted from one chunk, in order

    Returns:
        A new graph snapshot
    """
    nodes = [node.model_copy() for node in graph.nodes]
    links = list(graph.links)
    node_index = {node.id: node for node in nodes}
    linked_pairs = {link.pair_key for link in links}

    def mention(name: str) -> None:
        node = node_index.get(name)
        if node is None:
            node = GraphNode(id=name, group=DEFAULT_NODE_GROUP, value=1)
            node_index[name] = node
            nodes.append(node)
        else:
            node.value += 1

    for relationship in relationships:
        source = relationship.source.strip()
        target = relationship.target.strip()
        if not source or not target:
            continue

        mention(source)
        mention(target)

        link = GraphLink(source=source, target=target, label=relationship.relation)
        if link.pair_key not in linked_pairs:
            linked_pairs.add(link.pair_key)
            links.append(link)

    return GlobalGraph(nodes=nodes, links=links)


def to_networkx(graph: GlobalGraph) -> nx.Graph:
    """Build an undirected networkx graph with node value/group and edge labels."""
    G = nx.Graph()
    for node in graph.nodes:
        G.add_node(node.id, value=node.value, group=node.group)
    for link in graph.links:
        G.add_edge(link.source, link.target, label=link.label)
    return G


def graph_stats(graph: GlobalGraph) -> dict:
    G = to_networkx(graph)
    return {
        "node_count": G.number_of_nodes(),
        "edge_count": G.number_of_edges(),
        "density": nx.density(G) if G.number_of_nodes() > 0 else 0,
    }
