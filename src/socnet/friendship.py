"""
Friendship is an undirected relation stored as a single directed FRIEND
edge. Everything that reads friendships goes through this module, so the
creation direction of an edge never leaks into query results.
"""
from typing import Iterator, Optional

from .graph_entities import Direction, EdgeKind


def friendship_edges(store, node_id):
    """FRIEND edges touching node_id, in either direction."""
    return store.relationships(node_id, EdgeKind.FRIEND, Direction.BOTH)


def friend_ids(store, node_id) -> Iterator[int]:
    """
    Yield the other endpoint of each FRIEND edge of node_id, in edge
    creation order (edges it created first, then edges pointing at it).
    """
    for edge in friendship_edges(store, node_id):
        yield edge.other_node_id(node_id)


def find_friendship_edge(store, a, b) -> Optional[int]:
    """
    Return the id of the FRIEND edge between a and b, or None.
    Linear in the degree of a; there is no secondary index.
    """
    for edge in friendship_edges(store, a):
        if edge.other_node_id(a) == b:
            return edge.id
    return None


def are_friends(store, a, b) -> bool:
    return a != b and find_friendship_edge(store, a, b) is not None
