from collections import deque
from typing import Iterator, List

from .friendship import friendship_edges


def shortest_path(store, a, b, max_depth) -> List[int]:
    """
    Unweighted shortest path from a to b over FRIEND edges, at most
    `max_depth` hops long.

    Returns the node ids along the path, both ends included. Among paths of
    equal length the first one discovered wins. Returns [] when b is not
    reachable within the bound and [a] when a == b.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")
    if a == b:
        return [a]

    parents = {a: None}
    queue = deque([(a, 0)])

    while queue:
        node_id, dist = queue.popleft()
        # Already at max depth, can't go further
        if dist >= max_depth:
            continue

        for edge in friendship_edges(store, node_id):
            nbr_id = edge.other_node_id(node_id)
            if nbr_id in parents:
                continue
            parents[nbr_id] = node_id
            if nbr_id == b:
                return _unwind(parents, b)
            queue.append((nbr_id, dist + 1))

    return []


def _unwind(parents, end):
    path = []
    node_id = end
    while node_id is not None:
        path.append(node_id)
        node_id = parents[node_id]
    path.reverse()
    return path


def all_simple_paths(store, a, b, max_length=2) -> Iterator[List[int]]:
    """
    Yield every simple path (no node repeated) from a to b with at most
    `max_length` hops over FRIEND edges, as lists of node ids.
    Parallel edges would count as distinct paths. The depth bound together
    with the no-repeat rule keeps this finite on cyclic graphs.
    """
    if max_length < 0:
        raise ValueError(f"max_length must be >= 0, got {max_length}")
    return _extend([a], {a}, store, b, max_length)


def _extend(path, on_path, store, target, remaining):
    tip = path[-1]
    if tip == target:
        yield list(path)
        return
    if remaining == 0:
        return

    for edge in friendship_edges(store, tip):
        nbr_id = edge.other_node_id(tip)
        if nbr_id in on_path:
            continue
        path.append(nbr_id)
        on_path.add(nbr_id)
        yield from _extend(path, on_path, store, target, remaining - 1)
        on_path.remove(nbr_id)
        path.pop()


def count_paths(store, a, b, max_length=2) -> int:
    """Number of simple FRIEND paths from a to b no longer than max_length."""
    return sum(1 for _ in all_simple_paths(store, a, b, max_length))
