from collections import deque
from typing import Iterator

from .friendship import friend_ids


def friends_within_depth(store, start_node_id, depth, min_depth=1) -> Iterator[int]:
    """
    Breadth-first walk over FRIEND edges (both directions) from
    `start_node_id`, pruned after `depth` hops.

    Uniqueness is global: a node is yielded once, when it is first
    discovered, and never expanded twice, so the walk terminates on cyclic
    graphs and the output is duplicate free, in breadth-first order. The
    start node is never yielded.

    :param depth: maximum number of hops (0 yields nothing)
    :param min_depth: skip nodes first reached in fewer hops; 2 gives the
                      nodes at distance exactly 2 when depth is 2
    :return: a lazy, single-pass iterator of node ids
    """
    if depth < 0:
        raise ValueError(f"depth must be >= 0, got {depth}")
    if min_depth < 1:
        raise ValueError(f"min_depth must be >= 1, got {min_depth}")
    return _bfs(store, start_node_id, depth, min_depth)


def _bfs(store, start_node_id, depth, min_depth):
    visited = {start_node_id}
    queue = deque([(start_node_id, 0)])

    while queue:
        node_id, dist = queue.popleft()
        if dist >= depth:
            continue

        for nbr_id in friend_ids(store, node_id):
            if nbr_id in visited:
                continue
            visited.add(nbr_id)
            if dist + 1 >= min_depth:
                yield nbr_id
            queue.append((nbr_id, dist + 1))
