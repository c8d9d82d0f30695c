import logging
from dataclasses import dataclass
from typing import List

from .paths import count_paths
from .traversal import friends_within_depth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    node_id: int
    rank: int


def rank_candidates(store, node_id) -> List[RankedCandidate]:
    """
    Rank the friends-of-friends of node_id that are not yet its friends.
    The rank is the number of simple paths of length <= 2 between the
    two people. Sorted by rank descending; equal ranks keep the order in
    which the breadth-first walk discovered the candidates.
    """
    friends = set(friends_within_depth(store, node_id, 1))
    candidates = [nid for nid in friends_within_depth(store, node_id, 2)
                  if nid not in friends]

    ranked = [RankedCandidate(nid, count_paths(store, node_id, nid, 2))
              for nid in candidates]
    # sorted() is stable, which gives the tie-break
    ranked = sorted(ranked, key=lambda c: c.rank, reverse=True)
    logger.debug("Ranked %d recommendation candidates for node %d", len(ranked), node_id)
    return ranked


def recommend(store, node_id, k) -> List[int]:
    """Node ids of the top `k` recommended friends for node_id."""
    if k < 0:
        raise ValueError(f"k must be >= 0, got {k}")
    return [c.node_id for c in rank_candidates(store, node_id)[:k]]
