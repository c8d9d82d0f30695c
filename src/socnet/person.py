import logging
from typing import Iterator, List, Optional

from . import paths, recommend, traversal
from . import status as status_chain
from .friendship import are_friends, find_friendship_edge
from .graph_entities import EdgeKind

logger = logging.getLogger(__name__)


class Person:
    """
    A person in the social graph.

    Only a view: it holds the store and a node id, and every attribute is
    read from the store on access. Two Person objects are equal when they
    wrap the same node, regardless of name.
    """

    NAME = "name"

    def __init__(self, store, node_id):
        self._store = store
        self.node_id = node_id

    @property
    def store(self):
        return self._store

    @property
    def name(self) -> str:
        return self._store.get_property(self.node_id, self.NAME)

    def __eq__(self, other):
        if not isinstance(other, Person):
            return NotImplemented
        return self.node_id == other.node_id

    def __hash__(self):
        return hash(self.node_id)

    def __repr__(self):
        return f"Person[{self.name}]"

    def _wrap(self, node_ids) -> Iterator["Person"]:
        for node_id in node_ids:
            yield Person(self._store, node_id)

    # ------------------------------------------------------------------
    # Friendship mutation
    # ------------------------------------------------------------------

    def add_friend(self, other: "Person") -> None:
        """Befriend `other`. Doing it twice, or with oneself, changes nothing."""
        self._store.run_atomic(self._add_friend, other)

    def _add_friend(self, other):
        if self == other:
            return
        if find_friendship_edge(self._store, self.node_id, other.node_id) is None:
            self._store.create_edge(self.node_id, other.node_id, EdgeKind.FRIEND)
            logger.debug("%r and %r are now friends", self, other)

    def remove_friend(self, other: "Person") -> None:
        """Drop the friendship with `other`, if there is one."""
        self._store.run_atomic(self._remove_friend, other)

    def _remove_friend(self, other):
        if self == other:
            return
        edge_id = find_friendship_edge(self._store, self.node_id, other.node_id)
        if edge_id is not None:
            self._store.delete_edge(edge_id)
            logger.debug("%r and %r are no longer friends", self, other)

    # ------------------------------------------------------------------
    # Friendship queries
    # ------------------------------------------------------------------

    def friends(self) -> Iterator["Person"]:
        return self._wrap(traversal.friends_within_depth(self._store, self.node_id, 1))

    def friends_of_friends(self) -> Iterator["Person"]:
        """Everyone within two hops, direct friends included, each once."""
        return self._wrap(traversal.friends_within_depth(self._store, self.node_id, 2))

    def friends_within_depth(self, depth, min_depth=1) -> Iterator["Person"]:
        return self._wrap(traversal.friends_within_depth(self._store, self.node_id, depth, min_depth))

    def nr_of_friends(self) -> int:
        return sum(1 for _ in self.friends())

    def is_friend_of(self, other: "Person") -> bool:
        return are_friends(self._store, self.node_id, other.node_id)

    def shortest_path_to(self, other: "Person", max_depth) -> List["Person"]:
        """People along the shortest path to `other`, or [] beyond max_depth."""
        return list(self._wrap(paths.shortest_path(
            self._store, self.node_id, other.node_id, max_depth)))

    def paths_to(self, other: "Person", max_length=2) -> int:
        return paths.count_paths(self._store, self.node_id, other.node_id, max_length)

    def friend_recommendation(self, number_of_friends_to_return) -> List["Person"]:
        return list(self._wrap(recommend.recommend(
            self._store, self.node_id, number_of_friends_to_return)))

    # ------------------------------------------------------------------
    # Status updates
    # ------------------------------------------------------------------

    def status(self) -> status_chain.StatusHistory:
        """All status updates, newest first. Can be iterated repeatedly."""
        return status_chain.full_history(self._store, self.node_id)

    def current_status(self) -> Optional[status_chain.StatusUpdate]:
        return status_chain.current_status(self._store, self.node_id)

    def add_status(self, text, created_at=None) -> status_chain.StatusUpdate:
        return status_chain.add_status(self._store, self.node_id, text, created_at)

    def friend_statuses(self) -> Iterator[status_chain.StatusUpdate]:
        return status_chain.friend_statuses(self._store, self.node_id)
