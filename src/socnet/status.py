"""
Status updates form one singly linked chain per person:

    (person) -STATUS-> (newest) -NEXT-> (older) -NEXT-> ... (oldest)

Posting prepends to the chain; nothing in it is ever rewritten.
"""
import heapq
import logging
import time
from datetime import datetime, timezone
from typing import Iterator, Optional

from .errors import ConstraintViolationError
from .graph_entities import Direction, EdgeKind, NodeLabel
from .traversal import friends_within_depth

logger = logging.getLogger(__name__)

TEXT = "text"
CREATED_AT = "created_at"


class StatusUpdate:
    """View of one status node. Compares equal by node identity."""

    def __init__(self, store, node_id):
        self._store = store
        self.node_id = node_id

    @property
    def text(self) -> str:
        return self._store.get_property(self.node_id, TEXT)

    @property
    def created_at(self) -> int:
        """Posting time in epoch milliseconds."""
        return self._store.get_property(self.node_id, CREATED_AT)

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.created_at / 1000.0, tz=timezone.utc)

    @property
    def person(self):
        """The person whose chain holds this update."""
        from .person import Person

        node_id = self.node_id
        while True:
            owners = self._store.relationships(node_id, EdgeKind.STATUS, Direction.INCOMING)
            if owners:
                return Person(self._store, owners[0].start_node_id)
            newer = self._store.relationships(node_id, EdgeKind.NEXT, Direction.INCOMING)
            if not newer:
                return None
            node_id = newer[0].start_node_id

    def __eq__(self, other):
        if not isinstance(other, StatusUpdate):
            return NotImplemented
        return self.node_id == other.node_id

    def __hash__(self):
        return hash(self.node_id)

    def __repr__(self):
        return f"StatusUpdate[{self.text}]"


def _single_target(store, node_id, kind) -> Optional[int]:
    edges = store.relationships(node_id, kind, Direction.OUTGOING)
    if not edges:
        return None
    if len(edges) > 1:
        raise ConstraintViolationError(
            f"Node {node_id} has {len(edges)} outgoing {kind.value} edges, expected one.")
    return edges[0].end_node_id


def current_status_id(store, person_node_id) -> Optional[int]:
    """Id of the newest status of the person, or None if they never posted."""
    return _single_target(store, person_node_id, EdgeKind.STATUS)


def current_status(store, person_node_id) -> Optional[StatusUpdate]:
    status_id = current_status_id(store, person_node_id)
    if status_id is None:
        return None
    return StatusUpdate(store, status_id)


def add_status(store, person_node_id, text, created_at=None) -> StatusUpdate:
    """
    Post a status: the new node becomes the head of the chain and the old
    chain hangs off it through NEXT. Runs as one unit of work.

    :param created_at: epoch milliseconds; defaults to now. Must not be
                       older than the current head, so the chain stays
                       sorted newest first.
    """
    status_id = store.run_atomic(_add_status, store, person_node_id, text, created_at)
    return StatusUpdate(store, status_id)


def _add_status(store, person_node_id, text, created_at):
    old_head_id = current_status_id(store, person_node_id)
    head_created_at = None
    if old_head_id is not None:
        head_created_at = store.get_property(old_head_id, CREATED_AT)

    if created_at is None:
        created_at = int(time.time() * 1000)
        if head_created_at is not None:
            # clock went backwards
            created_at = max(created_at, head_created_at)
    elif head_created_at is not None and created_at < head_created_at:
        raise ValueError(
            f"created_at {created_at} is older than the current status "
            f"({head_created_at}) of person {person_node_id}")

    new_id = store.create_node(NodeLabel.STATUS_UPDATE, {TEXT: text, CREATED_AT: created_at})
    if old_head_id is not None:
        for edge_id in store.edges_of(person_node_id, EdgeKind.STATUS, Direction.OUTGOING):
            store.delete_edge(edge_id)
        store.create_edge(new_id, old_head_id, EdgeKind.NEXT)
    store.create_edge(person_node_id, new_id, EdgeKind.STATUS)
    logger.debug("Person %d posted status %d", person_node_id, new_id)
    return new_id


class StatusHistory:
    """
    A person's status updates, newest first.
    Every iteration starts again from the current head, so the object can
    be iterated any number of times and always reflects the latest chain.
    """

    def __init__(self, store, person_node_id):
        self._store = store
        self.person_node_id = person_node_id

    def node_ids(self) -> Iterator[int]:
        node_id = current_status_id(self._store, self.person_node_id)
        while node_id is not None:
            yield node_id
            node_id = _single_target(self._store, node_id, EdgeKind.NEXT)

    def __iter__(self) -> Iterator[StatusUpdate]:
        for node_id in self.node_ids():
            yield StatusUpdate(self._store, node_id)

    def __repr__(self):
        return f"StatusHistory(person={self.person_node_id})"


def full_history(store, person_node_id) -> StatusHistory:
    return StatusHistory(store, person_node_id)


def friend_statuses(store, person_node_id) -> Iterator[StatusUpdate]:
    """
    Merge the histories of all friends into one feed, newest first.
    Equal timestamps keep friend order (breadth-first discovery), then
    chain order.
    """
    feeds = [iter(StatusHistory(store, friend_id))
             for friend_id in friends_within_depth(store, person_node_id, 1)]
    return heapq.merge(*feeds, key=lambda update: update.created_at, reverse=True)
