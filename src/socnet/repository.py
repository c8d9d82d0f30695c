import logging
from typing import Iterator, Optional

from .errors import NodeNotFoundError
from .graph_entities import Direction, EdgeKind, NodeLabel
from .person import Person
from .status import StatusHistory

logger = logging.getLogger(__name__)


class PersonRepository:
    """
    Entry point for creating, finding and deleting people.
    Name lookups scan every person node; there is no name index.
    """

    def __init__(self, store):
        self.store = store

    def create_person(self, name) -> Person:
        node_id = self.store.run_atomic(
            self.store.create_node, NodeLabel.PERSON, {Person.NAME: name})
        logger.debug("Created person %r as node %d", name, node_id)
        return Person(self.store, node_id)

    def get_person_by_id(self, node_id) -> Person:
        node = self.store.get_node(node_id)
        if node.label != NodeLabel.PERSON:
            raise NodeNotFoundError(node_id)
        return Person(self.store, node_id)

    def find_person_by_name(self, name) -> Optional[Person]:
        """The earliest created person called `name`, or None."""
        for person in self.all_persons():
            if person.name == name:
                return person
        return None

    def all_persons(self) -> Iterator[Person]:
        for node_id in self.store.nodes_with_label(NodeLabel.PERSON):
            yield Person(self.store, node_id)

    def delete_person(self, person: Person) -> None:
        """
        Remove a person with all friendships and the whole status chain,
        in one unit of work.
        """
        self.store.run_atomic(self._delete_person, person)

    def _delete_person(self, person):
        store = self.store
        for edge_id in store.edges_of(person.node_id, EdgeKind.FRIEND, Direction.BOTH):
            store.delete_edge(edge_id)

        # collect first: the walk follows the edges that are being removed
        status_ids = list(StatusHistory(store, person.node_id).node_ids())
        for edge_id in store.edges_of(person.node_id, EdgeKind.STATUS, Direction.OUTGOING):
            store.delete_edge(edge_id)
        for status_id in status_ids:
            for edge_id in store.edges_of(status_id, EdgeKind.NEXT, Direction.OUTGOING):
                store.delete_edge(edge_id)
        for status_id in status_ids:
            store.delete_node(status_id)

        store.delete_node(person.node_id)
        logger.debug("Deleted person node %d and %d status updates",
                     person.node_id, len(status_ids))
