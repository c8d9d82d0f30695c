import json
import logging
import pickle
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List, Optional

from .errors import (
    ConstraintViolationError,
    EdgeNotFoundError,
    NodeNotFoundError,
    PropertyNotFoundError,
)
from .graph_entities import Direction, Edge, EdgeKind, Node
from .kvstorage import KVStorage, LevelDBStorage, LMDBStorage, MemoryStorage

logger = logging.getLogger(__name__)

_MISSING = object()


class ValueSerializer:
    """
    Default serializer for adjacency and label lists.
    Swap in another one (JSON, MsgPack, ...) if pickle is not wanted.
    """
    def serialize(self, value):
        return pickle.dumps(value)

    def deserialize(self, value):
        return pickle.loads(value)


class GraphStore(ABC):
    """
    The graph store contract consumed by the social graph.
    Nodes and edges are addressed by store-assigned integers that are never
    reused, so a stale id fails loudly instead of pointing at someone else.
    """

    @abstractmethod
    def create_node(self, label: str, properties: Optional[dict] = None) -> int:
        pass

    @abstractmethod
    def delete_node(self, node_id: int) -> None:
        """Delete a node. Fails if edges are still attached to it."""
        pass

    @abstractmethod
    def create_edge(self, start_node_id: int, end_node_id: int, kind: EdgeKind) -> int:
        pass

    @abstractmethod
    def delete_edge(self, edge_id: int) -> None:
        pass

    @abstractmethod
    def edges_of(self, node_id: int, kind: EdgeKind,
                 direction: Direction = Direction.BOTH) -> List[int]:
        """Ids of the node's edges of `kind`, in creation order."""
        pass

    @abstractmethod
    def relationships(self, node_id: int, kind: EdgeKind,
                      direction: Direction = Direction.BOTH) -> List[Edge]:
        """Like edges_of(), but loads the edge records from one snapshot."""
        pass

    @abstractmethod
    def other_endpoint(self, edge_id: int, node_id: int) -> int:
        pass

    @abstractmethod
    def get_node(self, node_id: int) -> Node:
        pass

    @abstractmethod
    def get_edge(self, edge_id: int) -> Edge:
        pass

    @abstractmethod
    def has_node(self, node_id: int) -> bool:
        pass

    @abstractmethod
    def nodes_with_label(self, label: str) -> List[int]:
        pass

    @abstractmethod
    def get_property(self, node_id: int, key: str, default=_MISSING):
        pass

    @abstractmethod
    def set_property(self, node_id: int, key: str, value) -> None:
        pass

    @abstractmethod
    def run_atomic(self, unit_of_work, *args, **kwargs):
        """
        Run unit_of_work(*args, **kwargs) as one all-or-nothing transaction
        and return its result. Any exception aborts the transaction and is
        re-raised unchanged.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class KVGraphStore(GraphStore):
    """
    Graph store laid out over a KVStorage:
     - node and edge records as JSON,
     - per node and edge kind, an outgoing and an incoming adjacency list,
     - a per label list of node ids,
     - two id counters.
    Every write goes through a storage transaction. A unit of work binds its
    transaction to the calling thread, so store calls made from inside it
    read its pending writes and join it instead of opening a new one.
    """

    NODE_PREFIX = b"N:"
    EDGE_PREFIX = b"E:"
    OUT_PREFIX = b"O:"
    IN_PREFIX = b"I:"
    LABEL_PREFIX = b"L:"
    NEXT_NODE_ID_KEY = b"M:next_node_id"
    NEXT_EDGE_ID_KEY = b"M:next_edge_id"

    def __init__(self, storage: KVStorage, adjacency_serializer=None):
        """
        :param storage: KVStorage implementation (LMDB, LevelDB, memory)
        :param adjacency_serializer: serializer for adjacency and label lists
        """
        self.storage = storage
        self.adjacency_serializer = adjacency_serializer or ValueSerializer()
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Key Helpers
    # ------------------------------------------------------------------

    def _make_node_key(self, node_id: int) -> bytes:
        return self.NODE_PREFIX + str(node_id).encode("utf-8")

    def _make_edge_key(self, edge_id: int) -> bytes:
        return self.EDGE_PREFIX + str(edge_id).encode("utf-8")

    def _make_adjacency_key(self, prefix: bytes, node_id: int, kind: EdgeKind) -> bytes:
        return prefix + f"{node_id}:{kind.value}".encode("utf-8")

    def _make_label_key(self, label: str) -> bytes:
        return self.LABEL_PREFIX + label.encode("utf-8")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _current_txn(self):
        return getattr(self._local, "txn", None)

    def in_transaction(self) -> bool:
        return self._current_txn() is not None

    @contextmanager
    def _reading(self):
        txn = self._current_txn()
        if txn is not None:
            yield txn
            return
        with self.storage.begin(write=False) as txn:
            yield txn

    def run_atomic(self, unit_of_work, *args, **kwargs):
        if self._current_txn() is not None:
            # nested: becomes part of the enclosing unit of work
            return unit_of_work(*args, **kwargs)

        name = getattr(unit_of_work, "__name__", repr(unit_of_work))
        try:
            with self.storage.begin(write=True) as txn:
                self._local.txn = txn
                try:
                    result = unit_of_work(*args, **kwargs)
                finally:
                    self._local.txn = None
        except Exception:
            logger.debug("Unit of work %s rolled back", name)
            raise
        return result

    # ------------------------------------------------------------------
    # Record (de)serialization inside a transaction
    # ------------------------------------------------------------------

    def _load_node(self, txn, node_id: int) -> Node:
        raw = txn.get(self._make_node_key(node_id))
        if raw is None:
            raise NodeNotFoundError(node_id)
        return Node.from_dict(json.loads(bytes(raw).decode("utf-8")))

    def _put_node(self, txn, node: Node):
        data = json.dumps(node.to_dict()).encode("utf-8")
        txn.put(self._make_node_key(node.id), data)

    def _load_edge(self, txn, edge_id: int) -> Edge:
        raw = txn.get(self._make_edge_key(edge_id))
        if raw is None:
            raise EdgeNotFoundError(edge_id)
        return Edge.from_dict(json.loads(bytes(raw).decode("utf-8")))

    def _put_edge(self, txn, edge: Edge):
        data = json.dumps(edge.to_dict()).encode("utf-8")
        txn.put(self._make_edge_key(edge.id), data)

    def _load_list(self, txn, key: bytes) -> list:
        raw = txn.get(key)
        if raw is None:
            return []
        return list(self.adjacency_serializer.deserialize(bytes(raw)))

    def _put_list(self, txn, key: bytes, items: list):
        if items:
            txn.put(key, self.adjacency_serializer.serialize(items))
        else:
            txn.delete(key)

    def _allocate_id(self, txn, counter_key: bytes) -> int:
        raw = txn.get(counter_key)
        next_id = int(bytes(raw)) if raw is not None else 1
        txn.put(counter_key, str(next_id + 1).encode("utf-8"))
        return next_id

    def _edge_ids(self, txn, node_id: int, kind: EdgeKind, direction: Direction) -> List[int]:
        kind = EdgeKind(kind)
        direction = Direction(direction)
        out_ids, in_ids = [], []
        if direction in (Direction.OUTGOING, Direction.BOTH):
            out_ids = self._load_list(txn, self._make_adjacency_key(self.OUT_PREFIX, node_id, kind))
        if direction in (Direction.INCOMING, Direction.BOTH):
            in_ids = self._load_list(txn, self._make_adjacency_key(self.IN_PREFIX, node_id, kind))
        if not out_ids:
            return in_ids
        # a self-loop sits in both lists; report it once
        seen = set(out_ids)
        return out_ids + [eid for eid in in_ids if eid not in seen]

    # ------------------------------------------------------------------
    # CREATE / DELETE
    # ------------------------------------------------------------------

    def create_node(self, label, properties=None) -> int:
        return self.run_atomic(self._create_node, label, properties)

    def _create_node(self, label, properties):
        txn = self._current_txn()
        node = Node(self._allocate_id(txn, self.NEXT_NODE_ID_KEY), label, dict(properties or {}))
        self._put_node(txn, node)

        label_key = self._make_label_key(label)
        members = self._load_list(txn, label_key)
        members.append(node.id)
        self._put_list(txn, label_key, members)
        logger.debug("Created node %d (%s)", node.id, label)
        return node.id

    def delete_node(self, node_id) -> None:
        self.run_atomic(self._delete_node, node_id)

    def _delete_node(self, node_id):
        txn = self._current_txn()
        node = self._load_node(txn, node_id)
        for kind in EdgeKind:
            if self._edge_ids(txn, node_id, kind, Direction.BOTH):
                raise ConstraintViolationError(
                    f"Node {node_id} still has {kind.value} edges attached.")

        label_key = self._make_label_key(node.label)
        members = self._load_list(txn, label_key)
        if node_id in members:
            members.remove(node_id)
        self._put_list(txn, label_key, members)
        txn.delete(self._make_node_key(node_id))
        logger.debug("Deleted node %d", node_id)

    def create_edge(self, start_node_id, end_node_id, kind) -> int:
        return self.run_atomic(self._create_edge, start_node_id, end_node_id, EdgeKind(kind))

    def _create_edge(self, start_node_id, end_node_id, kind):
        txn = self._current_txn()
        self._load_node(txn, start_node_id)
        self._load_node(txn, end_node_id)

        edge = Edge(self._allocate_id(txn, self.NEXT_EDGE_ID_KEY), kind, start_node_id, end_node_id)
        self._put_edge(txn, edge)

        out_key = self._make_adjacency_key(self.OUT_PREFIX, start_node_id, kind)
        out_ids = self._load_list(txn, out_key)
        out_ids.append(edge.id)
        self._put_list(txn, out_key, out_ids)

        in_key = self._make_adjacency_key(self.IN_PREFIX, end_node_id, kind)
        in_ids = self._load_list(txn, in_key)
        in_ids.append(edge.id)
        self._put_list(txn, in_key, in_ids)
        logger.debug("Created edge %d (%d)-[%s]->(%d)",
                     edge.id, start_node_id, kind.value, end_node_id)
        return edge.id

    def delete_edge(self, edge_id) -> None:
        self.run_atomic(self._delete_edge, edge_id)

    def _delete_edge(self, edge_id):
        txn = self._current_txn()
        edge = self._load_edge(txn, edge_id)

        out_key = self._make_adjacency_key(self.OUT_PREFIX, edge.start_node_id, edge.kind)
        out_ids = self._load_list(txn, out_key)
        if edge_id in out_ids:
            out_ids.remove(edge_id)
        self._put_list(txn, out_key, out_ids)

        in_key = self._make_adjacency_key(self.IN_PREFIX, edge.end_node_id, edge.kind)
        in_ids = self._load_list(txn, in_key)
        if edge_id in in_ids:
            in_ids.remove(edge_id)
        self._put_list(txn, in_key, in_ids)

        txn.delete(self._make_edge_key(edge_id))
        logger.debug("Deleted edge %d", edge_id)

    # ------------------------------------------------------------------
    # PROPERTIES
    # ------------------------------------------------------------------

    def get_property(self, node_id, key, default=_MISSING):
        with self._reading() as txn:
            node = self._load_node(txn, node_id)
        if key in node.properties:
            return node.properties[key]
        if default is _MISSING:
            raise PropertyNotFoundError(node_id, key)
        return default

    def set_property(self, node_id, key, value) -> None:
        self.run_atomic(self._set_property, node_id, key, value)

    def _set_property(self, node_id, key, value):
        txn = self._current_txn()
        node = self._load_node(txn, node_id)
        node.properties[key] = value
        self._put_node(txn, node)

    # ------------------------------------------------------------------
    # GRAPH QUERIES
    # ------------------------------------------------------------------

    def get_node(self, node_id) -> Node:
        with self._reading() as txn:
            return self._load_node(txn, node_id)

    def get_edge(self, edge_id) -> Edge:
        with self._reading() as txn:
            return self._load_edge(txn, edge_id)

    def has_node(self, node_id) -> bool:
        with self._reading() as txn:
            return txn.get(self._make_node_key(node_id)) is not None

    def nodes_with_label(self, label) -> List[int]:
        with self._reading() as txn:
            return self._load_list(txn, self._make_label_key(label))

    def edges_of(self, node_id, kind, direction=Direction.BOTH) -> List[int]:
        """
        A node that does not exist (or no longer exists) has no edges,
        so this returns an empty list for it.
        """
        with self._reading() as txn:
            return self._edge_ids(txn, node_id, kind, direction)

    def relationships(self, node_id, kind, direction=Direction.BOTH) -> List[Edge]:
        with self._reading() as txn:
            return [self._load_edge(txn, eid)
                    for eid in self._edge_ids(txn, node_id, kind, direction)]

    def other_endpoint(self, edge_id, node_id) -> int:
        return self.get_edge(edge_id).other_node_id(node_id)

    def close(self):
        """Close the underlying storage."""
        self.storage.close()

    def __repr__(self):
        return f"KVGraphStore(storage={self.storage})"


def open_graph_store(backend="memory", db_path=None, **kwargs) -> KVGraphStore:
    """
    Build a KVGraphStore on one of the bundled backends.

    :param backend: "memory", "lmdb" or "leveldb"
    :param db_path: directory of the on-disk database (lmdb, leveldb)
    :param kwargs: passed on to the storage constructor
                   (e.g. map_size for LMDB, create_if_missing for LevelDB)
    """
    if backend == "memory":
        storage = MemoryStorage()
    elif backend == "lmdb":
        if db_path is None:
            raise ValueError("db_path is required for the lmdb backend.")
        storage = LMDBStorage(db_path, **kwargs)
    elif backend == "leveldb":
        if db_path is None:
            raise ValueError("db_path is required for the leveldb backend.")
        storage = LevelDBStorage(db_path, **kwargs)
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")
    return KVGraphStore(storage)
