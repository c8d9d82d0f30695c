from .errors import (
    ConstraintViolationError,
    EdgeNotFoundError,
    GraphStoreError,
    NodeNotFoundError,
    PropertyNotFoundError,
    StorageError,
)
from .graph_entities import Direction, Edge, EdgeKind, Node, NodeLabel
from .graph_store import GraphStore, KVGraphStore, ValueSerializer, open_graph_store
from .kvstorage import KVStorage, LevelDBStorage, LMDBStorage, MemoryStorage
from .person import Person
from .recommend import RankedCandidate
from .repository import PersonRepository
from .status import StatusHistory, StatusUpdate

__all__ = [
    "ConstraintViolationError",
    "Direction",
    "Edge",
    "EdgeKind",
    "EdgeNotFoundError",
    "GraphStore",
    "GraphStoreError",
    "KVGraphStore",
    "KVStorage",
    "LevelDBStorage",
    "LMDBStorage",
    "MemoryStorage",
    "Node",
    "NodeLabel",
    "NodeNotFoundError",
    "Person",
    "PersonRepository",
    "PropertyNotFoundError",
    "RankedCandidate",
    "StatusHistory",
    "StatusUpdate",
    "StorageError",
    "ValueSerializer",
    "open_graph_store",
]
