class GraphStoreError(Exception):
    """Base class for every failure raised by the graph store."""


class NodeNotFoundError(GraphStoreError, LookupError):
    def __init__(self, node_id):
        super().__init__(f"Node {node_id} does not exist.")
        self.node_id = node_id


class EdgeNotFoundError(GraphStoreError, LookupError):
    def __init__(self, edge_id):
        super().__init__(f"Edge {edge_id} does not exist.")
        self.edge_id = edge_id


class PropertyNotFoundError(GraphStoreError, KeyError):
    def __init__(self, node_id, key):
        super().__init__(f"Node {node_id} has no property {key!r}.")
        self.node_id = node_id
        self.key = key


class ConstraintViolationError(GraphStoreError):
    """A write would break a structural rule of the store."""


class StorageError(GraphStoreError):
    """
    The key-value backend failed (I/O, map full, commit conflict).
    The original backend exception is chained as __cause__.
    """
