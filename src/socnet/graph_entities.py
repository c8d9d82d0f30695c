from enum import Enum


class EdgeKind(str, Enum):
    """Edge kinds of the social graph."""
    FRIEND = "FRIEND"   # person - person, read as undirected
    STATUS = "STATUS"   # person -> newest status update
    NEXT = "NEXT"       # status update -> previous status update


class Direction(str, Enum):
    OUTGOING = "out"
    INCOMING = "in"
    BOTH = "both"


class NodeLabel:
    PERSON = "Person"
    STATUS_UPDATE = "StatusUpdate"


class Node:
    def __init__(self, node_id, label, properties=None):
        self.id = node_id
        self.label = label
        self.properties = properties or {}

    def to_dict(self):
        return {
            "id": self.id,
            "label": self.label,
            "properties": self.properties,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            node_id=data["id"],
            label=data["label"],
            properties=data["properties"],
        )

    def __repr__(self):
        return f"Node(id={self.id}, label={self.label}, props={self.properties})"


class Edge:
    def __init__(self, edge_id, kind, start_node_id, end_node_id, properties=None):
        self.id = edge_id
        self.kind = EdgeKind(kind)
        self.start_node_id = start_node_id
        self.end_node_id = end_node_id
        self.properties = properties or {}

    def other_node_id(self, node_id):
        """The endpoint that is not `node_id`, whichever way the edge points."""
        if node_id == self.start_node_id:
            return self.end_node_id
        if node_id == self.end_node_id:
            return self.start_node_id
        raise ValueError(f"Node {node_id} is not an endpoint of edge {self.id}.")

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind.value,
            "start_node_id": self.start_node_id,
            "end_node_id": self.end_node_id,
            "properties": self.properties,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            edge_id=data["id"],
            kind=data["kind"],
            start_node_id=data["start_node_id"],
            end_node_id=data["end_node_id"],
            properties=data["properties"],
        )

    def __repr__(self):
        return (f"Edge(id={self.id}, kind={self.kind.value}, "
                f"start={self.start_node_id}, end={self.end_node_id})")
