import unittest
import tempfile
import shutil
import os

from socnet import (
    ConstraintViolationError,
    Direction,
    EdgeKind,
    EdgeNotFoundError,
    KVGraphStore,
    LMDBStorage,
    MemoryStorage,
    NodeNotFoundError,
    PropertyNotFoundError,
    StorageError,
    open_graph_store,
)


class TestLMDBStorage(unittest.TestCase):
    def setUp(self):
        """
        Create a temporary directory for LMDB storage.
        """
        self.test_dir = tempfile.mkdtemp()
        self.storage = LMDBStorage(os.path.join(self.test_dir, "kv"), map_size=10**8)

    def tearDown(self):
        self.storage.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_put_get_delete(self):
        self.storage.put(b"k1", b"v1")
        self.storage.put_batch({b"k2": b"v2", b"k3": b"v3"})

        self.assertEqual(self.storage.get(b"k1"), b"v1")
        self.assertEqual(self.storage.get_batch([b"k2", b"k3", b"nope"]),
                         {b"k2": b"v2", b"k3": b"v3", b"nope": None})

        self.storage.delete(b"k1")
        self.assertIsNone(self.storage.get(b"k1"))

    def test_write_batch_deletes_none_values(self):
        self.storage.put_batch({b"a": b"1", b"b": b"2"})
        self.storage.write_batch({b"a": None, b"c": b"3"})

        self.assertIsNone(self.storage.get(b"a"))
        self.assertEqual(self.storage.get(b"b"), b"2")
        self.assertEqual(self.storage.get(b"c"), b"3")

    def test_transaction_aborts_on_exception(self):
        with self.assertRaises(RuntimeError):
            with self.storage.begin(write=True) as txn:
                txn.put(b"half", b"done")
                raise RuntimeError("boom")

        self.assertIsNone(self.storage.get(b"half"))

    def test_read_only_transaction_rejects_writes(self):
        with self.assertRaises(StorageError):
            with self.storage.begin(write=False) as txn:
                txn.put(b"k", b"v")


class TestMemoryStorage(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()

    def test_transaction_reads_its_own_writes(self):
        self.storage.put(b"k", b"old")
        with self.storage.begin(write=True) as txn:
            txn.put(b"k", b"new")
            txn.delete(b"gone")
            self.assertEqual(txn.get(b"k"), b"new")
            self.assertIsNone(txn.get(b"gone"))
            # not visible to others before commit
            self.assertEqual(self.storage._data[b"k"], b"old")

        self.assertEqual(self.storage.get(b"k"), b"new")

    def test_transaction_discards_on_exception(self):
        with self.assertRaises(ValueError):
            with self.storage.begin(write=True) as txn:
                txn.put(b"k", b"v")
                raise ValueError("abort")

        self.assertIsNone(self.storage.get(b"k"))

    def test_read_only_transaction_rejects_writes(self):
        with self.assertRaises(StorageError):
            with self.storage.begin() as txn:
                txn.delete(b"k")


class GraphStoreTests:
    """Contract tests, run against every backend below."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def tearDown(self):
        self.store.close()

    def test_node_properties(self):
        node_id = self.store.create_node("Person", {"name": "Alice"})

        self.assertEqual(self.store.get_property(node_id, "name"), "Alice")
        self.store.set_property(node_id, "name", "Alicia")
        self.assertEqual(self.store.get_property(node_id, "name"), "Alicia")

        with self.assertRaises(PropertyNotFoundError):
            self.store.get_property(node_id, "age")
        self.assertIsNone(self.store.get_property(node_id, "age", None))

    def test_edges_by_direction(self):
        a = self.store.create_node("Person")
        b = self.store.create_node("Person")
        edge_id = self.store.create_edge(a, b, EdgeKind.FRIEND)

        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND, Direction.OUTGOING), [edge_id])
        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND, Direction.INCOMING), [])
        self.assertEqual(self.store.edges_of(b, EdgeKind.FRIEND, Direction.INCOMING), [edge_id])
        self.assertEqual(self.store.edges_of(b, EdgeKind.FRIEND, Direction.BOTH), [edge_id])

        self.assertEqual(self.store.other_endpoint(edge_id, a), b)
        self.assertEqual(self.store.other_endpoint(edge_id, b), a)

    def test_edges_filtered_by_kind(self):
        a = self.store.create_node("Person")
        b = self.store.create_node("StatusUpdate")
        c = self.store.create_node("Person")
        self.store.create_edge(a, b, EdgeKind.STATUS)
        friend_edge = self.store.create_edge(c, a, EdgeKind.FRIEND)

        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND), [friend_edge])
        edges = self.store.relationships(a, EdgeKind.STATUS, Direction.OUTGOING)
        self.assertEqual([e.end_node_id for e in edges], [b])

    def test_non_existent_ids(self):
        self.assertFalse(self.store.has_node(42))
        self.assertEqual(self.store.edges_of(42, EdgeKind.FRIEND), [])
        with self.assertRaises(NodeNotFoundError):
            self.store.get_node(42)
        with self.assertRaises(EdgeNotFoundError):
            self.store.get_edge(42)

        a = self.store.create_node("Person")
        with self.assertRaises(NodeNotFoundError):
            self.store.create_edge(a, 42, EdgeKind.FRIEND)
        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND), [])

    def test_delete_edge_updates_adjacency(self):
        a = self.store.create_node("Person")
        b = self.store.create_node("Person")
        edge_id = self.store.create_edge(a, b, EdgeKind.FRIEND)

        self.store.delete_edge(edge_id)

        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND), [])
        self.assertEqual(self.store.edges_of(b, EdgeKind.FRIEND), [])
        with self.assertRaises(EdgeNotFoundError):
            self.store.delete_edge(edge_id)

    def test_delete_node_requires_no_edges(self):
        a = self.store.create_node("Person")
        b = self.store.create_node("Person")
        edge_id = self.store.create_edge(a, b, EdgeKind.FRIEND)

        with self.assertRaises(ConstraintViolationError):
            self.store.delete_node(a)
        self.assertTrue(self.store.has_node(a))

        self.store.delete_edge(edge_id)
        self.store.delete_node(a)
        self.assertFalse(self.store.has_node(a))
        self.assertEqual(self.store.nodes_with_label("Person"), [b])

    def test_ids_are_not_reused(self):
        first = self.store.create_node("Person")
        self.store.delete_node(first)
        second = self.store.create_node("Person")
        self.assertGreater(second, first)

    def test_run_atomic_rolls_back_everything(self):
        a = self.store.create_node("Person")

        def unit_of_work():
            b = self.store.create_node("Person")
            self.store.create_edge(a, b, EdgeKind.FRIEND)
            self.store.set_property(a, "name", "changed")
            raise RuntimeError("conflict")

        with self.assertRaises(RuntimeError):
            self.store.run_atomic(unit_of_work)

        self.assertEqual(self.store.nodes_with_label("Person"), [a])
        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND), [])
        self.assertIsNone(self.store.get_property(a, "name", None))
        self.assertFalse(self.store.in_transaction())

    def test_run_atomic_returns_result_and_joins_nested_calls(self):
        def inner():
            self.assertTrue(self.store.in_transaction())
            return self.store.create_node("Person", {"name": "inner"})

        def outer():
            node_id = self.store.run_atomic(inner)
            # pending write is visible inside the same unit of work
            self.assertEqual(self.store.get_property(node_id, "name"), "inner")
            return node_id

        node_id = self.store.run_atomic(outer)
        self.assertEqual(self.store.get_property(node_id, "name"), "inner")


class TestLMDBGraphStore(GraphStoreTests, unittest.TestCase):
    def make_store(self):
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir, True)
        return open_graph_store("lmdb", os.path.join(self.test_dir, "graph"), map_size=10**8)

    def test_graph_survives_reopen(self):
        a = self.store.create_node("Person", {"name": "Alice"})
        b = self.store.create_node("Person", {"name": "Bob"})
        edge_id = self.store.create_edge(a, b, EdgeKind.FRIEND)
        self.store.close()

        self.store = KVGraphStore(LMDBStorage(os.path.join(self.test_dir, "graph"), map_size=10**8))
        self.assertEqual(self.store.get_property(b, "name"), "Bob")
        self.assertEqual(self.store.edges_of(a, EdgeKind.FRIEND), [edge_id])
        self.assertGreater(self.store.create_node("Person"), b)


class TestMemoryGraphStore(GraphStoreTests, unittest.TestCase):
    def make_store(self):
        return open_graph_store("memory")


class TestOpenGraphStore(unittest.TestCase):
    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            open_graph_store("cassandra")

    def test_disk_backends_need_a_path(self):
        with self.assertRaises(ValueError):
            open_graph_store("lmdb")
        with self.assertRaises(ValueError):
            open_graph_store("leveldb")


if __name__ == "__main__":
    unittest.main()
