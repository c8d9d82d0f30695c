import unittest
import tempfile
import shutil
import os
import threading

from socnet import (
    Direction,
    EdgeKind,
    NodeLabel,
    NodeNotFoundError,
    PersonRepository,
    open_graph_store,
)
from socnet.friendship import find_friendship_edge
from socnet.paths import all_simple_paths, count_paths
from socnet.recommend import rank_candidates


class SocialGraphTestCase(unittest.TestCase):
    def setUp(self):
        """
        Create a temporary directory for LMDB storage,
        then open a graph store and a person repository on it.
        """
        self.test_dir = tempfile.mkdtemp()
        self.store = open_graph_store(
            "lmdb", os.path.join(self.test_dir, "socnet"), map_size=10**8)
        self.repo = PersonRepository(self.store)

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def people(self, *names):
        return [self.repo.create_person(name) for name in names]

    def friend_edge_count(self, a, b):
        return sum(1 for eid in self.store.edges_of(a.node_id, EdgeKind.FRIEND)
                   if self.store.other_endpoint(eid, a.node_id) == b.node_id)

    def make_chain(self, *names):
        persons = self.people(*names)
        for left, right in zip(persons, persons[1:]):
            left.add_friend(right)
        return persons


class TestFriendship(SocialGraphTestCase):
    def test_add_friend_creates_one_symmetric_edge(self):
        alice, bob = self.people("Alice", "Bob")
        alice.add_friend(bob)

        self.assertEqual(self.friend_edge_count(alice, bob), 1)
        self.assertEqual(self.friend_edge_count(bob, alice), 1)
        self.assertIn(bob, list(alice.friends()))
        self.assertIn(alice, list(bob.friends()))
        self.assertTrue(alice.is_friend_of(bob))
        self.assertTrue(bob.is_friend_of(alice))

    def test_add_friend_is_idempotent(self):
        alice, bob = self.people("Alice", "Bob")
        alice.add_friend(bob)
        alice.add_friend(bob)
        bob.add_friend(alice)

        self.assertEqual(self.friend_edge_count(alice, bob), 1)
        self.assertEqual(alice.nr_of_friends(), 1)

    def test_befriending_oneself_is_a_noop(self):
        alice, = self.people("Alice")
        alice.add_friend(alice)
        alice.remove_friend(alice)

        self.assertEqual(self.store.edges_of(alice.node_id, EdgeKind.FRIEND), [])
        self.assertEqual(list(alice.friends()), [])
        self.assertFalse(alice.is_friend_of(alice))

    def test_remove_friend_from_either_side(self):
        alice, bob = self.people("Alice", "Bob")
        alice.add_friend(bob)

        bob.remove_friend(alice)

        self.assertIsNone(find_friendship_edge(self.store, alice.node_id, bob.node_id))
        self.assertEqual(list(alice.friends()), [])
        self.assertEqual(list(bob.friends()), [])

    def test_remove_never_friends_is_a_noop(self):
        alice, bob, carol = self.people("Alice", "Bob", "Carol")
        alice.add_friend(carol)
        before = len(self.store.edges_of(alice.node_id, EdgeKind.FRIEND))

        alice.remove_friend(bob)

        self.assertEqual(len(self.store.edges_of(alice.node_id, EdgeKind.FRIEND)), before)
        self.assertEqual(list(alice.friends()), [carol])

    def test_concurrent_add_friend_keeps_one_edge(self):
        store = open_graph_store("memory")
        self.addCleanup(store.close)
        repo = PersonRepository(store)
        hub = repo.create_person("Hub")
        others = [repo.create_person(f"P{i}") for i in range(8)]

        def befriend(person):
            for _ in range(5):
                hub.add_friend(person)
                person.add_friend(hub)

        threads = [threading.Thread(target=befriend, args=(p,)) for p in others]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(store.edges_of(hub.node_id, EdgeKind.FRIEND)), 8)
        self.assertEqual(set(hub.friends()), set(others))

    def test_concurrent_mutations_on_lmdb(self):
        hub, = self.people("Hub")
        others = self.people(*(f"P{i}" for i in range(8)))
        errors = []

        def mutate(person):
            try:
                for i in range(5):
                    hub.add_friend(person)
                    person.add_friend(hub)
                    person.add_status(f"{person.name} {i}")
                    person.friend_recommendation(3)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=mutate, args=(p,)) for p in others]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(self.store.edges_of(hub.node_id, EdgeKind.FRIEND)), 8)
        self.assertEqual(set(hub.friends()), set(others))
        for person in others:
            self.assertEqual([s.text for s in person.status()],
                             [f"{person.name} {i}" for i in reversed(range(5))])

    def test_person_identity(self):
        alice, other_alice = self.people("Alice", "Alice")
        self.assertNotEqual(alice, other_alice)
        self.assertEqual(alice, self.repo.get_person_by_id(alice.node_id))
        self.assertEqual(len({alice, other_alice, self.repo.get_person_by_id(alice.node_id)}), 2)
        self.assertEqual(repr(alice), "Person[Alice]")


class TestTraversal(SocialGraphTestCase):
    def test_triangle_never_returns_start(self):
        a, b, c = self.people("A", "B", "C")
        a.add_friend(b)
        b.add_friend(c)
        c.add_friend(a)

        self.assertNotIn(a, list(a.friends()))
        fof = list(a.friends_of_friends())
        self.assertNotIn(a, fof)
        self.assertEqual(len(fof), len(set(fof)))
        self.assertEqual(set(fof), {b, c})

    def test_depth_bounds(self):
        a, b, c, d = self.make_chain("A", "B", "C", "D")

        self.assertEqual(list(a.friends()), [b])
        self.assertEqual(list(a.friends_of_friends()), [b, c])
        self.assertEqual(list(a.friends_within_depth(3)), [b, c, d])
        self.assertEqual(list(a.friends_within_depth(0)), [])

    def test_min_depth_gives_exact_ring(self):
        a, b, c, d = self.people("A", "B", "C", "D")
        a.add_friend(b)
        a.add_friend(c)
        b.add_friend(c)
        c.add_friend(d)

        self.assertEqual(list(a.friends_within_depth(2, min_depth=2)), [d])

    def test_breadth_first_discovery_order(self):
        a, b, c, d, e = self.people("A", "B", "C", "D", "E")
        a.add_friend(b)
        a.add_friend(c)
        b.add_friend(d)
        c.add_friend(e)

        self.assertEqual(list(a.friends_of_friends()), [b, c, d, e])

    def test_dense_cyclic_graph_terminates_without_duplicates(self):
        persons = self.people(*[f"P{i}" for i in range(7)])
        for i, left in enumerate(persons):
            for right in persons[i + 1:]:
                left.add_friend(right)

        found = list(persons[0].friends_within_depth(5))
        self.assertEqual(len(found), 6)
        self.assertEqual(set(found), set(persons[1:]))

    def test_negative_depth_is_rejected(self):
        a, = self.people("A")
        with self.assertRaises(ValueError):
            a.friends_within_depth(-1)


class TestShortestPath(SocialGraphTestCase):
    def test_new_friendship_gives_direct_path(self):
        a, b = self.people("A", "B")
        self.assertEqual(a.shortest_path_to(b, 5), [])

        a.add_friend(b)
        self.assertEqual(a.shortest_path_to(b, 5), [a, b])

    def test_boundary_length(self):
        a, b, c, d, e = self.make_chain("A", "B", "C", "D", "E")

        self.assertEqual(a.shortest_path_to(e, 3), [])
        self.assertEqual(a.shortest_path_to(e, 4), [a, b, c, d, e])
        self.assertEqual(e.shortest_path_to(a, 4), [e, d, c, b, a])

    def test_prefers_shorter_route(self):
        a, b, c, d = self.make_chain("A", "B", "C", "D")
        a.add_friend(d)
        self.assertEqual(a.shortest_path_to(d, 10), [a, d])
        self.assertEqual(len(a.shortest_path_to(c, 10)), 3)

    def test_disconnected_and_self(self):
        a, b, c = self.people("A", "B", "C")
        a.add_friend(b)

        self.assertEqual(a.shortest_path_to(c, 10), [])
        self.assertEqual(a.shortest_path_to(a, 0), [a])


class TestPathCounter(SocialGraphTestCase):
    def test_triangle(self):
        a, b, c = self.people("A", "B", "C")
        a.add_friend(b)
        b.add_friend(c)
        c.add_friend(a)

        self.assertEqual(count_paths(self.store, a.node_id, c.node_id, 2), 2)
        self.assertEqual(a.paths_to(c), 2)

    def test_square(self):
        a, b, c, d = self.make_chain("A", "B", "C", "D")
        d.add_friend(a)

        paths = sorted(all_simple_paths(self.store, a.node_id, c.node_id, 2))
        self.assertEqual(paths, sorted([[a.node_id, b.node_id, c.node_id],
                                        [a.node_id, d.node_id, c.node_id]]))
        # A-D-C-B is three hops
        self.assertEqual(a.paths_to(b, 2), 1)
        self.assertEqual(a.paths_to(b, 3), 2)

    def test_trivial_and_unreachable(self):
        a, b = self.people("A", "B")
        self.assertEqual(a.paths_to(a), 1)
        self.assertEqual(a.paths_to(b), 0)
        with self.assertRaises(ValueError):
            a.paths_to(b, -1)


class TestRecommender(SocialGraphTestCase):
    def test_ranks_by_mutual_paths(self):
        a, b, c, d, e, f = self.people("A", "B", "C", "D", "E", "F")
        for friend in (b, c, d):
            a.add_friend(friend)
        b.add_friend(f)
        for friend in (b, c, d):
            friend.add_friend(e)

        self.assertEqual(a.friend_recommendation(5), [e, f])
        self.assertEqual(a.friend_recommendation(1), [e])
        self.assertEqual(a.friend_recommendation(0), [])

        ranks = {cand.node_id: cand.rank for cand in rank_candidates(self.store, a.node_id)}
        self.assertEqual(ranks, {e.node_id: 3, f.node_id: 1})

    def test_never_recommends_self_or_friends(self):
        a, b, c, d = self.people("A", "B", "C", "D")
        a.add_friend(b)
        a.add_friend(c)
        b.add_friend(c)
        c.add_friend(d)

        recommended = a.friend_recommendation(10)
        self.assertEqual(recommended, [d])
        self.assertNotIn(a, recommended)

    def test_ties_keep_discovery_order(self):
        a, b, x, y = self.people("A", "B", "X", "Y")
        a.add_friend(b)
        b.add_friend(x)
        b.add_friend(y)

        self.assertEqual(a.friend_recommendation(2), [x, y])

    def test_negative_k_is_rejected(self):
        a, = self.people("A")
        with self.assertRaises(ValueError):
            a.friend_recommendation(-1)


class TestStatusChain(SocialGraphTestCase):
    def test_history_is_newest_first(self):
        p, = self.people("P")
        self.assertIsNone(p.current_status())
        self.assertEqual(list(p.status()), [])

        p.add_status("hello")
        p.add_status("world")

        self.assertEqual([s.text for s in p.status()], ["world", "hello"])
        self.assertEqual(p.current_status().text, "world")
        self.assertEqual(len(self.store.edges_of(p.node_id, EdgeKind.STATUS, Direction.OUTGOING)), 1)

    def test_history_is_restartable(self):
        p, = self.people("P")
        history = p.status()
        p.add_status("one")
        first = list(history)
        p.add_status("two")

        self.assertEqual([s.text for s in first], ["one"])
        self.assertEqual([s.text for s in history], ["two", "one"])
        self.assertEqual([s.text for s in history], ["two", "one"])

    def test_status_knows_its_person(self):
        p, q = self.people("P", "Q")
        oldest = p.add_status("first", created_at=1000)
        p.add_status("second", created_at=2000)
        q.add_status("other", created_at=1500)

        self.assertEqual(oldest.person, p)
        self.assertEqual(p.current_status().person, p)
        self.assertEqual(oldest.created_at, 1000)
        self.assertEqual(oldest.date.year, 1970)

    def test_friend_statuses_interleave_by_time(self):
        me, b, c, stranger = self.people("Me", "B", "C", "Stranger")
        me.add_friend(b)
        me.add_friend(c)
        b.add_status("b1", created_at=100)
        c.add_status("c1", created_at=200)
        b.add_status("b2", created_at=300)
        c.add_status("c2", created_at=300)
        stranger.add_status("nope", created_at=400)

        feed = [s.text for s in me.friend_statuses()]
        self.assertEqual(feed, ["b2", "c2", "c1", "b1"])

    def test_older_timestamp_is_rejected(self):
        p, = self.people("P")
        p.add_status("new", created_at=500)

        with self.assertRaises(ValueError):
            p.add_status("late", created_at=100)

        self.assertEqual([s.text for s in p.status()], ["new"])
        self.assertEqual(len(self.store.edges_of(p.node_id, EdgeKind.STATUS, Direction.OUTGOING)), 1)
        self.assertEqual(len(self.store.nodes_with_label(NodeLabel.STATUS_UPDATE)), 1)

    def test_equal_timestamp_is_accepted(self):
        p, = self.people("P")
        p.add_status("one", created_at=500)
        p.add_status("two", created_at=500)

        self.assertEqual([s.text for s in p.status()], ["two", "one"])

    def test_default_time_never_precedes_head(self):
        p, = self.people("P")
        future = p.add_status("from the future", created_at=2**42)
        now = p.add_status("now")

        self.assertGreaterEqual(now.created_at, future.created_at)

    def test_feed_stays_sorted_after_rejected_post(self):
        me, b, c = self.people("Me", "B", "C")
        me.add_friend(b)
        me.add_friend(c)
        b.add_status("b_first", created_at=500)
        with self.assertRaises(ValueError):
            b.add_status("b_backdated", created_at=100)
        c.add_status("c", created_at=300)

        feed = [(s.text, s.created_at) for s in me.friend_statuses()]
        self.assertEqual(feed, [("b_first", 500), ("c", 300)])

    def test_failed_post_leaves_no_trace(self):
        p, = self.people("P")
        p.add_status("kept")
        self.repo.delete_person(p)

        with self.assertRaises(NodeNotFoundError):
            p.add_status("lost")
        self.assertEqual(self.store.nodes_with_label(NodeLabel.STATUS_UPDATE), [])


class TestPersonRepository(SocialGraphTestCase):
    def test_find_and_list(self):
        alice, bob = self.people("Alice", "Bob")

        self.assertEqual(self.repo.find_person_by_name("Bob"), bob)
        self.assertIsNone(self.repo.find_person_by_name("Zed"))
        self.assertEqual(list(self.repo.all_persons()), [alice, bob])

    def test_get_person_by_id_rejects_status_nodes(self):
        alice, = self.people("Alice")
        update = alice.add_status("hi")
        with self.assertRaises(NodeNotFoundError):
            self.repo.get_person_by_id(update.node_id)

    def test_delete_person_removes_friendships_and_statuses(self):
        alice, bob = self.people("Alice", "Bob")
        alice.add_friend(bob)
        alice.add_status("one")
        alice.add_status("two")
        bob.add_status("bob's")

        self.repo.delete_person(alice)

        self.assertEqual(list(self.repo.all_persons()), [bob])
        self.assertEqual(list(bob.friends()), [])
        self.assertEqual(len(self.store.nodes_with_label(NodeLabel.STATUS_UPDATE)), 1)
        self.assertEqual([s.text for s in bob.status()], ["bob's"])
        self.assertFalse(self.store.has_node(alice.node_id))


if __name__ == "__main__":
    unittest.main()
