import unittest

from roamdb.database import Database
from roamdb.errors import DuplicateIdError, InvalidIndexError, NullDataError


class TestRecords(unittest.TestCase):
    def setUp(self):
        self.db = Database()

    def test_insert_and_get(self):
        """
        Inserted data can be retrieved by the id it was stored under.
        """
        id = self.db.insert({"title": "Alpha"}, id="n1")

        self.assertEqual(id, "n1")
        self.assertEqual(self.db.get("n1"), {"title": "Alpha"})
        self.assertTrue(self.db.has("n1"))
        self.assertIn("n1", self.db)
        self.assertEqual(len(self.db), 1)

    def test_insert_generates_id(self):
        first = self.db.insert("one")
        second = self.db.insert("two")

        self.assertIsInstance(first, str)
        self.assertNotEqual(first, second)
        self.assertEqual(self.db.ids(), {first, second})

    def test_insert_none_fails(self):
        with self.assertRaises(NullDataError):
            self.db.insert(None, id="n1")
        self.assertFalse(self.db.has("n1"))

    def test_insert_falsy_data_is_allowed(self):
        self.db.insert(False, id="f")
        self.db.insert(0, id="z")

        self.assertTrue(self.db.has("f"))
        self.assertTrue(self.db.has("z"))

    def test_insert_duplicate_fails(self):
        self.db.insert("one", id="n1")

        with self.assertRaises(DuplicateIdError):
            self.db.insert("two", id="n1")
        self.assertEqual(self.db.get("n1"), "one")

    def test_overwrite_preserves_edges(self):
        """
        Given A -> B and C -> A, overwriting A keeps both edges.
        """
        for id in ("A", "B", "C"):
            self.db.insert({"name": id}, id=id)
        self.db.link("A", ["B"])
        self.db.link("C", ["A"])

        self.db.insert({"name": "new A"}, id="A", overwrite=True)

        self.assertEqual(self.db.get("A"), {"name": "new A"})
        self.assertEqual(self.db.get_links("A"), {"B": 1})
        self.assertEqual(self.db.get_backlinks("A"), {"C": 1})
        self.assertEqual(self.db.get_links("C"), {"A": 1})
        self.assertEqual(self.db.get_backlinks("B"), {"A": 1})

    def test_overwrite_of_missing_id_inserts(self):
        self.db.insert("data", id="n1", overwrite=True)
        self.assertEqual(self.db.get("n1"), "data")

    def test_link_before_insert_is_kept(self):
        """
        Edges may be declared before their endpoints exist.
        """
        self.db.link("A", ["B"])
        self.db.insert("a", id="A")
        self.db.insert("b", id="B")

        self.assertEqual(self.db.get_links("A"), {"B": 1})
        self.assertEqual(self.db.get_backlinks("B"), {"A": 1})

    def test_remove_returns_data(self):
        self.db.insert("data", id="n1")

        self.assertEqual(self.db.remove("n1"), "data")
        self.assertIsNone(self.db.get("n1"))
        self.assertIsNone(self.db.remove("n1"))

    def test_remove_severs_all_edges(self):
        for id in ("X", "Y", "Z"):
            self.db.insert(id, id=id)
        self.db.link("X", ["Y", "Z"])
        self.db.link("Y", ["X"])
        self.db.link("Z", ["X"])

        self.db.remove("X")

        for id in ("Y", "Z"):
            self.assertNotIn("X", self.db.get_links(id))
            self.assertNotIn("X", self.db.get_backlinks(id))
        self.assertEqual(self.db.get_links("X"), {})
        self.assertEqual(self.db.get_backlinks("X"), {})

    def test_get_many(self):
        self.db.insert("a", id="A")
        self.db.insert("b", id="B")

        self.assertEqual(
            self.db.get_many(["A", "B", "missing"]),
            {"A": "a", "B": "b", "missing": None},
        )

    def test_iter_ids_allows_mutation(self):
        for id in ("A", "B", "C"):
            self.db.insert(id, id=id)

        for id in self.db.iter_ids():
            self.db.remove(id)

        self.assertEqual(self.db.ids(), set())

    def test_changed_tick_increases(self):
        tick = self.db.changed_tick()
        self.db.insert("a", id="A")
        after_insert = self.db.changed_tick()
        self.db.link("A", ["B"])
        after_link = self.db.changed_tick()
        self.db.remove("A")

        self.assertGreater(after_insert, tick)
        self.assertGreater(after_link, after_insert)
        self.assertGreater(self.db.changed_tick(), after_link)


class TestEdges(unittest.TestCase):
    def setUp(self):
        self.db = Database()

    def assertSymmetric(self):
        for source, targets in self.db._outbound.items():
            for target in targets:
                self.assertIn(source, self.db._inbound[target])
        for target, sources in self.db._inbound.items():
            for source in sources:
                self.assertIn(target, self.db._outbound[source])

    def test_link_is_idempotent(self):
        self.db.link("A", ["B"])
        self.db.link("A", ["B"])

        self.assertEqual(self.db.get_links("A"), {"B": 1})
        self.assertEqual(self.db.get_backlinks("B"), {"A": 1})
        self.assertSymmetric()

    def test_unlink_returns_removed_targets(self):
        self.db.link("A", ["B", "C"])

        self.assertEqual(self.db.unlink("A", ["B", "D"]), ["B"])
        self.assertEqual(self.db.get_links("A"), {"C": 1})
        self.assertEqual(self.db.get_backlinks("B"), {})
        self.assertSymmetric()

    def test_unlink_all(self):
        self.db.link("A", ["B", "C"])

        self.assertCountEqual(self.db.unlink("A"), ["B", "C"])
        self.assertEqual(self.db.get_links("A"), {})
        self.assertEqual(self.db.get_backlinks("C"), {})
        self.assertEqual(self.db.unlink("A"), [])

    def test_symmetry_after_mixed_operations(self):
        for id in "ABCD":
            self.db.insert(id, id=id)
        self.db.link("A", ["B", "C"])
        self.db.link("B", ["C", "D"])
        self.db.link("D", ["A"])
        self.db.unlink("B", ["C"])
        self.db.insert("new B", id="B", overwrite=True)
        self.db.remove("C")
        self.db.link("C", ["A"])

        self.assertSymmetric()
        self.assertEqual(self.db.get_links("B"), {"D": 1})
        self.assertEqual(self.db.get_backlinks("B"), {"A": 1})

    def test_scenario(self):
        self.db.insert({"id": "n1", "title": "Alpha"}, id="n1")
        self.db.insert({"id": "n2", "title": "Beta"}, id="n2")
        self.db.link("n1", ["n2"])

        self.assertEqual(self.db.get_links("n1"), {"n2": 1})
        self.assertEqual(self.db.get_backlinks("n2"), {"n1": 1})

        self.db.remove("n1")
        self.assertEqual(self.db.get_backlinks("n2"), {})


class TestIndexes(unittest.TestCase):
    def setUp(self):
        self.db = Database()
        self.db.new_index("tag", lambda data: data.get("tags"))

    def test_find_by_index_list_keys(self):
        id = self.db.insert({"tags": ["x", "y"]})

        self.assertEqual(self.db.find_by_index("tag", "x"), [id])
        self.assertEqual(self.db.find_by_index("tag", "y"), [id])
        self.assertEqual(self.db.find_by_index("tag", "z"), [])

    def test_scalar_and_none_results(self):
        self.db.new_index("title", lambda data: data.get("title"))
        self.db.new_index("flag", lambda data: data.get("flag"))
        self.db.insert({"title": "Alpha", "flag": True}, id="a")
        self.db.insert({"tags": None}, id="b")

        self.assertEqual(self.db.find_by_index("title", "Alpha"), ["a"])
        self.assertEqual(self.db.find_by_index("flag", True), ["a"])
        self.assertEqual(list(self.db.iter_index_keys("tag")), [])

    def test_bool_and_int_keys_are_distinct(self):
        self.db.new_index("flag", lambda data: data.get("flag"))
        self.db.insert({"flag": True}, id="t")
        self.db.insert({"flag": 1}, id="one")
        self.db.insert({"flag": False}, id="f")
        self.db.insert({"flag": 0}, id="zero")

        self.assertEqual(self.db.find_by_index("flag", True), ["t"])
        self.assertEqual(self.db.find_by_index("flag", 1), ["one"])
        self.assertEqual(self.db.find_by_index("flag", False), ["f"])
        self.assertEqual(self.db.find_by_index("flag", 0), ["zero"])
        self.assertEqual(self.db.find_by_index("flag", lambda key: key is True), ["t"])
        self.assertCountEqual(self.db.iter_index_keys("flag"), [True, 1, False, 0])
        self.assertEqual(
            sorted(map(type, self.db.iter_index_keys("flag")), key=lambda t: t.__name__),
            [bool, bool, int, int],
        )

        self.db.remove("t")
        self.assertEqual(self.db.find_by_index("flag", True), [])
        self.assertEqual(self.db.find_by_index("flag", 1), ["one"])

    def test_find_by_predicate(self):
        self.db.insert({"tags": ["apple"]}, id="a")
        self.db.insert({"tags": ["apricot", "apple"]}, id="b")
        self.db.insert({"tags": ["banana"]}, id="c")

        ids = self.db.find_by_index("tag", lambda key: key.startswith("ap"))

        self.assertCountEqual(ids, ["a", "b"])

    def test_unknown_index_yields_nothing(self):
        self.db.insert({"tags": ["x"]}, id="a")

        self.assertEqual(self.db.find_by_index("nope", "x"), [])
        self.assertEqual(self.db.find_by_index("nope", lambda key: True), [])
        self.assertEqual(list(self.db.iter_index_keys("nope")), [])

    def test_reindex_unknown_index_fails(self):
        with self.assertRaises(InvalidIndexError):
            self.db.reindex(indexes=["nope"])

    def test_new_index_is_not_retroactive(self):
        self.db.insert({"tags": ["x"], "title": "Alpha"}, id="a")
        self.db.new_index("title", lambda data: data.get("title"))

        self.assertFalse(self.db.has_index("other"))
        self.assertTrue(self.db.has_index("title"))
        self.assertEqual(self.db.find_by_index("title", "Alpha"), [])

        self.db.reindex(indexes=["title"])
        self.assertEqual(self.db.find_by_index("title", "Alpha"), ["a"])

    def test_remove_clears_index_entries(self):
        self.db.insert({"tags": ["x"]}, id="a")
        self.db.insert({"tags": ["x", "y"]}, id="b")

        self.db.remove("b")

        self.assertEqual(self.db.find_by_index("tag", "x"), ["a"])
        self.assertEqual(self.db.find_by_index("tag", "y"), [])
        self.assertEqual(list(self.db.iter_index_keys("tag")), ["x"])

    def test_reindex_is_additive(self):
        """
        Changing a record in place and reindexing leaves the old key behind.
        """
        data = {"tags": ["old"]}
        self.db.insert(data, id="a")

        data["tags"] = ["new"]
        self.db.reindex(ids=["a"])

        self.assertEqual(self.db.find_by_index("tag", "old"), ["a"])
        self.assertEqual(self.db.find_by_index("tag", "new"), ["a"])

    def test_overwrite_replaces_index_entries(self):
        self.db.insert({"tags": ["old"]}, id="a")
        self.db.insert({"tags": ["new"]}, id="a", overwrite=True)

        self.assertEqual(self.db.find_by_index("tag", "old"), [])
        self.assertEqual(self.db.find_by_index("tag", "new"), ["a"])

    def test_reindex_remove(self):
        self.db.insert({"tags": ["x"]}, id="a")
        self.db.reindex(ids=["a"], remove=True)

        self.assertEqual(self.db.find_by_index("tag", "x"), [])
        self.assertTrue(self.db.has("a"))


if __name__ == "__main__":
    unittest.main()
