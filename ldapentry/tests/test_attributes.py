"""
Tests for AttributeStore.
"""

import unittest

from ldapentry.attributes import AttributeStore
from ldapentry.schema import Schema


class TestAttributeStore(unittest.TestCase):

    def setUp(self):
        self.store = AttributeStore(Schema())

    def test_new_store_is_empty(self):
        self.assertEqual(self.store.original, {})
        self.assertEqual(self.store.current, {})
        self.assertFalse(self.store.exists)
        self.assertFalse(self.store.is_dirty())

    def test_initial_attributes_are_changes(self):
        store = AttributeStore(Schema(), attributes={"CN": "John Doe", "mail": ["a", "b"]})
        self.assertEqual(store.current, {"cn": ["John Doe"], "mail": ["a", "b"]})
        self.assertEqual(store.original, {})
        self.assertTrue(store.is_dirty())

    def test_load(self):
        self.store.load(
            {"dn": ["cn=John,dc=corp"], "CN": [b"John"], "objectClass": ["top", "person"]}
        )
        self.assertTrue(self.store.exists)
        self.assertFalse(self.store.is_dirty())
        self.assertEqual(self.store.get_dn(), "cn=John,dc=corp")
        self.assertEqual(self.store.get("cn"), [b"John"])
        self.assertEqual(self.store.get("objectclass"), ["top", "person"])

    def test_snapshots_are_independent(self):
        raw = {"mail": ["a"]}
        self.store.load(raw)
        self.store.current["mail"].append("b")
        self.assertEqual(self.store.original["mail"], ["a"])
        self.assertEqual(raw["mail"], ["a"])

    def test_get_returns_a_copy(self):
        self.store.set("mail", ["a"])
        self.store.get("mail").append("b")
        self.assertEqual(self.store.get("mail"), ["a"])

    def test_get_is_case_insensitive(self):
        self.store.set("TelephoneNumber", "555-1234")
        self.assertEqual(self.store.get("telephonenumber"), ["555-1234"])
        self.assertEqual(self.store.get_first("TELEPHONENUMBER"), "555-1234")
        self.assertTrue(self.store.has("telephoneNumber"))

    def test_missing_attribute(self):
        self.assertIsNone(self.store.get("cn"))
        self.assertIsNone(self.store.get_first("cn"))
        self.assertFalse(self.store.has("cn"))

    def test_set_none_clears(self):
        self.store.set("cn", None)
        self.assertEqual(self.store.get("cn"), [])
        self.assertIsNone(self.store.get_first("cn"))

    def test_unset(self):
        self.store.set("cn", "John")
        self.store.unset("CN")
        self.assertFalse(self.store.has("cn"))
        self.store.unset("cn")

    def test_dn(self):
        self.store.set_dn("cn=John,dc=corp")
        self.assertEqual(self.store.get_dn(), "cn=John,dc=corp")
        self.store.set("DN", [b"cn=Jane,dc=corp"])
        self.assertEqual(self.store.get_dn(), "cn=Jane,dc=corp")
        self.store.set_dn("")
        self.assertIsNone(self.store.get_dn())

    def test_sync(self):
        self.store.load({"cn": ["John"]})
        self.store.set("cn", "Jane")
        self.assertTrue(self.store.is_dirty())
        self.store.sync()
        self.assertFalse(self.store.is_dirty())
        self.assertEqual(self.store.original, {"cn": ["Jane"]})

    def test_apply(self):
        self.store.load({"cn": ["John"], "mail": ["a"]})
        self.store.set("sn", "Doe")
        self.store.apply("mail", ["b"])
        self.assertEqual(self.store.original["mail"], ["b"])
        self.assertEqual(self.store.current["mail"], ["b"])
        self.store.apply("cn", None)
        self.assertNotIn("cn", self.store.original)
        self.assertNotIn("cn", self.store.current)
        # unrelated pending changes stay pending
        self.assertEqual(self.store.current["sn"], ["Doe"])
        self.assertNotIn("sn", self.store.original)

    def test_apply_added(self):
        self.store.load({"mail": ["a"]})
        self.store.set("sn", "Doe")
        self.store.apply_added("MAIL", "b")
        self.assertEqual(self.store.original["mail"], ["a", "b"])
        self.assertEqual(self.store.current["mail"], ["a", "b"])
        self.store.apply_added("telephonenumber", ["555-1234"])
        self.assertEqual(self.store.original["telephonenumber"], ["555-1234"])
        # unrelated pending changes stay pending
        self.assertEqual(self.store.current["sn"], ["Doe"])
        self.assertNotIn("sn", self.store.original)
