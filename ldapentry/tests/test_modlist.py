"""
Tests for change-set building.
"""

import unittest

from ldapentry.modlist import Modification, Modlist, ModType, normalize_values
from ldapentry.schema import ActiveDirectorySchema


class TestModification(unittest.TestCase):
    """Test the Modification value object."""

    def test_wire_codes(self):
        self.assertEqual(int(ModType.ADD), 1)
        self.assertEqual(int(ModType.REPLACE), 3)
        self.assertEqual(int(ModType.REMOVE_ALL), 18)

    def test_as_dict(self):
        self.assertEqual(
            Modification.replace("cn", "New Name").as_dict(),
            {"attrib": "cn", "modtype": 3, "values": ["New Name"]},
        )
        self.assertEqual(
            Modification.add("mail", ["a@example.com", "b@example.com"]).as_dict(),
            {"attrib": "mail", "modtype": 1, "values": ["a@example.com", "b@example.com"]},
        )

    def test_remove_has_no_values(self):
        data = Modification.remove("cn").as_dict()
        self.assertEqual(data, {"attrib": "cn", "modtype": 18})
        self.assertNotIn("values", data)

    def test_remove_rejects_values(self):
        with self.assertRaises(ValueError):
            Modification("cn", ModType.REMOVE_ALL, ("x",))

    def test_add_and_replace_require_values(self):
        with self.assertRaises(ValueError):
            Modification.add("cn", [])
        with self.assertRaises(ValueError):
            Modification("cn", ModType.REPLACE)

    def test_is_immutable(self):
        modification = Modification.remove("cn")
        with self.assertRaises(AttributeError):
            modification.attrib = "sn"


class TestNormalizeValues(unittest.TestCase):

    def test_normalize_values(self):
        self.assertEqual(normalize_values(None), [])
        self.assertEqual(normalize_values("a"), ["a"])
        self.assertEqual(normalize_values(b"a"), [b"a"])
        self.assertEqual(normalize_values(("a", "b")), ["a", "b"])
        self.assertEqual(normalize_values(42), ["42"])


class TestModlistDiff(unittest.TestCase):
    """Test Modlist.diff()."""

    def setUp(self):
        self.modlist = Modlist(ActiveDirectorySchema())
        self.original = {
            "cn": ["Common Name"],
            "samaccountname": ["Account Name"],
            "name": ["Name"],
        }

    def test_deterministic_order(self):
        current = {
            "cn": [],
            "samaccountname": ["Changed"],
            "test": ["New Attribute"],
            "name": ["New Name"],
        }
        modifications = self.modlist.diff(self.original, current)
        self.assertEqual(
            modifications,
            [
                Modification.remove("cn"),
                Modification.replace("samaccountname", ["Changed"]),
                Modification.replace("name", ["New Name"]),
                Modification.add("test", ["New Attribute"]),
            ],
        )

    def test_diff_is_idempotent(self):
        current = {"cn": ["Changed"], "mail": ["a@example.com"]}
        self.assertEqual(
            self.modlist.diff(self.original, current),
            self.modlist.diff(self.original, current),
        )

    def test_missing_key_is_removed(self):
        current = {"cn": ["Common Name"], "name": ["Name"]}
        self.assertEqual(
            self.modlist.diff(self.original, current),
            [Modification.remove("samaccountname")],
        )

    def test_value_order_matters(self):
        original = {"mail": ["a", "b"]}
        self.assertEqual(
            self.modlist.diff(original, {"mail": ["b", "a"]}),
            [Modification.replace("mail", ["b", "a"])],
        )

    def test_no_changes(self):
        self.assertEqual(self.modlist.diff(self.original, dict(self.original)), [])

    def test_empty_new_attribute_is_skipped(self):
        current = dict(self.original)
        current["mail"] = []
        self.assertEqual(self.modlist.diff(self.original, current), [])

    def test_names_are_case_insensitive(self):
        self.assertEqual(
            self.modlist.diff({"CN": ["x"], "DN": "a"}, {"cn": ["x"], "DN": "b"}), []
        )
        self.assertEqual(
            self.modlist.diff({"Mail": ["a"]}, {"MAIL": ["b"]}),
            [Modification.replace("mail", ["b"])],
        )

    def test_dn_key_is_ignored(self):
        original = dict(self.original, dn="cn=Common Name,dc=corp")
        current = dict(self.original, dn="cn=Other,dc=corp")
        self.assertEqual(self.modlist.diff(original, current), [])
        self.assertEqual(self.modlist.diff({}, {"dn": "cn=x,dc=corp"}), [])


class TestModlistHelpers(unittest.TestCase):
    """Test the add mapping and the single attribute helpers."""

    def setUp(self):
        self.modlist = Modlist(ActiveDirectorySchema())

    def test_add_is_case_insensitive(self):
        self.assertEqual(
            self.modlist.add({"DN": "cn=John,dc=corp", "CN": ["John"]}), {"cn": ["John"]}
        )

    def test_add_drops_dn_and_empty_attributes(self):
        self.assertEqual(
            self.modlist.add(
                {"dn": "cn=John,dc=corp", "cn": ["John"], "mail": [], "sn": "Doe"}
            ),
            {"cn": ["John"], "sn": ["Doe"]},
        )

    def test_single_attribute_helpers(self):
        self.assertEqual(
            self.modlist.create_attribute("mail", "a@example.com"),
            Modification(attrib="mail", modtype=ModType.ADD, values=("a@example.com",)),
        )
        self.assertEqual(
            self.modlist.update_attribute("cn", ["x"]),
            Modification(attrib="cn", modtype=ModType.REPLACE, values=("x",)),
        )
        self.assertEqual(
            self.modlist.delete_attribute("cn"),
            Modification(attrib="cn", modtype=ModType.REMOVE_ALL),
        )
