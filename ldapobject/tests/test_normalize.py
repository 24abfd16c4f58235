"""
Tests for normalizing raw directory entries.
"""

import unittest

from ldapobject.normalize import NormalizedObject, normalize
from ldapobject.searcher import RawEntry


class TestNormalize(unittest.TestCase):
    def test_objectclass_is_pulled_out(self):
        entry = RawEntry(
            "cn=alice,dc=example,dc=com",
            [("objectClass", ["top", "person"]), ("cn", ["alice"])],
        )
        obj = normalize(entry)
        self.assertEqual(obj.object_classes, ["top", "person"])
        self.assertEqual(obj.attributes, {"cn": ["alice"]})
        self.assertNotIn("objectClass", obj.attributes)

    def test_location_is_also_the_identifier(self):
        obj = normalize(RawEntry("cn=alice,dc=example,dc=com", []))
        self.assertEqual(obj.location, "cn=alice,dc=example,dc=com")
        self.assertEqual(obj.identifier, "cn=alice,dc=example,dc=com")

    def test_no_objectclass(self):
        obj = normalize(RawEntry("cn=x,dc=example,dc=com", [("cn", ["x"])]))
        self.assertEqual(obj.object_classes, [])
        self.assertEqual(obj.attributes, {"cn": ["x"]})

    def test_objectclass_match_is_case_sensitive(self):
        entry = RawEntry(
            "cn=x,dc=example,dc=com",
            [("objectclass", ["top"]), ("objectClass", ["person"])],
        )
        obj = normalize(entry)
        self.assertEqual(obj.object_classes, ["person"])
        self.assertEqual(obj.attributes, {"objectclass": ["top"]})

    def test_value_order_is_kept(self):
        entry = RawEntry(
            "cn=developers,dc=example,dc=com",
            [
                ("objectClass", ["top", "posixGroup"]),
                ("memberUid", ["carol", "alice", "bob"]),
            ],
        )
        obj = normalize(entry)
        self.assertEqual(obj.object_classes, ["top", "posixGroup"])
        self.assertEqual(obj.attributes["memberUid"], ["carol", "alice", "bob"])

    def test_attribute_name_case_is_kept(self):
        obj = normalize(
            RawEntry("cn=x,dc=example,dc=com", [("homeDirectory", ["/home/x"])])
        )
        self.assertEqual(list(obj.attributes), ["homeDirectory"])

    def test_repeated_attribute_last_wins(self):
        obj = normalize(
            RawEntry("cn=x,dc=example,dc=com", [("cn", ["first"]), ("cn", ["second"])])
        )
        self.assertEqual(obj.attributes, {"cn": ["second"]})

    def test_idempotent(self):
        entry = RawEntry(
            "cn=alice,dc=example,dc=com",
            [("objectClass", ["top", "person"]), ("mail", ["alice@example.com"])],
        )
        first = normalize(entry)
        second = normalize(entry)
        self.assertEqual(first, second)
        self.assertIsNot(first.attributes, second.attributes)

    def test_entry_is_not_shared_or_mutated(self):
        mail = ["alice@example.com"]
        classes = ["top", "person"]
        entry = RawEntry(
            "cn=alice,dc=example,dc=com", [("objectClass", classes), ("mail", mail)]
        )
        obj = normalize(entry)
        obj.attributes["mail"].append("other@example.com")
        obj.object_classes.append("inetOrgPerson")
        self.assertEqual(mail, ["alice@example.com"])
        self.assertEqual(classes, ["top", "person"])
        self.assertEqual(normalize(entry).attributes, {"mail": ["alice@example.com"]})


class TestAsState(unittest.TestCase):
    def test_as_state(self):
        obj = NormalizedObject(
            "cn=alice,dc=example,dc=com",
            ["top", "person"],
            {"mail": ["alice@example.com"]},
        )
        self.assertEqual(
            obj.as_state(),
            {
                "id": "cn=alice,dc=example,dc=com",
                "dn": "cn=alice,dc=example,dc=com",
                "object_classes": ["top", "person"],
                "attributes": {"mail": ["alice@example.com"]},
            },
        )

    def test_as_state_copies(self):
        obj = NormalizedObject("cn=x,dc=example,dc=com", ["top"], {"cn": ["x"]})
        state = obj.as_state()
        state["object_classes"].append("person")
        state["attributes"]["cn"].append("y")
        self.assertEqual(obj.object_classes, ["top"])
        self.assertEqual(obj.attributes, {"cn": ["x"]})
