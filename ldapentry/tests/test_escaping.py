"""
Tests for escaping and unescaping of directory values.
"""

import unittest

from ldapentry.escaping import (
    EscapeContext,
    encode_password,
    escape,
    escape_dn_value,
    escape_filter_value,
    unescape,
)


class TestEscape(unittest.TestCase):
    """Test escape() in each context."""

    def test_unspecified_escapes_everything(self):
        self.assertEqual(
            escape("<>!=,#$%^testing"),
            r"\3c\3e\21\3d\2c\23\24\25\5e\74\65\73\74\69\6e\67",
        )

    def test_unspecified_with_ignore(self):
        self.assertEqual(
            escape("**<>!=,#$%^testing", "*<>!"),
            r"**<>!\3d\2c\23\24\25\5e\74\65\73\74\69\6e\67",
        )

    def test_ignore_accepts_a_set(self):
        self.assertEqual(
            escape("**<>!=,#$%^testing", {"*", "<", ">", "!"}),
            r"**<>!\3d\2c\23\24\25\5e\74\65\73\74\69\6e\67",
        )

    def test_dn_context_with_ignore(self):
        self.assertEqual(
            escape("**<>!=,#$%^testing", "*", EscapeContext.DN),
            r"**\3c\3e!\3d\2c\23$%^testing",
        )

    def test_both_contexts_with_ignore(self):
        self.assertEqual(
            escape("*^&.:foo()-=", "*", EscapeContext.BOTH),
            r"*^&.:foo\28\29-\3d",
        )

    def test_integer_flags(self):
        self.assertEqual(escape("*^&.:foo()-=", "*", 3), r"*^&.:foo\28\29-\3d")
        self.assertEqual(escape("a(b)", flags=1), r"a\28b\29")

    def test_invalid_flags_raise_value_error(self):
        with self.assertRaises(ValueError):
            escape("foo", flags=7)

    def test_filter_context(self):
        self.assertEqual(
            escape_filter_value("John (Jack) Doe*\\\x00"),
            r"John \28Jack\29 Doe\2a\5c\00",
        )

    def test_filter_context_leaves_dn_characters_alone(self):
        self.assertEqual(escape_filter_value("Doe, John=#"), "Doe, John=#")

    def test_dn_context_boundary_spaces(self):
        self.assertEqual(escape_dn_value(" John Doe "), r"\20John Doe\20")

    def test_dn_context_leading_hash(self):
        self.assertEqual(escape_dn_value("#1 Fan"), r"\231 Fan")

    def test_dn_context_special_characters(self):
        self.assertEqual(
            escape_dn_value('Doe, John+"Jr"<x>;y=\\'),
            r"Doe\2c John\2b\22Jr\22\3cx\3e\3by\3d\5c",
        )

    def test_non_ascii_is_escaped_per_utf8_byte(self):
        self.assertEqual(escape("é"), r"\c3\a9")
        self.assertEqual(escape_dn_value("Jörg"), "Jörg")

    def test_empty_string(self):
        self.assertEqual(escape(""), "")


class TestUnescape(unittest.TestCase):
    """Test unescape() and its relationship with escape()."""

    def test_unescape(self):
        self.assertEqual(unescape(r"\3c\3e\21\3d\2c\23"), "<>!=,#")

    def test_unescape_uppercase_hex(self):
        self.assertEqual(unescape(r"\3C\3E"), "<>")

    def test_unescape_leaves_other_characters_alone(self):
        self.assertEqual(unescape(r"**<>!\3d\2c"), "**<>!=,")
        self.assertEqual(unescape(r"foo\zz"), r"foo\zz")

    def test_round_trip(self):
        for value in ("testing", "<>!=,#$%^testing", "Jörg Müller", " spaced ", ""):
            with self.subTest(value=value):
                self.assertEqual(unescape(escape(value)), value)

    def test_round_trip_with_ignore(self):
        value = "**<>!=,#$%^testing"
        self.assertEqual(unescape(escape(value, "*<>!")), value)

    def test_invalid_utf8_falls_back_to_code_points(self):
        self.assertEqual(unescape(r"\c3"), "\xc3")
        self.assertEqual(unescape(r"\ff\41"), "\xffA")


class TestEncodePassword(unittest.TestCase):
    """Test the unicodePwd encoding."""

    def test_encode_password(self):
        self.assertEqual(
            encode_password("password").hex(),
            "2200700061007300730077006f00720064002200",
        )

    def test_encoded_length(self):
        for password in ("", "a", "correct horse battery staple"):
            with self.subTest(password=password):
                self.assertEqual(len(encode_password(password)), 2 * (len(password) + 2))

    def test_encoding_is_utf16le(self):
        self.assertEqual(encode_password("pä").decode("utf-16-le"), '"pä"')
