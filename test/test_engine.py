"""
Parser engine behavioral tests (registration, coercion, faults).

Scope
- Validate value coercion for every supported type, nullable and list forms.
- Validate default suppliers, required options and completion hints.
- Validate sub-command selection and parse faults.

Conventions
- Test method names follow CamelCase per project convention.
- The engine is driven directly, without command classes.
"""

import datetime
import decimal
import enum
import pathlib
import unittest
from unittest import TestCase

from helmsman.engine import ParserEngine
from helmsman.faults import (
    ParseError,
    MissingOptionError,
    UnknownCommandError,
    DuplicateOptionError,
    DuplicateCommandError,
    UnsupportedOptionTypeError,
)
from helmsman.metadata import ValueType


class Format(enum.Enum):
    JSON = "json"
    XML = "xml"


class TestCoercion(TestCase):
    """Behavioral tests for typed values."""

    def setUp(self):
        self.engine = ParserEngine("tool")
        self.root = self.engine.root

    def testScalars(self):
        count = self.root.add_option("--count", (), int)
        ratio = self.root.add_option("--ratio", (), float)
        amount = self.root.add_option("--amount", (), decimal.Decimal)
        path = self.root.add_option("--path", (), pathlib.Path)
        result = self.engine.parse("--count 3 --ratio 0.5 --amount 1.10 --path /tmp/x")
        self.assertEqual(result.get_value(count), 3)
        self.assertEqual(result.get_value(ratio), 0.5)
        self.assertEqual(result.get_value(amount), decimal.Decimal("1.10"))
        self.assertEqual(result.get_value(path), pathlib.Path("/tmp/x"))

    def testBooleanSwitchAndNegation(self):
        verbose = self.root.add_option("--verbose", ("-v",), bool)
        self.assertIs(self.engine.parse(["-v"]).get_value(verbose), True)
        self.assertIs(self.engine.parse(["--verbose"]).get_value(verbose), True)
        self.assertIs(self.engine.parse(["--no-verbose"]).get_value(verbose), False)
        with self.assertRaises(ParseError):
            self.engine.parse(["--verbose", "maybe"])

    def testBooleanSwitchDoesNotSwallowSubCommand(self):
        verbose = self.root.add_option("--verbose", (), bool)
        add = self.root.add_command("add")
        result = self.engine.parse(["--verbose", "add"])
        self.assertIs(result.command, add)
        self.assertIs(result.get_value(verbose), True)

    def testBooleanList(self):
        flags = self.root.add_option("--flag", (), list[bool])
        self.assertEqual(self.engine.parse("--flag yes off 1").get_value(flags), [True, False, True])

    def testEnumByNameOrValue(self):
        format = self.root.add_option("--format", (), Format)
        self.assertIs(self.engine.parse("--format XML").get_value(format), Format.XML)
        self.assertIs(self.engine.parse("--format json").get_value(format), Format.JSON)
        with self.assertRaises(ParseError):
            self.engine.parse("--format yaml")

    def testNullableAndList(self):
        maybe = self.root.add_option("--maybe", (), int | None)
        tags = self.root.add_option("--tag", (), list[str])
        result = self.engine.parse("--maybe 7 --tag a --tag b c")
        self.assertEqual(result.get_value(maybe), 7)
        self.assertEqual(result.get_value(tags), ["a", "b", "c"])

    def testInvalidValueIsParseError(self):
        count = self.root.add_option("--count", (), int)
        with self.assertRaises(ParseError):
            self.engine.parse("--count three")
        with self.assertRaises(ParseError):
            self.root.add_option("--amount", (), decimal.Decimal)
            self.engine.parse("--amount lots")
        self.assertIsNotNone(count)

    def testUnknownOptionIsParseError(self):
        with self.assertRaises(ParseError):
            self.engine.parse("--nope")

    def testPromptMustBeTextOrTokens(self):
        with self.assertRaises(TypeError):
            self.engine.parse(42)
        with self.assertRaises(TypeError):
            self.engine.parse([1, 2])


class TestDefaultsAndHints(TestCase):
    """Behavioral tests for suppliers, required options and completions."""

    def setUp(self):
        self.engine = ParserEngine("tool")
        self.root = self.engine.root

    def testSupplierUsedWhenOmitted(self):
        name = self.root.add_option("--name", (), str, supplier=lambda: "world")
        result = self.engine.parse([])
        self.assertEqual(result.get_value(name), "world")
        self.assertNotIn(name, result)

    def testOmittedWithoutSupplierIsNone(self):
        name = self.root.add_option("--name", (), str)
        self.assertIsNone(self.engine.parse([]).get_value(name))

    def testRequiredWithoutSupplierFails(self):
        self.root.add_option("--shout", (), bool, required=True)
        with self.assertRaises(MissingOptionError):
            self.engine.parse([])

    def testRequiredWithSupplierDoesNotFail(self):
        name = self.root.add_option("--name", (), str, supplier=lambda: "world", required=True)
        self.assertEqual(self.engine.parse([]).get_value(name), "world")

    def testCompletionsAreHintsOnly(self):
        color = self.root.add_option("--color", (), str, "paint color", completions=("red", "green"))
        self.assertEqual(self.engine.parse("--color purple").get_value(color), "purple")
        self.assertIn("red, green", self.root.format_help())

    def testAliases(self):
        name = self.root.add_option("--name", ("-n", "--full-name"), str)
        self.assertEqual(self.engine.parse("-n a").get_value(name), "a")
        self.assertEqual(self.engine.parse("--full-name b").get_value(name), "b")


class TestRegistration(TestCase):
    """Behavioral tests for registration faults and the command tree."""

    def setUp(self):
        self.engine = ParserEngine("tool")
        self.root = self.engine.root

    def testSupports(self):
        self.assertTrue(self.root.supports(int))
        self.assertTrue(self.root.supports(ValueType.resolve(list[Format] | None)))
        self.assertFalse(self.root.supports(datetime.datetime))
        self.assertFalse(self.root.supports(int | str))

    def testUnsupportedType(self):
        with self.assertRaises(UnsupportedOptionTypeError):
            self.root.add_option("--when", (), datetime.datetime)

    def testDuplicateOptionString(self):
        self.root.add_option("--name", ("-n",), str)
        with self.assertRaises(DuplicateOptionError):
            self.root.add_option("--nickname", ("-n",), str)

    def testSubCommandSelection(self):
        remote = self.root.add_command("remote", "manage remotes")
        add = remote.add_command("add", "add a remote")
        url = add.add_option("--url", (), str, required=True)
        result = self.engine.parse("remote add --url https://example.org")
        self.assertIs(result.command, add)
        self.assertEqual(result.get_value(url), "https://example.org")
        self.assertIs(self.engine.parse("remote").command, remote)
        self.assertIs(self.engine.parse([]).command, self.root)
        self.assertEqual([node.name for node in add.path], ["tool", "remote", "add"])

    def testSameOptionNameOnParentAndChild(self):
        parent = self.root.add_option("--name", (), str)
        child_node = self.root.add_command("child")
        child = child_node.add_option("--name", (), str)
        result = self.engine.parse("child --name x")
        self.assertEqual(result.get_value(child), "x")
        self.assertIsNone(result.get_value(parent))

    def testDuplicateSubCommand(self):
        self.root.add_command("remote")
        with self.assertRaises(DuplicateCommandError):
            self.root.add_command("remote")

    def testUnknownSubCommand(self):
        self.root.add_command("remote")
        with self.assertRaises(UnknownCommandError):
            self.engine.parse("nope")

    def testMissingRequiredInSubCommand(self):
        child = self.root.add_command("child")
        child.add_option("--needed", (), str, required=True)
        with self.assertRaises(MissingOptionError):
            self.engine.parse("child")


if __name__ == "__main__":
    unittest.main()
