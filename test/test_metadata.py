"""
Metadata extractor behavioral tests (ordering, defaults, filters, registry).

Scope
- Validate option ordering across inheritance (base first, explicit order wins, stable ties).
- Validate the default-resolution variants (explicit, zero value, none).
- Validate value type resolution (explicit type, generic parameter, annotation, str).
- Validate filter extraction order and the process-wide registry.

Conventions
- Test method names follow CamelCase per project convention.
- Command classes are module-level so their annotations resolve.
"""

import decimal
import enum
import pathlib
import unittest
from unittest import TestCase

from helmsman import Option, Filter, command
from helmsman.faults import DuplicateOptionError
from helmsman.metadata import (
    NoDefault,
    ExplicitDefault,
    ZeroValueDefault,
    ValueType,
    describe,
    extract_options,
    extract_filters,
)


class Audit:
    pass


class Timing:
    pass


class Format(enum.Enum):
    JSON = "json"
    XML = "xml"


class Base:
    alpha: str = Option("--alpha")
    beta: int = Option("--beta")


class Derived(Base):
    gamma: bool = Option("--gamma")
    delta: str = Option("--delta")


class Ordered(Base):
    gamma: bool = Option("--gamma", order=1)
    delta: str = Option("--delta", order=0)


class Ties:
    first: str = Option("--first", order=2)
    second: str = Option("--second", order=1)
    third: str = Option("--third", order=2)


class Redefined(Base):
    alpha: str = Option("--alpha", descr="redefined")


class Defaults:
    flag: bool = Option("--flag")
    count: int = Option("--count")
    ratio: float = Option("--ratio")
    text: str = Option("--text")
    amount: decimal.Decimal = Option("--amount")
    maybe: int | None = Option("--maybe")
    tags: list[str] = Option("--tag")
    path: pathlib.Path = Option("--path")
    format: Format = Option("--format")
    needed: str = Option("--needed", required=True)
    given: str = Option("--given", required=True, default="x")
    nothing: str = Option("--nothing", default=None)
    extras: list[str] = Option("--extra", default=["a"])


class Types:
    explicit = Option("--explicit", type=int)
    generic = Option[float]("--generic")
    annotated: bool = Option("--annotated")
    bare = Option("--bare")


class Clashing(Base):
    other: str = Option("--other", "--alpha")


@command("tool", "tool description")
@Filter(Audit, order=5)
@Filter(Timing)
class Tool:
    pass


@Filter(Audit, order=1)
class SubTool(Tool):
    """
    Sub tool summary
    spanning two lines.

    Details that are not part of the description.
    """


def names(options):
    return [option.name for option in options]


class TestOptionOrdering(TestCase):
    """Behavioral tests for option ordering."""

    def testBaseOptionsComeFirstWithoutExplicitOrder(self):
        self.assertEqual(names(extract_options(Derived)), ["--alpha", "--beta", "--gamma", "--delta"])

    def testHierarchyRanksDecrease(self):
        options = {option.name: option for option in extract_options(Derived)}
        self.assertEqual(options["--gamma"].hierarchy, 0)
        self.assertEqual(options["--alpha"].hierarchy, -1)
        self.assertEqual((options["--alpha"].index, options["--beta"].index), (0, 1))

    def testExplicitOrderPrecedesUnordered(self):
        self.assertEqual(names(extract_options(Ordered)), ["--delta", "--gamma", "--alpha", "--beta"])

    def testDuplicateExplicitOrdersAreStable(self):
        self.assertEqual(names(extract_options(Ties)), ["--second", "--first", "--third"])

    def testRedefinedOptionIsDescribedOnceFromSubclass(self):
        options = extract_options(Redefined)
        # The redefinition belongs to the subclass level, so it sorts after base options.
        self.assertEqual(names(options), ["--beta", "--alpha"])
        self.assertEqual(options[1].descr, "redefined")
        self.assertIs(options[1].owner, Redefined)

    def testDuplicateNameAcrossOptionsRejected(self):
        with self.assertRaises(DuplicateOptionError) as context:
            extract_options(Clashing)
        self.assertIs(context.exception.command_type, Clashing)

    def testNonClassRejected(self):
        with self.assertRaises(TypeError):
            extract_options(Base())


class TestDefaults(TestCase):
    """Behavioral tests for default resolution."""

    def setUp(self):
        self.options = {option.attribute: option for option in extract_options(Defaults)}

    def supplied(self, attribute):
        return self.options[attribute].default.supplier()()

    def testZeroValuesForValueTypes(self):
        self.assertIs(self.supplied("flag"), False)
        self.assertEqual(self.supplied("count"), 0)
        self.assertEqual(self.supplied("ratio"), 0.0)
        self.assertEqual(self.supplied("text"), "")
        self.assertEqual(self.supplied("amount"), decimal.Decimal(0))

    def testAbsentValuesForOtherTypes(self):
        self.assertIsNone(self.supplied("maybe"))
        self.assertIsNone(self.supplied("path"))
        self.assertIsNone(self.supplied("format"))
        self.assertEqual(self.supplied("tags"), [])

    def testListZeroValueIsFreshEachTime(self):
        supplier = self.options["tags"].default.supplier()
        self.assertIsNot(supplier(), supplier())

    def testRequiredWithoutDefaultHasNoSupplier(self):
        self.assertIsInstance(self.options["needed"].default, NoDefault)
        self.assertIs(self.options["needed"].default.supplier(), NoDefault().supplier())

    def testExplicitDefaultWinsOverRequired(self):
        self.assertEqual(self.options["given"].default, ExplicitDefault("x"))
        self.assertEqual(self.supplied("given"), "x")

    def testExplicitNoneIsAnExplicitDefault(self):
        self.assertIsInstance(self.options["nothing"].default, ExplicitDefault)
        self.assertIsNone(self.supplied("nothing"))

    def testExplicitMutableDefaultIsCopiedPerCall(self):
        supplier = self.options["extras"].default.supplier()
        first = supplier()
        first.append("b")
        self.assertEqual(supplier(), ["a"])
        self.assertIsNot(supplier(), supplier())

    def testNotRequiredWithoutDefaultIsZeroValue(self):
        self.assertIsInstance(self.options["count"].default, ZeroValueDefault)


class TestValueTypes(TestCase):
    """Behavioral tests for value type resolution."""

    def testResolutionOrder(self):
        options = {option.attribute: option.value_type.base for option in extract_options(Types)}
        self.assertEqual(options, {"explicit": int, "generic": float, "annotated": bool, "bare": str})

    def testNullableAndMultiple(self):
        self.assertEqual(ValueType.resolve(int | None)[:3], (int, True, False))
        self.assertEqual(ValueType.resolve(list[str])[:3], (str, False, True))
        self.assertEqual(ValueType.resolve(list[int] | None)[:3], (int, True, True))

    def testWideUnionsAreKeptAsIs(self):
        self.assertEqual(ValueType.resolve(int | str).base, int | str)


class TestFiltersAndRegistry(TestCase):
    """Behavioral tests for filter extraction and the registry."""

    def testFiltersKeepSourceOrderBaseFirst(self):
        self.assertEqual([(f.type, f.order) for f in extract_filters(Tool)], [(Audit, 5), (Timing, 0)])
        self.assertEqual([(f.type, f.order) for f in extract_filters(SubTool)],
                         [(Audit, 5), (Timing, 0), (Audit, 1)])

    def testDescribeIsCached(self):
        self.assertIs(describe(Derived), describe(Derived))

    def testCommandIdentity(self):
        self.assertEqual((describe(Tool).name, describe(Tool).descr), ("tool", "tool description"))

    def testIdentityIsNotInheritedAndFallsBackToDocstring(self):
        self.assertEqual(describe(SubTool).name, "sub-tool")
        self.assertEqual(describe(SubTool).descr, "Sub tool summary spanning two lines.")


if __name__ == "__main__":
    unittest.main()
