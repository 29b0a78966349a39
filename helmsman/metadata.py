"""
Helmsman metadata: immutable descriptions of command classes.

What this module provides
- OptionDescriptor / FilterDescriptor / CommandMetadata: immutable value objects
  (named tuples) describing one option, one filter declaration and one command class.
- NoDefault / ExplicitDefault / ZeroValueDefault: the default-resolution decision for
  an option, taken once when its descriptor is built.
- ValueType: the declared value type of an option split into base type, nullability
  and multiplicity (int | None, list[str], ...).
- extract_options(type) / extract_filters(type): pure transformations of a command
  class into ordered descriptors.
- describe(type): the process-wide registration table; metadata is built once per
  class and shared read-only by every later invocation.

Ordering rules (extract_options)
- The inheritance chain is walked from the most derived class to the root base. Each
  level gets a decreasing hierarchy rank (derived = 0, immediate base = -1, ...) and
  each option within a level an increasing index, in declaration order.
- Options sort by explicit order first. Options without an explicit order come after
  every ordered one, by hierarchy rank then index, so base-class options precede
  derived-class options. The sort is stable.
- An option redefined by a subclass is only described once, from the subclass.

Default rules
- An explicit default (including None) always wins.
- Otherwise a non-required option gets the zero value of its type: False, 0, 0.0, ""
  and Decimal(0) for value-like types, [] for list types, None for anything else
  (nullable types, paths, enums).
- A required option without an explicit default has no default at all.
"""
import copy
import decimal
import inspect
import itertools
import logging
import types
import typing
from collections.abc import MutableMapping, MutableSequence, MutableSet
from typing import NamedTuple

from .faults import DuplicateOptionError
from .utils import Unset, coalesce, kebabize

logger = logging.getLogger(__name__)

# Types whose no-argument construction is their zero value.
VALUE_TYPES = frozenset({bool, int, float, complex, str, decimal.Decimal})


class NoDefault(NamedTuple):
    """
    required option without an explicit default: nothing is registered and the
    parser engine fails when the option is omitted.
    """

    def supplier(self):
        return Unset


class ExplicitDefault(NamedTuple):
    """
    default given on the declaration.

    mutable containers (lists, dicts, sets) are shallow-copied on every call,
    so invocations never share them.
    """
    value: typing.Any

    def supplier(self):
        value = self.value
        if not isinstance(value, MutableSequence | MutableMapping | MutableSet):
            return lambda: value

        def supply():
            return copy.copy(value)
        return supply


class ZeroValueDefault(NamedTuple):
    """
    non-required option without an explicit default: the zero value of its type.
    """
    value_type: "ValueType"

    def supplier(self):
        return self.value_type.zero


class ValueType(NamedTuple):
    """
    declared value type of an option.

    - base: the element type the parser engine coerces to (int for list[int] | None).
    - nullable: the declaration admits None.
    - multiple: the declaration is a list of base.
    - annotation: the declaration as written.
    """
    base: typing.Any
    nullable: bool = False
    multiple: bool = False
    annotation: typing.Any = Unset

    @classmethod
    def resolve(cls, annotation):
        """
        split an annotation into base type, nullability and multiplicity.

        Unions with anything but a single non-None member, and generics other than
        list[T], are kept as the base as-is; the parser engine rejects them.
        """
        base, nullable, multiple = annotation, False, False

        if typing.get_origin(base) in (typing.Union, types.UnionType):
            members = [member for member in typing.get_args(base) if member is not type(None)]
            if len(members) == 1 and len(typing.get_args(base)) == 2:
                base, nullable = members[0], True

        if typing.get_origin(base) is list and len(arguments := typing.get_args(base)) == 1:
            base, multiple = arguments[0], True

        return cls(base, nullable, multiple, annotation)

    def zero(self):
        """
        the zero value of this type (a fresh object on every call).
        """
        if self.nullable:
            return None
        if self.multiple:
            return []
        if self.base in VALUE_TYPES:
            return self.base()
        return None

    def __str__(self):
        annotation = coalesce(self.annotation, self.base)
        return getattr(annotation, "__name__", None) or str(annotation)


class OptionDescriptor(NamedTuple):
    """
    one bindable option of a command class.
    """
    attribute: str
    owner: type
    value_type: ValueType
    order: int | object
    hierarchy: int
    index: int
    name: str
    aliases: tuple
    descr: str | None
    required: bool
    default: NoDefault | ExplicitDefault | ZeroValueDefault
    completions: tuple

    @property
    def names(self):
        return (self.name, *self.aliases)

    @property
    def ordered(self):
        return self.order is not Unset

    def sort_key(self):
        return (not self.ordered, coalesce(self.order, 0), self.hierarchy, self.index)


class FilterDescriptor(NamedTuple):
    """
    one filter declaration: ascending order runs first (outermost). The type is
    the capability key looked up in the service container.
    """
    order: int
    type: typing.Any


class CommandMetadata(NamedTuple):
    """
    everything known about a command class, built once.
    """
    command_type: type
    name: str
    descr: str | None
    options: tuple
    filters: tuple


def _resolve_default(spec, value_type):
    if spec.default is not Unset:
        return ExplicitDefault(spec.default)
    if not spec.required:
        return ZeroValueDefault(value_type)
    return NoDefault()


def _hints(owner):
    try:
        return typing.get_type_hints(owner)
    except (NameError, TypeError, AttributeError):
        # Unresolvable forward references: fall back to the raw annotations.
        return inspect.get_annotations(owner)


def _option(object):
    if hasattr(object, "__option__") and callable(object.__option__):
        return object.__option__()
    return Unset


def _lineage(command_type):
    return tuple(level for level in command_type.__mro__ if level is not object)


def extract_options(command_type):
    """
    describe every option of a command class (inherited ones included), ordered.

    Raises
    - TypeError: when command_type is not a class.
    - DuplicateOptionError: when two options of the command share a name or alias.
    """
    if not isinstance(command_type, type):
        raise TypeError("extract_options() argument must be a class")

    options = []
    shadowed = set()

    for hierarchy, owner in zip(itertools.count(0, -1), _lineage(command_type)):
        hints = _hints(owner)
        index = 0
        for attribute, object in vars(owner).items():
            if attribute in shadowed or (spec := _option(object)) is Unset:
                continue
            value_type = ValueType.resolve(coalesce(spec.type, coalesce(spec.generic, hints.get(attribute, str))))
            options.append(OptionDescriptor(
                attribute=attribute,
                owner=owner,
                value_type=value_type,
                order=spec.order,
                hierarchy=hierarchy,
                index=index,
                name=spec.name,
                aliases=spec.aliases,
                descr=spec.descr,
                required=spec.required,
                default=_resolve_default(spec, value_type),
                completions=spec.completions,
            ))
            index += 1
        shadowed.update(vars(owner))

    options.sort(key=OptionDescriptor.sort_key)

    seen = {}
    for option in options:
        for name in option.names:
            if name in seen:
                raise DuplicateOptionError(
                    f"{name!r} is declared by both {seen[name]!r} and {option.attribute!r}",
                    command_type=command_type,
                    attribute=option.attribute,
                )
            seen[name] = option.attribute

    return tuple(options)


def extract_filters(command_type):
    """
    describe every filter declared on a command class and its bases.

    Base-class declarations come first; within a class, source order is kept.
    The result is not sorted by order; the pipeline composer does that.
    """
    if not isinstance(command_type, type):
        raise TypeError("extract_filters() argument must be a class")

    filters = []
    for owner in reversed(_lineage(command_type)):
        for spec in vars(owner).get("__filters__", ()):
            if hasattr(spec, "__filter__") and callable(spec.__filter__):
                spec = spec.__filter__()
            filters.append(FilterDescriptor(spec.order, spec.type))
    return tuple(filters)


def _identity(command_type):
    declaration = vars(command_type).get("__command__")
    if declaration is not None:
        name, descr = declaration.name, declaration.descr
    else:
        name, descr = kebabize(command_type.__name__), None
    if descr is None and (doc := vars(command_type).get("__doc__")):
        descr = inspect.cleandoc(doc).split("\n\n", 1)[0].replace("\n", " ") or None
    return name, descr


_registry = {}


def describe(command_type):
    """
    return the metadata of a command class, building it on first use.

    The registration table is process-wide; entries are immutable and never
    evicted, so concurrent readers need no locking. Two threads racing on the
    first build produce equal metadata and the first stored entry wins.
    """
    if not isinstance(command_type, type):
        raise TypeError("describe() argument must be a class")
    try:
        return _registry[command_type]
    except KeyError:
        pass

    name, descr = _identity(command_type)
    metadata = CommandMetadata(
        command_type=command_type,
        name=name,
        descr=descr,
        options=extract_options(command_type),
        filters=extract_filters(command_type),
    )
    logger.debug("described %s: %d option(s), %d filter(s)",
                 command_type.__qualname__, len(metadata.options), len(metadata.filters))
    return _registry.setdefault(command_type, metadata)


__all__ = (
    "NoDefault",
    "ExplicitDefault",
    "ZeroValueDefault",
    "ValueType",
    "OptionDescriptor",
    "FilterDescriptor",
    "CommandMetadata",
    "extract_options",
    "extract_filters",
    "describe",
)
