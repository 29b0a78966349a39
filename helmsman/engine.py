"""
Helmsman parser engine: typed options and sub-commands over argparse.

The dispatch core never looks at raw argument text. It asks this engine to
register options (name, aliases, value type, description, default supplier) on a
command node, and after parsing it asks for the typed value of each option
handle. Tokenizing and coercion stay here.

What this module provides
- ParserEngine: owns the root EngineCommand and turns a prompt into a ParseResult.
- EngineCommand: one node of the parser tree (the root parser or a sub-command),
  with add_option()/add_command().
- OptionHandle: the identity of a registered option, used to read its value back.
- ParseResult: the selected node plus typed values; get_value() falls back to the
  option's default supplier when the option was omitted.

Supported value types
- str, int, float, bool, decimal.Decimal, pathlib.Path and Enum subclasses,
  their nullable form (T | None) and lists of them (list[T]).
- bool options are switches: "--verbose" is True, "--no-verbose" False. They
  take no value, so "--verbose add" selects the sub-command add. list[bool]
  takes words (true/false, yes/no, on/off, 1/0).
- Enum options match member names (case-insensitively) or values.

Faults
- DuplicateOptionError / UnsupportedOptionTypeError / DuplicateCommandError at
  registration time.
- ParseError (MissingOptionError, UnknownCommandError) for bad input.
"""
import argparse
import decimal
import enum
import itertools
import logging
import pathlib
import shlex
import sys
from collections.abc import Iterable
from typing import NamedTuple

from .faults import *
from .metadata import ValueType
from .utils import Unset, coalesce, mirror, rename

logger = logging.getLogger(__name__)

_SELECTED = "-selected-command"

_TRUTHS = frozenset({"true", "yes", "on", "y", "1"})
_FALSITIES = frozenset({"false", "no", "off", "n", "0"})


@rename("bool")
def _boolean(text):
    if (lowered := text.strip().lower()) in _TRUTHS:
        return True
    if lowered in _FALSITIES:
        return False
    raise ValueError(f"not a boolean: {text!r}")


@rename("Decimal")
def _decimal(text):
    try:
        return decimal.Decimal(text)
    except decimal.InvalidOperation:
        raise ValueError(f"not a decimal: {text!r}") from None


def _enumeration(enumeration):
    @rename(enumeration.__name__)
    def convert(text):
        for member in enumeration:
            if member.name.lower() == text.lower() or str(member.value) == text:
                return member
        raise ValueError(f"not a {enumeration.__name__}: {text!r}")
    return convert


_CONVERTERS = {
    str: str,
    int: int,
    float: float,
    bool: _boolean,
    decimal.Decimal: _decimal,
    pathlib.Path: pathlib.Path,
}


def _converter(base):
    if isinstance(base, type) and issubclass(base, enum.Enum):
        return _enumeration(base)
    try:
        return _CONVERTERS.get(base, Unset)
    except TypeError:  # unhashable annotations
        return Unset


class _Parser(argparse.ArgumentParser):
    """
    argparse parser that reports faults instead of exiting.
    """

    def error(self, message):
        if message.startswith("the following arguments are required"):
            fault = MissingOptionError
        elif "invalid choice" in message and message.startswith("argument COMMAND"):
            fault = UnknownCommandError
        else:
            fault = ParseError
        raise fault(message, prog=self.prog)


class OptionHandle(NamedTuple):
    """
    identity of one registered option.
    """
    dest: str
    name: str
    aliases: tuple
    value_type: ValueType
    supplier: object = Unset


class ParseResult:
    """
    outcome of one parse: the selected command node and the typed values.
    """

    def __init__(self, command, namespace, tokens):
        self._command = command
        self._namespace = namespace
        self._tokens = tuple(tokens)

    command = property(lambda self: self._command)
    tokens = mirror("tokens")

    def __contains__(self, handle):
        """
        whether the option was given explicitly on the command line.
        """
        return hasattr(self._namespace, handle.dest)

    def get_value(self, handle):
        """
        typed value of an option: the parsed value, else the supplier's value,
        else None.
        """
        if hasattr(self._namespace, handle.dest):
            return getattr(self._namespace, handle.dest)
        if handle.supplier is not Unset:
            return handle.supplier()
        return None

    def __repr__(self):
        return f"parse-result(command={self._command.name!r}, tokens={self._tokens!r})"


class EngineCommand:
    """
    one node of the parser tree.

    The root node wraps the top-level parser; every other node wraps an argparse
    sub-parser. Option destinations are unique across the whole tree so that a
    parent and a child may both declare, say, --name.
    """
    _counter = itertools.count()

    def __init__(self, parser, name, descr=None, parent=Unset):
        self._parser = parser
        self._name = name
        self._descr = descr
        self._parent = parent
        self._children = {}
        self._options = []
        self._subparsers = Unset
        parser.set_defaults(**{_SELECTED: self})

    name = mirror("name")
    descr = mirror("descr")
    parent = property(lambda self: self._parent)
    children = property(lambda self: dict(self._children))
    options = property(lambda self: tuple(self._options))

    @property
    def path(self):
        path = [node := self]
        while node.parent:
            path.append(node := node.parent)
        return tuple(reversed(path))

    def supports(self, value_type):
        """
        whether a value type can be bound by this engine.
        """
        if not isinstance(value_type, ValueType):
            value_type = ValueType.resolve(value_type)
        return _converter(value_type.base) is not Unset

    def add_command(self, name, descr=None):
        """
        create a child node (a sub-command) and return it.
        """
        if name in self._children:
            raise DuplicateCommandError(f"{name!r} is already a sub-command of {self._name!r}")
        if self._subparsers is Unset:
            self._subparsers = self._parser.add_subparsers(
                dest=f"-command-{next(self._counter)}",
                metavar="COMMAND",
                title="commands",
            )
        parser = self._subparsers.add_parser(name, help=descr, description=descr, allow_abbrev=False)
        child = self._children[name] = type(self)(parser, name, descr, self)
        return child

    def add_option(self, name, aliases=(), value_type=str, descr=None, supplier=Unset, required=False,
                   completions=()):
        """
        register an option on this node and return its handle.

        Parameters
        - name, aliases: option strings; the display name comes first.
        - value_type: ValueType or annotation.
        - descr: help text.
        - supplier: zero-argument callable producing the default, or Unset.
        - required: enforced only when there is no supplier.
        - completions: suggested values shown in help; never validated.

        Raises
        - UnsupportedOptionTypeError, DuplicateOptionError.
        """
        if not isinstance(value_type, ValueType):
            value_type = ValueType.resolve(value_type)
        if (converter := _converter(value_type.base)) is Unset:
            raise UnsupportedOptionTypeError(f"{name!r} cannot be bound to {value_type}")

        dest = f"-option-{next(self._counter)}"
        help = (descr or "").replace("%", "%%")
        if completions:
            help = f"{help} (suggested: {', '.join(map(str, completions)).replace('%', '%%')})".strip()

        keywords = {
            "dest": dest,
            "help": help or None,
            "default": argparse.SUPPRESS,
            "required": required and supplier is Unset,
            "type": converter,
        }
        if value_type.multiple:
            keywords |= {"nargs": "+", "action": "extend", "metavar": name.lstrip("-").upper()}
        elif value_type.base is bool:
            # a switch never consumes the next word, which may be a sub-command
            del keywords["type"]
            keywords["action"] = argparse.BooleanOptionalAction
        elif isinstance(value_type.base, type) and issubclass(value_type.base, enum.Enum):
            keywords |= {"metavar": "{%s}" % ",".join(member.name.lower() for member in value_type.base)}
        else:
            keywords |= {"metavar": name.lstrip("-").upper()}

        try:
            self._parser.add_argument(name, *aliases, **keywords)
        except argparse.ArgumentError as error:
            raise DuplicateOptionError(str(error)) from None
        except ValueError as error:
            raise DuplicateOptionError(f"{name!r} cannot be registered: {error}") from None

        handle = OptionHandle(dest, name, tuple(aliases), value_type, supplier)
        self._options.append(handle)
        logger.debug("registered %s on %r (type=%s, default=%s, required=%s)",
                     name, self._name, value_type, supplier is not Unset, keywords["required"])
        return handle

    def format_help(self):
        return self._parser.format_help()

    def __repr__(self):
        return f"engine-command(name={self._name!r}, options={len(self._options)}, children={list(self._children)})"


class ParserEngine:
    """
    root of a parser tree; parses prompts into ParseResults.
    """

    def __init__(self, prog=Unset, descr=Unset):
        parser = _Parser(prog=coalesce(prog), description=coalesce(descr), allow_abbrev=False)
        self._root = EngineCommand(parser, parser.prog, coalesce(descr))

    root = property(lambda self: self._root)

    def parse(self, prompt=Unset):
        """
        parse a prompt.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; split via shlex.split.
          • Iterable[str]: pre-tokenized sequence.

        Raises
        - TypeError: when the prompt is not one of the above.
        - ParseError and subclasses for bad input.
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("parse() argument must be a string or an iterable of strings")
        else:
            raise TypeError("parse() argument must be a string or an iterable of strings")

        namespace = self._root._parser.parse_args(tokens)
        command = getattr(namespace, _SELECTED)
        delattr(namespace, _SELECTED)
        return ParseResult(command, namespace, tokens)


__all__ = (
    "ParserEngine",
    "EngineCommand",
    "OptionHandle",
    "ParseResult",
)
