"""
Helmsman faults and their rendering.

Every user-facing failure is a CommandException. A fault carries its message
and a read-only mapping of options. The options may override its code, title
and hint, and they hold the runtime flags used to surface it (prog, shell,
fancy, colorful).

Families
- ParseError (MissingOptionError, UnknownCommandError): bad user input, as
  reported by the parser engine.
- ConfigurationError and subclasses: declaration problems found while a
  command type is registered or its bindings are built. The command type and
  the offending attribute ride along in the options.
- CommandCancelledError: an invocation observed its cancellation signal.
- ConfigurationExit: several configuration faults of one command type, raised
  together as an exception group.

Surfacing
- trigger(fault, **options) merges options into a copy of the fault, then
  raises it (library mode) or prints it to stderr and exits with status 1
  (shell=True).
- Handler and filter failures are not faults; they propagate untouched.

Host overrides (read from __main__)
- __prog__: program name in headers.
- __styles__: palette entries (see _STYLES).
- __codes__: FaultCode -> label used instead of the number.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)

_STYLES = {
    "prog": "bold #F2F2F7",
    "code": "bold #5AD2F4",
    "title": "bold #F26D7D",
    "message": "#D0D0D8",
    "hint": "italic #8FD694",
}


def _host(name, default):
    return getattr(sys.modules.get("__main__"), name, default)


class FaultCode(IntEnum):
    """
    stable numeric identifiers, grouped by domain.

    111xx parsing, 211xx configuration, 131xx runtime.
    """
    MALFORMED_INPUT = 11101
    MISSING_OPTION = 11102
    UNKNOWN_COMMAND = 11103

    DUPLICATE_OPTION = 21101
    UNSUPPORTED_OPTION_TYPE = 21102
    OPERATION_ALREADY_SET = 21103
    DUPLICATE_COMMAND = 21104
    UNKNOWN_PARENT = 21105
    MISSING_ENTRY_POINT = 21106
    INVALID_DECLARATION = 21107

    COMMAND_CANCELLED = 13101

    def normalize(self):
        """
        label of this code: the host's __codes__ entry, else the number.
        """
        return str(_host("__codes__", {}).get(self, self.value))


class _Painter:
    """
    styles fragments according to the fault options and the host palette.
    """

    def __init__(self, options):
        self.colorful = options.get("colorful", False)
        self.styles = defaultdict(str, _STYLES | _host("__styles__", {}))

    def __call__(self, fragment, role):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), self.styles[role] if self.colorful else "")

    def header(self, options, title, code=Unset):
        parts = ["[ ", self(_host("__prog__", options.get("prog") or "helmsman"), "prog"), " — "]
        if code is not Unset:
            parts += [self(code.normalize(), "code"), " | "]
        return Text.assemble(*parts, self(title.title(), "title"), " ]")


class _Surfaced:
    """
    mixin: trigger protocol shared by single faults and fault groups.
    """

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        if unused:
            raise TypeError("__replace__() takes keyword arguments only")
        return self._rebuild(self.options | overrides)


class CommandException(_Surfaced, Exception):
    """
    base of every fault; subclasses pin a default code, title and hint.
    """
    __code__ = FaultCode.MALFORMED_INPUT
    __title__ = "command error"
    __hint__ = Unset

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    code = property(lambda self: self.options.get("code", type(self).__code__))
    title = property(lambda self: self.options.get("title", type(self).__title__))
    hint = property(lambda self: coalesce(self.options.get("hint", type(self).__hint__)))

    def _rebuild(self, options):
        return type(self)(self.message, **options)

    def __str__(self):
        return coalesce(self.message, self.title)

    def __rich__(self):
        paint = _Painter(self.options)
        body = [paint(coalesce(self.message, ""), "message")]
        if self.hint:
            body.append(Text.assemble(paint(" → ", "hint"), paint(self.hint, "hint")))
        header = paint.header(self.options, self.title, self.code)

        if not self.options.get("fancy", False):
            return Group(header, *body)
        ratio = self.options.get("ratio")
        width = None if ratio is None else int((console.width - 4) * ratio)
        return Panel(Group(*body), title=header, title_align="left", width=width)


class ParseError(CommandException):
    __code__ = FaultCode.MALFORMED_INPUT
    __title__ = "malformed input"
    __hint__ = "run with --help to see the accepted forms"


class MissingOptionError(ParseError):
    __code__ = FaultCode.MISSING_OPTION
    __title__ = "missing option"
    __hint__ = "required options have no default; pass them explicitly"


class UnknownCommandError(ParseError):
    __code__ = FaultCode.UNKNOWN_COMMAND
    __title__ = "unknown command"


class ConfigurationError(CommandException):
    """
    build-time fault; options usually name command_type and attribute.
    """
    __code__ = FaultCode.INVALID_DECLARATION
    __title__ = "invalid declaration"

    command_type = property(lambda self: self.options.get("command_type"))
    attribute = property(lambda self: self.options.get("attribute"))


class DuplicateOptionError(ConfigurationError):
    __code__ = FaultCode.DUPLICATE_OPTION
    __title__ = "duplicate option"
    __hint__ = "option names and aliases must be unique within a command"


class UnsupportedOptionTypeError(ConfigurationError):
    __code__ = FaultCode.UNSUPPORTED_OPTION_TYPE
    __title__ = "unsupported option type"
    __hint__ = "use str, int, float, bool, Decimal, Path, an Enum, or a list of those"


class OperationAlreadySetError(ConfigurationError):
    __code__ = FaultCode.OPERATION_ALREADY_SET
    __title__ = "operation already set"
    __hint__ = "build the bindings of a command once per registration context"


class DuplicateCommandError(ConfigurationError):
    __code__ = FaultCode.DUPLICATE_COMMAND
    __title__ = "duplicate command"


class UnknownParentError(ConfigurationError):
    __code__ = FaultCode.UNKNOWN_PARENT
    __title__ = "unknown parent"
    __hint__ = "register the parent command before its sub-commands"


class MissingEntryPointError(ConfigurationError):
    __code__ = FaultCode.MISSING_ENTRY_POINT
    __title__ = "missing entry point"
    __hint__ = "command types must define an execute(context) method"


class CommandCancelledError(CommandException):
    __code__ = FaultCode.COMMAND_CANCELLED
    __title__ = "cancelled"


class ConfigurationExit(_Surfaced, ExceptionGroup[ConfigurationError]):
    """
    all configuration faults found for one command type.
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad configuration", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("bad configuration", tuple(exceptions))
        self.options = MappingProxyType(options)

    def _rebuild(self, options):
        return type(self)(self.exceptions, **options)

    def derive(self, exceptions):
        return type(self)(exceptions, **self.options)

    def __rich__(self):
        paint = _Painter(self.options)
        header = paint.header(self.options, self.message)
        members = [copy.replace(fault, **self.options | {"ratio": 2 / 3}) for fault in self.exceptions]
        if self.options.get("fancy", False):
            return Panel(Group(*members), title=header, title_align="left")
        return Group(header, *members)


def trigger(fault, /, **options):
    """
    surface a fault with the given options merged in.

    The fault must implement __trigger__ and __replace__. Outside shell mode
    the (copied) fault is raised; in shell mode it is printed and the process
    exits with status 1.
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError("trigger() argument must have __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "FaultCode",
    "CommandException",
    "ParseError",
    "MissingOptionError",
    "UnknownCommandError",
    "ConfigurationError",
    "DuplicateOptionError",
    "UnsupportedOptionTypeError",
    "OperationAlreadySetError",
    "DuplicateCommandError",
    "UnknownParentError",
    "MissingEntryPointError",
    "CommandCancelledError",
    "ConfigurationExit",
    "trigger",
)
