r"""
Helmsman declaration surface: options, filters and command names.

A command class describes itself with three kinds of declarations:

- Option[_T]: class attribute exposing one command attribute as a named
  option. It is a data descriptor; parsed values land on the instance.
- Filter[_F]: class decorator attaching a filter type with an integer order
  (lowest runs outermost).
- Command: name and description of the class, attached by @command.

CommandHandler is an optional abstract base declaring execute(context).

    @command("greet", "say hello")
    @Filter(Timing, order=10)
    class Greet(CommandHandler):
        shout: bool = Option("--shout", "-s", order=0, required=True)
        name: str = Option("--name", order=1, default="world")

        async def execute(self, context):
            print(f"hello {self.name}".upper() if self.shout else f"hello {self.name}")

Option metadata is checked when the option is constructed:

    names        one or more of -x / --long-name; the first one is displayed,
                 the others are aliases
    order        int, or Unset to sort after every ordered option
    type         a type or a parametrized generic; when Unset the generic
                 parameter, then the owner's annotation decide (str otherwise)
    descr        non-blank str, stored as None when omitted
    required     bool
    default      any value, None included; Unset means "no default"
    completions  non-string iterable of distinct hints, never enforced

Declarations are inert. helmsman.metadata reads them and helmsman.builder
turns them into parser registrations.
"""
import builtins
import re
import typing
from abc import ABC, abstractmethod
from collections.abc import Iterable

from .utils import *

_OPTION_NAME = re.compile(r"--?[^\W\d_](-?[^\W_]+)*")
_COMMAND_NAME = re.compile(r"[^\W_][\w-]*")


def _displayed_fields(declaration):
    kind = type(declaration)
    for field in coalesce(kind.__displayable__, kind.__introspectable__):
        yield field, getattr(declaration, field)


def _declaration_repr(declaration):
    fields = ", ".join(f"{field}={value!r}" for field, value in _displayed_fields(declaration))
    return f"{type(declaration).__typename__}({fields})"


class DeclarationType(type):
    """
    Metaclass of Option, Filter and Command.

    Every field listed in __introspectable__ that the class body does not
    define becomes a read-only mirror() of "_<field>". repr() and rich.pretty
    show the __displayable__ fields, or all introspectable ones when it is
    Unset. __typename__ holds the kebab-cased class name used in messages.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(mcs, name, bases, namespace, **options):
        generated = {
            field: mirror(field)
            for field in namespace.get("__introspectable__", ())
            if field not in namespace
        }
        generated["__typename__"] = kebabize(name)
        generated.setdefault("__repr__", namespace.get("__repr__", _declaration_repr))
        generated.setdefault("__rich_repr__", namespace.get("__rich_repr__", _displayed_fields))
        return super().__new__(mcs, name, bases, namespace | generated)


def _check_option_name(cls, name):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} names must be strings, not {type(name).__name__}")
    if not _OPTION_NAME.fullmatch(name := name.strip()):
        raise ValueError(f"{cls.__typename__} name {name!r} is not of the form -x or --long-name")
    return name


def _split_names(cls, names):
    """
    Check option names and return (display name, aliases).
    """
    if not names:
        raise TypeError(f"{cls.__typename__} needs a name")
    checked = [_check_option_name(cls, name) for name in names]
    if len(set(checked)) < len(checked):
        raise ValueError(f"{cls.__typename__} names repeat: {checked!r}")
    return checked[0], tuple(checked[1:])


def _check_descr(cls, descr):
    if descr is Unset:
        return None
    if not isinstance(descr, str):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    if not descr.strip():
        raise ValueError(f"{cls.__typename__} 'descr' is blank")
    return descr.strip()


def _check_order(cls, order):
    if isinstance(order, bool) or not isinstance(order, int | Unset):
        raise TypeError(f"{cls.__typename__} 'order' must be an integer")
    return order


def _check_value_type(cls, kind):
    # Unions and parametrized generics pass here; the builder decides whether
    # the parser engine can bind them.
    if isinstance(kind, builtins.type | Unset) or typing.get_origin(kind) is not None:
        return kind
    raise TypeError(f"{cls.__typename__} 'type' must be a type")


def _check_completions(cls, completions):
    if isinstance(completions, str) or not isinstance(completions, Iterable):
        raise TypeError(f"{cls.__typename__} 'completions' must be a non-string iterable")
    completions = tuple(completions)
    if any(completion in completions[:index] for index, completion in enumerate(completions)):
        raise ValueError(f"{cls.__typename__} 'completions' repeat")
    return completions


class Option[_T](metaclass=DeclarationType):
    """
    Command option bound to one attribute of its command class.

    Read from the class, the attribute returns this declaration; read from a
    command instance, it returns the bound value (or the default when nothing
    was bound). Option[int]("--count") pins the value type through the
    generic parameter.

        Option("--name", "-n", order=1, default="world", descr="who to greet")

    attribute and owner are Unset until the option is assigned in a class body.
    """

    __introspectable__ = ("name", "aliases", "order", "type", "descr", "required", "default", "completions")
    __displayable__ = ("name", "aliases", "order", "required", "default")

    def __new__(cls, *names, order=Unset, type=Unset, descr=Unset, required=False, default=Unset, completions=()):
        self = super().__new__(cls)
        self._name, self._aliases = _split_names(cls, names)
        self._order = _check_order(cls, order)
        self._type = _check_value_type(cls, type)
        self._descr = _check_descr(cls, descr)
        self._required = bool(required)
        self._default = default
        self._completions = _check_completions(cls, completions)
        self._attribute = self._owner = Unset
        return self

    @property
    def default(self):
        # Not snapshotted; a list default is handed out as given.
        return self._default

    @property
    def attribute(self):
        return self._attribute

    @property
    def owner(self):
        return self._owner

    @property
    def generic(self):
        """
        The type argument of Option[_T](...) constructions, or Unset.
        """
        if (alias := getattr(self, "__orig_class__", None)) is None:
            return Unset
        arguments = typing.get_args(alias)
        return arguments[0] if arguments and not isinstance(arguments[0], typing.TypeVar) else Unset

    def __set_name__(self, owner, name):
        if self._attribute is not Unset:
            raise TypeError(f"{type(self).__typename__} {self.name!r} is already bound to "
                            f"{self._owner.__qualname__}.{self._attribute}")
        self._attribute = name
        self._owner = owner

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.__dict__.get(self._attribute, coalesce(self._default))

    def __set__(self, instance, value):
        instance.__dict__[self._attribute] = value

    def __delete__(self, instance):
        instance.__dict__.pop(self._attribute, None)

    def __option__(self):
        """
        Introspection hook: identify this declaration as an Option.
        """
        return self


class Filter[_F](metaclass=DeclarationType):
    """
    Filter declaration: attaches a filter capability type to a command class.

    Used as a class decorator. The filter type is the lookup key into the
    service container; an unregistered type is skipped at dispatch time.

    Forms
    - @Filter(Timing, order=5)
    - @Filter[Timing](order=5)

    Stacked decorators keep their source order (top-most first) in the
    extracted metadata, although Python applies them bottom-up.
    """

    __introspectable__ = ("type", "order")

    def __new__(cls, type=Unset, /, order=0):
        if not isinstance(type, builtins.type | Unset):
            raise TypeError(f"{cls.__typename__} 'type' must be a type")
        if order is Unset:
            raise TypeError(f"{cls.__typename__} 'order' must be an integer")
        self = super().__new__(cls)
        self._type, self._order = type, _check_order(cls, order)
        return self

    def __call__(self, command_type, /):
        if not isinstance(command_type, builtins.type):
            raise TypeError(f"@{type(self).__typename__}() must be applied to a class")
        if self._type is Unset and (alias := getattr(self, "__orig_class__", None)) is not None:
            self._type = typing.get_args(alias)[0]
        if not isinstance(self._type, builtins.type):
            raise TypeError(f"{type(self).__typename__} requires a filter type")
        # Python applies stacked decorators bottom-up; prepend to keep source order.
        command_type.__filters__ = (self, *command_type.__dict__.get("__filters__", ()))
        return command_type

    def __filter__(self):
        """
        Introspection hook: identify this declaration as a Filter.
        """
        return self


class Command(metaclass=DeclarationType):
    """
    Name and description of a command class (not inherited by subclasses).
    """

    __introspectable__ = ("name", "descr")

    def __new__(cls, name, descr=Unset):
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        if not _COMMAND_NAME.fullmatch(name := name.strip()):
            raise ValueError(f"{cls.__typename__} name {name!r} must be one word not starting with '-'")
        self = super().__new__(cls)
        self._name, self._descr = name, _check_descr(cls, descr)
        return self

    def __call__(self, command_type, /):
        if not isinstance(command_type, type):
            raise TypeError("@command() must be applied to a class")
        command_type.__command__ = self
        return command_type


def command(name=Unset, /, descr=Unset):
    """
    Name a command class, or return a decorator that will.

    Invocation modes
    - @command                   → name derived from the class, descr from its docstring
    - @command("greet")          → explicit name
    - @command("greet", "descr") → explicit name and description

    Returns
    - The decorated class (direct mode) or a decorator.
    """
    if isinstance(name, type):
        command_type = name
        return Command(kebabize(command_type.__name__), descr)(command_type)
    if not isinstance(name, str | Unset):
        raise TypeError("@command() 'name' must be a string")

    @rename("command")
    def wrapper(command_type, /):
        if not isinstance(command_type, type):
            raise TypeError("@command() must be applied to a class")
        return Command(coalesce(name, kebabize(command_type.__name__)), descr)(command_type)

    return wrapper


class CommandHandler(ABC):
    """
    Abstract command entry point.

    Subclassing is optional: any class exposing a callable execute(context) is a
    valid command. execute may be a coroutine function or a plain function; an
    int result is used as the process exit code.
    """

    @abstractmethod
    async def execute(self, context):
        raise NotImplementedError


__all__ = (
    "Option",
    "Filter",
    "Command",
    "command",
    "CommandHandler",
)
