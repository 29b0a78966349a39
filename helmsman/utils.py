"""
Helmsman utilities.

Small helpers shared by the declaration, metadata, engine and hosting layers.

- Unset: the "not given" marker. None is a legitimate option default, so the
  API needs a second, distinct absence value. Unset is falsy, unique and can
  appear in isinstance unions (str | Unset).
- coalesce(value, default): Unset becomes default; every other value, None
  included, is kept.
- rename: give generated closures readable __name__/__qualname__ values, so
  tracebacks and argparse messages name them properly.
- mirror("attr"): read-only property over self._attr that hands out
  snapshots of containers instead of the backing object.
- kebabize("ShowVersion") -> "show-version": command and type labels.

    >>> coalesce(Unset, 3)
    3
    >>> kebabize("RemoteAdd")
    'remote-add'
"""
import functools
import re
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """
    type of the Unset marker; a single instance exists per process.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init_subclass__(cls, **options):
        raise TypeError("UnsetType cannot be subclassed")

    def __or__(self, other, /):
        # Lets the marker take part in isinstance unions: str | Unset.
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    __ror__ = __or__

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


def coalesce(object, default=None, /):
    """
    replace Unset by default; None, 0, "" and [] are values and stay.
    """
    return default if object is Unset else object


def _apply_name(target, name):
    if not callable(target):
        raise TypeError("rename() target must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() name must be a string")
    try:
        target.__name__ = target.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError(f"rename() cannot rename {target!r}") from None
    return target


def rename(*parameters):
    """
    rename(callable, name) renames in place and returns the callable;
    rename(name) returns a decorator doing the same.
    """
    if len(parameters) == 2:
        return _apply_name(*parameters)
    if len(parameters) == 1:
        name, = parameters
        if not isinstance(name, str):
            raise TypeError("@rename() argument must be a string")
        return _apply_name(lambda target: _apply_name(target, name), "rename")
    raise TypeError(f"rename() takes 1 or 2 arguments ({len(parameters)} given)")


def _snapshot(value):
    match value:
        case str() | bytes():
            return value
        case Mapping():
            return {key: _snapshot(item) for key, item in value.items()}
        case Set():
            return frozenset(map(_snapshot, value))
        case Sequence():
            return tuple(map(_snapshot, value))
    return value


def mirror(name, /):
    """
    read-only property exposing self._<name>; containers come out as snapshots
    (sequences as tuples, sets as frozensets, mappings as fresh dicts).
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")
    attribute = "_" + name

    def getter(self):
        return _snapshot(getattr(self, attribute))

    return property(rename(getter, name))


@functools.cache
def kebabize(text, /):
    """
    lower-case, hyphen separated label of an identifier.

    Case boundaries and underscores both separate words, so "show_version",
    "ShowVersion" and "_ShowVersion" all give "show-version".
    """
    if not isinstance(text, str):
        raise TypeError("kebabize() argument must be a string")
    text = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "-", text.strip("_"))
    return re.sub(r"[_\s]+", "-", text).lower()


Unset = UnsetType()


__all__ = (
    "coalesce",
    "rename",
    "mirror",
    "kebabize",
    "UnsetType",
    "Unset",
)
