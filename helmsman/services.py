"""
Helmsman service container: a capability registry keyed by type.

Filters and (optionally) command instances are resolved from here. Lookups
return None on a miss instead of raising, so optional capabilities can be
declared without being registered.

Lifetimes
- singleton: one instance per container, created on first resolution (or
  given up front).
- transient: a new instance on every resolution.

Factories are called with no arguments, or with the container when they
take exactly one positional parameter. A class registered without a factory
is its own factory.
"""
import inspect
import logging
import threading

from .utils import Unset

logger = logging.getLogger(__name__)


def _is_factory(object):
    return isinstance(object, type) or inspect.isroutine(object)


def _arity(factory):
    try:
        parameters = inspect.signature(factory).parameters.values()
    except (TypeError, ValueError):
        return 0
    return sum(
        parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD)
        and parameter.default is parameter.empty
        for parameter in parameters
    )


class _Registration:
    __slots__ = ("factory", "singleton", "instance")

    def __init__(self, factory, singleton, instance=Unset):
        self.factory = factory
        self.singleton = singleton
        self.instance = instance

    def create(self, container):
        if _arity(self.factory) == 1:
            return self.factory(container)
        return self.factory()


class ServiceContainer:
    """
    thread-safe registry of services.

    Registering a key again replaces the previous registration.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._registrations = {}

    def _register(self, key, factory, singleton, instance=Unset):
        if factory is not Unset and not callable(factory):
            raise TypeError("service factory must be callable")
        with self._lock:
            self._registrations[key] = _Registration(factory, singleton, instance)

    def add_singleton(self, key, instance=Unset, /):
        """
        register a singleton: a ready instance, a factory, or the key itself.
        """
        if instance is Unset:
            if not callable(key):
                raise TypeError("add_singleton() requires a factory when the key is not callable")
            self._register(key, key, True)
        elif _is_factory(instance):
            self._register(key, instance, True)
        else:
            self._register(key, Unset, True, instance)
        return self

    def add_transient(self, key, factory=Unset, /):
        """
        register a transient service built by factory (or by the key itself).
        """
        factory = key if factory is Unset else factory
        if not callable(factory):
            raise TypeError("add_transient() requires a callable factory")
        self._register(key, factory, False)
        return self

    def resolve(self, key):
        """
        return an instance for key, or None when nothing is registered.
        """
        if (registration := self._registrations.get(key)) is None:
            return None
        if not registration.singleton:
            return registration.create(self)
        if registration.instance is Unset:
            with self._lock:
                if registration.instance is Unset:
                    registration.instance = registration.create(self)
                    logger.debug("created singleton %r", key)
        return registration.instance

    def __contains__(self, key):
        return key in self._registrations

    def keys(self):
        return tuple(self._registrations)

    def __len__(self):
        return len(self._registrations)

    def __repr__(self):
        return f"service-container(services={len(self._registrations)})"


__all__ = (
    "ServiceContainer",
)
