"""
Helmsman filters: cross-cutting stages wrapped around command execution.

A filter is any object with execute(context, next). It may run logic before
and after awaiting next(context), skip next entirely (short-circuit), or catch
what next raises. Every filter of one invocation receives the same context.

Composition
- global filter declarations (FilterCollection) come first, then the command
  type's own declarations (base classes before subclasses);
- an empty list returns the final action itself, unwrapped;
- otherwise the list is stable-sorted by ascending order, so the smallest
  order is the outermost stage;
- the list is folded right to left around the final action. Each declaration
  is resolved from the service container by its type; a miss, or an object
  without a callable execute, contributes no stage.
"""
import logging
from abc import ABC, abstractmethod

from .metadata import FilterDescriptor, describe
from .utils import rename

logger = logging.getLogger(__name__)


class CommandFilter(ABC):
    """
    abstract filter capability.

    execute receives the invocation context and the continuation; call
    ``await next(context)`` to run the inner stages.
    """

    @abstractmethod
    async def execute(self, context, next):
        raise NotImplementedError


class FilterCollection:
    """
    ordered global filter declarations of an application.
    """

    def __init__(self):
        self._descriptors = []

    def add(self, filter_type, /, order=0):
        if not isinstance(filter_type, type):
            raise TypeError("FilterCollection.add() argument must be a type")
        if not isinstance(order, int) or isinstance(order, bool):
            raise TypeError("FilterCollection.add() 'order' must be an integer")
        self._descriptors.append(FilterDescriptor(order, filter_type))
        return self

    @property
    def descriptors(self):
        return tuple(self._descriptors)

    def __iter__(self):
        return iter(tuple(self._descriptors))

    def __len__(self):
        return len(self._descriptors)

    def __repr__(self):
        return f"filter-collection({', '.join(f'{d.type.__qualname__}@{d.order}' for d in self._descriptors)})"


def _stage(filter, next):
    @rename(f"{type(filter).__qualname__}.stage")
    def stage(context):
        return filter.execute(context, next)
    return stage


class FilterPipeline:
    """
    composes the filter chain of one command type around a final action.
    """

    def __init__(self, services, global_filters=()):
        self._services = services
        self._global_filters = global_filters

    def compose(self, command_type, action):
        """
        return the pipeline entry point: action itself, or the outermost stage.
        """
        filters = [*self._global_filters, *describe(command_type).filters]
        if not filters:
            return action

        filters.sort(key=lambda descriptor: descriptor.order)

        pipeline = action
        for descriptor in reversed(filters):
            filter = self._services.resolve(descriptor.type)
            if filter is None or not callable(getattr(filter, "execute", None)):
                logger.debug("filter %s is not registered; skipped for %s",
                             descriptor.type.__qualname__, command_type.__qualname__)
                continue
            pipeline = _stage(filter, pipeline)
        return pipeline

    async def execute(self, context, action):
        """
        compose the pipeline for context.command_type and run it to completion.
        """
        return await self.compose(context.command_type, action)(context)


__all__ = (
    "CommandFilter",
    "FilterCollection",
    "FilterPipeline",
)
