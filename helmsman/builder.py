"""
Helmsman action builder: from command metadata to parser registrations.

resolve_action_builder(command_type) returns an action builder: a callable that,
given an ActionBuilderContext for one command node, registers every option of
the command type on the node's parser engine (sorted order, default supplier
when resolvable) and installs the bound operation.

The operation is an async callable (instance, result, context). It copies each
option's typed value from the parse result onto the instance and then runs the
instance's execute(context), awaiting it when needed. The dispatcher uses the
operation as the final action of the filter pipeline.

Build-time faults
- UnsupportedOptionTypeError for a property the engine cannot bind; several
  offending properties are raised together as a ConfigurationExit.
- DuplicateOptionError from the engine.
- OperationAlreadySetError when a context is built twice.
- MissingEntryPointError when the command type has no callable execute.
"""
import inspect
import logging

from .faults import *
from .metadata import describe
from .utils import Unset, rename

logger = logging.getLogger(__name__)


class ActionBuilderContext:
    """
    registration context for one command node.

    Holds the node being populated, the service container, the option bindings
    registered so far and at most one operation.
    """

    def __init__(self, command_type, command, services=Unset):
        self._command_type = command_type
        self._command = command
        self._services = services
        self._bindings = []
        self._operation = Unset

    command_type = property(lambda self: self._command_type)
    command = property(lambda self: self._command)
    services = property(lambda self: self._services)
    bindings = property(lambda self: tuple(self._bindings))

    @property
    def operation(self):
        return self._operation

    @operation.setter
    def operation(self, operation):
        if self._operation is not Unset:
            raise OperationAlreadySetError(
                f"{self._command_type.__qualname__} already has an operation",
                command_type=self._command_type,
            )
        self._operation = operation

    def add_option(self, descriptor):
        """
        register one option descriptor on the node and remember the binding.
        """
        handle = self._command.add_option(
            descriptor.name,
            descriptor.aliases,
            descriptor.value_type,
            descriptor.descr,
            descriptor.default.supplier(),
            descriptor.required,
            descriptor.completions,
        )
        self._bindings.append((descriptor, handle))
        return handle

    def __repr__(self):
        return (f"action-builder-context(command_type={self._command_type.__qualname__}, "
                f"bindings={len(self._bindings)}, operation={self._operation is not Unset})")


def _entry_point(command_type):
    if not callable(getattr(command_type, "execute", None)):
        raise MissingEntryPointError(
            f"{command_type.__qualname__} does not define execute(context)",
            command_type=command_type,
            attribute="execute",
        )


def _check_supported(metadata, command):
    faults = [
        UnsupportedOptionTypeError(
            f"{metadata.command_type.__qualname__}.{option.attribute} cannot be bound to {option.value_type}",
            command_type=metadata.command_type,
            attribute=option.attribute,
        )
        for option in metadata.options
        if not command.supports(option.value_type)
    ]
    if len(faults) == 1:
        raise faults[0]
    if faults:
        raise ConfigurationExit(faults)


def resolve_action_builder(command_type):
    """
    return the action builder of a command type.

    Metadata is extracted (and cached) immediately, so declaration faults such
    as duplicate option names surface here rather than at first use.
    """
    metadata = describe(command_type)
    _entry_point(command_type)

    @rename(f"build_{metadata.name.replace('-', '_')}")
    def build(context):
        if context.operation is not Unset or context.bindings:
            raise OperationAlreadySetError(
                f"{command_type.__qualname__} is already built in this context",
                command_type=command_type,
            )
        _check_supported(metadata, context.command)
        for option in metadata.options:
            context.add_option(option)
        bindings = context.bindings

        @rename(f"operate_{metadata.name.replace('-', '_')}")
        async def operation(instance, result, command_context):
            for option, handle in bindings:
                setattr(instance, option.attribute, result.get_value(handle))
            outcome = instance.execute(command_context)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        context.operation = operation
        logger.debug("built %s with %d option(s)", command_type.__qualname__, len(bindings))

    return build


__all__ = (
    "ActionBuilderContext",
    "resolve_action_builder",
)
