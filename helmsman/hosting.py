r"""
Helmsman hosting: command trees, the dispatcher and the host runner.

Overview
- CommandDescriptor: one node of the command tree (type, name, description,
  children). The tree is assembled by the builder and frozen by build().
- CommandHostBuilder: registration surface. add_command / add_sub_command /
  use_handler declare the tree, services and filters hold the container and
  the global filters, build() wires everything into a CommandHost.
- Dispatcher: per-invocation composition root. It creates the command
  instance and a fresh CommandContext, then runs the filter pipeline around the
  bound operation.
- CommandHost: parses a prompt, selects the command node and dispatches it.
  run() is the synchronous process entry point; run_async() the awaitable one.
- invoke(): one-shot helper hosting a single command class.

Example
    builder = CommandHostBuilder("tool", "does things", shell=True)
    builder.services.add_singleton(Timing)
    builder.add_filter(Timing, order=-1)
    builder.add_command(Greet)
    builder.add_sub_command(Greet, GreetTwice)
    raise SystemExit(builder.build().run())

Runtime flags (host options)
- shell: print faults and exit instead of raising.
- fancy: render faults in panels.
- colorful: style fault output.
- loglevel: when given, install a rich logging handler on the "helmsman" logger.
"""
import asyncio
import contextlib
import logging
import signal
import sys

from rich.console import Console
from rich.logging import RichHandler

from .builder import ActionBuilderContext, resolve_action_builder
from .context import CancellationToken, CommandContext
from .engine import ParserEngine
from .faults import *
from .faults import trigger as _trigger
from .filters import FilterCollection, FilterPipeline
from .metadata import describe
from .services import ServiceContainer
from .utils import Unset, coalesce

logger = logging.getLogger(__name__)


class CommandDescriptor:
    """
    one command node: implementation type, display name, description and the
    ordered sub-commands.
    """

    def __init__(self, command_type, name, descr=None, parent=Unset):
        self._command_type = command_type
        self._name = name
        self._descr = descr
        self._parent = parent
        self._children = []
        if parent is not Unset:
            parent._children.append(self)

    command_type = property(lambda self: self._command_type)
    name = property(lambda self: self._name)
    descr = property(lambda self: self._descr)
    parent = property(lambda self: self._parent)
    children = property(lambda self: tuple(self._children))

    @property
    def path(self):
        """
        names from the root (excluded) down to this node.
        """
        names = []
        node = self
        while node._parent is not Unset:
            names.append(node._name)
            node = node._parent
        return tuple(reversed(names))

    @property
    def root(self):
        node = self
        while node._parent is not Unset:
            node = node._parent
        return node

    def __iter__(self):
        yield self
        for child in self._children:
            yield from child

    def __repr__(self):
        return f"command-descriptor(name={self._name!r}, children={[child.name for child in self._children]})"


async def _until_cancelled(coroutine, cancellation):
    """
    await the pipeline as a task that the token cancels.

    a stage that never polls the token is interrupted at its next await; the
    resulting CancelledError surfaces as CommandCancelledError. Cancellation of
    the awaiting task itself propagates unchanged.
    """
    if not cancellation.cancellable:
        return await coroutine
    loop = asyncio.get_running_loop()
    task = loop.create_task(coroutine)
    cancellation.add_callback(lambda: task.done() or loop.call_soon_threadsafe(task.cancel))
    try:
        return await task
    except asyncio.CancelledError:
        if cancellation.cancelled and not asyncio.current_task().cancelling():
            raise CommandCancelledError("the invocation was cancelled") from None
        raise


class Dispatcher:
    """
    runs one command invocation: instance, context, pipeline, operation.

    Holds no per-invocation state, so independent invocations (of the same
    command type included) may run concurrently.
    """

    def __init__(self, services, pipeline):
        self._services = services
        self._pipeline = pipeline

    def instantiate(self, command_type):
        """
        resolve the command instance from the container, else construct it.
        """
        instance = self._services.resolve(command_type)
        return command_type() if instance is None else instance

    async def dispatch(self, descriptor, operation, result, cancellation=Unset):
        """
        dispatch one parsed invocation and return its exit code.

        The exit code is the int returned by the handler when there is one,
        else the context's exit_code.
        """
        command_type = descriptor.command_type
        context = CommandContext(command_type, self.instantiate(command_type), cancellation)
        context.cancellation.raise_if_cancelled()

        async def action(context):
            outcome = await operation(context.command, result, context)
            if isinstance(outcome, int) and not isinstance(outcome, bool):
                context.exit_code = outcome

        logger.debug("dispatching %s", " ".join(descriptor.path) or descriptor.name)
        await _until_cancelled(self._pipeline.execute(context, action), context.cancellation)
        logger.debug("dispatched %s with exit code %d", command_type.__qualname__, context.exit_code)
        return context.exit_code


class CommandHost:
    """
    A built command tree ready to run prompts.
    """

    def __init__(self, engine, root, operations, dispatcher, **options):
        self._engine = engine
        self._root = root
        self._operations = operations
        self._dispatcher = dispatcher
        self._options = options

    engine = property(lambda self: self._engine)
    root = property(lambda self: self._root)
    dispatcher = property(lambda self: self._dispatcher)
    shell = property(lambda self: self._options.get("shell", False))
    fancy = property(lambda self: self._options.get("fancy", False))
    colorful = property(lambda self: self._options.get("colorful", False))

    def trigger(self, fault, /, **options):
        """
        surface a fault with the host's runtime flags merged in.
        """
        _trigger(fault, **self._options | options)

    def parse(self, prompt=Unset):
        return self._engine.parse(prompt)

    async def execute(self, result, cancellation=Unset):
        """
        dispatch an already parsed prompt.

        A node without a handler prints its help and yields exit code 1.
        """
        try:
            descriptor, operation = self._operations[result.command]
        except KeyError:
            sys.stdout.write(result.command.format_help())
            return 1
        return await self._dispatcher.dispatch(descriptor, operation, result, cancellation)

    async def run_async(self, prompt=Unset, cancellation=Unset):
        """
        parse and dispatch a prompt; return the exit code.

        Faults propagate as exceptions; handler and filter failures are not
        translated.
        """
        return await self.execute(self.parse(prompt), cancellation)

    def run(self, prompt=Unset):
        """
        synchronous entry point: parse, dispatch on a fresh event loop and
        return the exit code.

        the first SIGINT cancels the invocation's token (which interrupts the
        pipeline), a second one reaches the default handler; this needs loop
        signal handler support from the platform. Faults go through trigger(): raised in library mode,
        printed (then exit 1) in shell mode. --help exits the parse with 0.
        """
        try:
            result = self.parse(prompt)
        except SystemExit as exit:
            return exit.code if isinstance(exit.code, int) else 0
        except CommandException as fault:
            return self.trigger(fault)

        cancellation = CancellationToken()

        async def main():
            loop = asyncio.get_running_loop()

            def interrupt():
                # a second SIGINT goes to the default handler
                loop.remove_signal_handler(signal.SIGINT)
                cancellation.cancel()

            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(signal.SIGINT, interrupt)
            try:
                return await self.execute(result, cancellation)
            finally:
                with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                    loop.remove_signal_handler(signal.SIGINT)

        try:
            return asyncio.run(main())
        except CommandException as fault:
            return self.trigger(fault)

    def __repr__(self):
        return f"command-host(prog={self._root.name!r}, commands={[child.name for child in self._root.children]})"


def _install_logging(level):
    root = logging.getLogger(__name__.partition(".")[0])
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True))
    root.setLevel(level)


class CommandHostBuilder:
    """
    registration surface of a command-line application.

    Build-time faults
    - DuplicateCommandError: a type registered twice, or two siblings sharing a name.
    - UnknownParentError: a sub-command registered before its parent.
    - MissingEntryPointError: a type without a callable execute.
    - OperationAlreadySetError: a second root handler, or a second build().
    """

    def __init__(self, prog=Unset, descr=Unset, *, shell=False, fancy=False, colorful=False, loglevel=Unset):
        if not isinstance(prog, str | Unset):
            raise TypeError("CommandHostBuilder() 'prog' must be a string")
        if not isinstance(descr, str | Unset):
            raise TypeError("CommandHostBuilder() 'descr' must be a string")
        self._prog = prog
        self._descr = descr
        self._options = {"shell": bool(shell), "fancy": bool(fancy), "colorful": bool(colorful)}
        if prog is not Unset:
            self._options["prog"] = prog
        self._services = ServiceContainer()
        self._filters = FilterCollection()
        self._handler = Unset
        self._registrations = {}
        self._built = False
        if loglevel is not Unset:
            _install_logging(loglevel)

    services = property(lambda self: self._services)
    filters = property(lambda self: self._filters)

    def _check(self, command_type):
        if not isinstance(command_type, type):
            raise TypeError("command registrations require a class")
        if self._built:
            raise OperationAlreadySetError("the host is already built", command_type=command_type)
        if command_type in self._registrations or command_type is self._handler:
            raise DuplicateCommandError(f"{command_type.__qualname__} is already registered",
                                        command_type=command_type)
        if not callable(getattr(command_type, "execute", None)):
            raise MissingEntryPointError(f"{command_type.__qualname__} does not define execute(context)",
                                         command_type=command_type, attribute="execute")

    def _register(self, command_type, parent):
        self._check(command_type)
        name = describe(command_type).name
        for sibling, (other, _) in self._registrations.items():
            if other is parent and describe(sibling).name == name:
                raise DuplicateCommandError(
                    f"{command_type.__qualname__} and {sibling.__qualname__} are both named {name!r}",
                    command_type=command_type,
                )
        self._registrations[command_type] = (parent, len(self._registrations))
        return self

    def add_command(self, command_type, /):
        """
        register a top-level command.
        """
        return self._register(command_type, Unset)

    def add_sub_command(self, parent_type, command_type, /):
        """
        register a command under an already registered parent.
        """
        if parent_type not in self._registrations:
            raise UnknownParentError(
                f"{getattr(parent_type, '__qualname__', parent_type)!r} is not a registered command",
                command_type=command_type,
            )
        return self._register(command_type, parent_type)

    def use_handler(self, command_type, /):
        """
        make command_type the handler of the program itself (no sub-command).
        """
        if self._handler is not Unset:
            raise OperationAlreadySetError("the root handler is already set", command_type=command_type)
        self._check(command_type)
        describe(command_type)
        self._handler = command_type
        return self

    def add_filter(self, filter_type, /, order=0):
        """
        register a filter applied to every command.
        """
        self._filters.add(filter_type, order=order)
        return self

    def build(self):
        """
        freeze the registrations into a CommandHost.
        """
        if self._built:
            raise OperationAlreadySetError("the host is already built")

        engine = ParserEngine(self._prog, self._descr)
        root = CommandDescriptor(coalesce(self._handler, None), engine.root.name, coalesce(self._descr))
        operations = {}

        def bind(command_type, node, descriptor):
            context = ActionBuilderContext(command_type, node, self._services)
            resolve_action_builder(command_type)(context)
            operations[node] = (descriptor, context.operation)

        if self._handler is not Unset:
            bind(self._handler, engine.root, root)

        nodes = {Unset: (engine.root, root)}
        for command_type, (parent, _) in sorted(self._registrations.items(), key=lambda item: item[1][1]):
            parent_node, parent_descriptor = nodes[parent]
            metadata = describe(command_type)
            node = parent_node.add_command(metadata.name, metadata.descr)
            descriptor = CommandDescriptor(command_type, metadata.name, metadata.descr, parent_descriptor)
            bind(command_type, node, descriptor)
            nodes[command_type] = (node, descriptor)

        self._built = True
        pipeline = FilterPipeline(self._services, self._filters.descriptors)
        logger.debug("built host %r with %d command(s)", root.name, len(self._registrations))
        return CommandHost(engine, root, operations, Dispatcher(self._services, pipeline), **self._options)


def invoke(command_type, prompt=Unset, /, **options):
    """
    host command_type as the program's handler and run prompt once.

    Keyword options are the CommandHostBuilder keywords (prog, descr, shell,
    fancy, colorful, loglevel).
    """
    prog = options.pop("prog", Unset)
    descr = options.pop("descr", describe(command_type).descr or Unset)
    return CommandHostBuilder(prog, descr, **options).use_handler(command_type).build().run(prompt)


__all__ = (
    "CommandDescriptor",
    "CommandHostBuilder",
    "CommandHost",
    "Dispatcher",
    "invoke",
)
