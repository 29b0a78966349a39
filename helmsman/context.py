"""
Helmsman invocation state: the command context and its cancellation signal.

A CommandContext is created fresh for every dispatch, handed by reference to
every filter and to the handler, and dropped afterwards. It is never pooled or
shared between invocations.

A CancellationToken is the single cancellation signal of an invocation. Any
stage may poll it (cancelled, raise_if_cancelled()) or suspend on it (wait()).
Cancelling is terminal: a cancelled token never resets.
"""
import asyncio
import threading

from .faults import CommandCancelledError
from .utils import Unset, coalesce


def _settle(future):
    if not future.done():
        future.set_result(None)


class CancellationToken:
    """
    one-shot, thread-safe cancellation signal.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks = []
        self._waiters = []

    @classmethod
    def none(cls):
        """
        the shared token that is never cancelled.
        """
        return _NEVER

    @property
    def cancelled(self):
        return self._cancelled

    @property
    def cancellable(self):
        return True

    def cancel(self):
        """
        signal cancellation; callbacks run once, in registration order.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
            waiters, self._waiters = self._waiters, []
        for future in waiters:
            future.get_loop().call_soon_threadsafe(_settle, future)
        for callback in callbacks:
            callback()

    def add_callback(self, callback):
        """
        run callback on cancellation (immediately when already cancelled).
        """
        if not callable(callback):
            raise TypeError("add_callback() argument must be callable")
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self):
        if self._cancelled:
            raise CommandCancelledError("the invocation was cancelled")

    async def wait(self):
        """
        suspend until the token is cancelled.
        """
        future = asyncio.get_running_loop().create_future()
        with self._lock:
            if self._cancelled:
                return
            self._waiters.append(future)
        try:
            await future
        finally:
            with self._lock:
                if future in self._waiters:
                    self._waiters.remove(future)

    def __repr__(self):
        return f"cancellation-token(cancelled={self._cancelled})"


class _NeverCancelled(CancellationToken):

    @property
    def cancellable(self):
        return False

    def cancel(self):
        raise TypeError("CancellationToken.none() cannot be cancelled")

    def __repr__(self):
        return "cancellation-token(none)"


_NEVER = _NeverCancelled()


class CommandContext:
    """
    one in-flight invocation.

    Attributes
    - command_type: the class being dispatched.
    - command: the live instance; filters and the handler may read and write it.
    - cancellation: the invocation's CancellationToken.
    - items: scratch mapping for filters to share per-invocation state.
    - exit_code: process exit code reported by the host (0 unless set).
    """

    def __init__(self, command_type, command, cancellation=Unset):
        self.command_type = command_type
        self.command = command
        self.cancellation = coalesce(cancellation, CancellationToken.none())
        self.items = {}
        self.exit_code = 0

    def __repr__(self):
        return (f"command-context(command_type={self.command_type.__qualname__}, "
                f"exit_code={self.exit_code}, cancelled={self.cancellation.cancelled})")


__all__ = (
    "CancellationToken",
    "CommandContext",
)
