"""
Service container and cancellation behavioral tests.

Scope
- Validate singleton/transient lifetimes, factories and maybe-absent lookups.
- Validate concurrent singleton creation.
- Validate the cancellation token and the command context defaults.

Conventions
- Test method names follow CamelCase per project convention.
"""

import asyncio
import threading
import unittest
from unittest import TestCase, IsolatedAsyncioTestCase

from helmsman import ServiceContainer, CancellationToken, CommandContext
from helmsman.faults import CommandCancelledError


class Clock:
    pass


class Repository:
    def __init__(self, services):
        self.clock = services.resolve(Clock)


class TestServiceContainer(TestCase):
    """Behavioral tests for ServiceContainer."""

    def setUp(self):
        self.services = ServiceContainer()

    def testMissReturnsNone(self):
        self.assertIsNone(self.services.resolve(Clock))
        self.assertNotIn(Clock, self.services)

    def testSingletonIsShared(self):
        self.services.add_singleton(Clock)
        self.assertIs(self.services.resolve(Clock), self.services.resolve(Clock))
        self.assertIn(Clock, self.services)

    def testReadyInstance(self):
        clock = Clock()
        self.services.add_singleton(Clock, clock)
        self.assertIs(self.services.resolve(Clock), clock)

    def testTransientIsFresh(self):
        self.services.add_transient(Clock)
        self.assertIsNot(self.services.resolve(Clock), self.services.resolve(Clock))

    def testFactoryReceivesContainer(self):
        self.services.add_singleton(Clock).add_transient(Repository)
        self.assertIs(self.services.resolve(Repository).clock, self.services.resolve(Clock))

    def testLambdaFactory(self):
        self.services.add_singleton("answer", lambda: 42)
        self.assertEqual(self.services.resolve("answer"), 42)
        self.assertEqual(self.services.keys(), ("answer",))

    def testNonCallableTransientRejected(self):
        with self.assertRaises(TypeError):
            self.services.add_transient("answer", 42)

    def testConcurrentSingletonCreation(self):
        created = []

        def factory():
            created.append(object())
            return created[-1]

        self.services.add_singleton(Clock, factory)
        results = []
        threads = [threading.Thread(target=lambda: results.append(self.services.resolve(Clock))) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(len(created), 1)
        self.assertTrue(all(result is created[0] for result in results))


class TestCancellation(IsolatedAsyncioTestCase):
    """Behavioral tests for CancellationToken and CommandContext."""

    async def testCancelIsTerminal(self):
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        token.raise_if_cancelled()
        token.cancel()
        token.cancel()
        self.assertTrue(token.cancelled)
        with self.assertRaises(CommandCancelledError):
            token.raise_if_cancelled()

    async def testWaitResumesOnCancel(self):
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        self.assertFalse(waiter.done())
        token.cancel()
        await asyncio.wait_for(waiter, 1)

    async def testCallbacksRun(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("first"))
        token.cancel()
        token.add_callback(lambda: calls.append("late"))
        self.assertEqual(calls, ["first", "late"])

    async def testNoneTokenCannotBeCancelled(self):
        self.assertIs(CancellationToken.none(), CancellationToken.none())
        self.assertFalse(CancellationToken.none().cancellable)
        with self.assertRaises(TypeError):
            CancellationToken.none().cancel()

    async def testContextDefaults(self):
        context = CommandContext(Clock, Clock())
        self.assertIs(context.cancellation, CancellationToken.none())
        self.assertEqual(context.items, {})
        self.assertEqual(context.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
