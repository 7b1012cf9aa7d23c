"""Rebuild Coordinator - bounds concurrent rebuilds triggered by file changes.

Two policies are available:

- RebuildCoordinator ("concurrent", the default): a new build starts as soon
  as it is requested, even if another one is still running. The second build
  of a pair is recorded as the queued build and every request that arrives
  while it is recorded shares its completion instead of starting a third
  build. The record is cleared whenever the running count drops back to one,
  whichever build is the one still running, so a later request may start a
  new build next to a build that was never queued.

- CoalescingRebuildCoordinator ("coalesce"): a single-slot state machine,
  IDLE -> RUNNING -> RUNNING_QUEUED -> IDLE. Only one build runs at a time;
  all requests arriving during a run collapse into exactly one follow-up
  build, started once the current build has finished.

Neither policy cancels a build once started. Waiters await builds through
asyncio.shield, so cancelling a waiter leaves the build running.
"""

import asyncio
import logging
import warnings
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from swbuild.errors import InternalConsistencyWarning

logger = logging.getLogger(__name__)

BuildOperation = Callable[[], Awaitable[None]]

POLICY_CONCURRENT = "concurrent"
POLICY_COALESCE = "coalesce"


class RebuildCoordinator:
    """Starts rebuilds immediately, with at most one extra build recorded as queued."""

    def __init__(self, build_operation: BuildOperation):
        self._build_operation = build_operation
        self._in_flight_count = 0
        self._queued: Optional["asyncio.Task[None]"] = None
        self._tasks: set["asyncio.Task[None]"] = set()
        self.builds_started = 0

    @property
    def in_flight_count(self) -> int:
        return self._in_flight_count

    @property
    def has_queued_build(self) -> bool:
        return self._queued is not None

    async def request_rebuild(self) -> None:
        """Start a rebuild or join the queued one; raises whatever the build raised."""
        if self._queued is not None:
            logger.debug("Rebuild already queued, joining it")
            await asyncio.shield(self._queued)
            return

        self._in_flight_count += 1
        current = asyncio.ensure_future(self._run_build())
        self._tasks.add(current)
        current.add_done_callback(self._tasks.discard)
        self.builds_started += 1

        if self._in_flight_count > 1:
            logger.debug(f"Rebuild started while {self._in_flight_count - 1} build(s) running, recording as queued")
            self._queued = current

        await asyncio.shield(current)

    async def _run_build(self) -> None:
        try:
            await self._build_operation()
        finally:
            self._release()

    def _release(self) -> None:
        if self._in_flight_count > 2:
            message = f"This should not happen: {self._in_flight_count} rebuilds in flight"
            logger.warning(message)
            warnings.warn(message, InternalConsistencyWarning, stacklevel=2)
        self._in_flight_count -= 1
        if self._in_flight_count == 1:
            self._queued = None


class RebuildState(Enum):
    """State of the coalescing coordinator."""

    IDLE = "idle"
    RUNNING = "running"
    RUNNING_QUEUED = "running_queued"


class CoalescingRebuildCoordinator:
    """Runs one build at a time and folds pending requests into one follow-up build."""

    def __init__(self, build_operation: BuildOperation):
        self._build_operation = build_operation
        self._state = RebuildState.IDLE
        self._follow_up: Optional["asyncio.Future[None]"] = None
        self._tasks: set["asyncio.Task[None]"] = set()
        self.builds_started = 0

    @property
    def state(self) -> RebuildState:
        return self._state

    async def request_rebuild(self) -> None:
        """Run a build now, or wait for the single follow-up build."""
        loop = asyncio.get_running_loop()

        if self._state is RebuildState.IDLE:
            waiter: "asyncio.Future[None]" = loop.create_future()
            self._state = RebuildState.RUNNING
            driver = asyncio.ensure_future(self._drive(waiter))
            self._tasks.add(driver)
            driver.add_done_callback(self._tasks.discard)
        elif self._follow_up is None:
            logger.debug("Build running, queueing one follow-up build")
            self._follow_up = loop.create_future()
            self._state = RebuildState.RUNNING_QUEUED
            waiter = self._follow_up
        else:
            waiter = self._follow_up

        await asyncio.shield(waiter)

    async def _drive(self, waiter: "asyncio.Future[None]") -> None:
        while True:
            self.builds_started += 1
            try:
                await self._build_operation()
            except asyncio.CancelledError:
                waiter.cancel()
                if self._follow_up is not None:
                    self._follow_up.cancel()
                self._follow_up = None
                self._state = RebuildState.IDLE
                raise
            except Exception as e:
                waiter.set_exception(e)
            else:
                waiter.set_result(None)

            if self._follow_up is None:
                self._state = RebuildState.IDLE
                return

            waiter, self._follow_up = self._follow_up, None
            self._state = RebuildState.RUNNING


Coordinator = Union[RebuildCoordinator, CoalescingRebuildCoordinator]


def create_rebuild_coordinator(policy: str, build_operation: BuildOperation) -> Coordinator:
    """Create the coordinator for a rebuild policy name."""
    if policy == POLICY_CONCURRENT:
        return RebuildCoordinator(build_operation)
    if policy == POLICY_COALESCE:
        return CoalescingRebuildCoordinator(build_operation)
    raise ValueError(f"Unknown rebuild policy: {policy!r} (expected {POLICY_CONCURRENT!r} or {POLICY_COALESCE!r})")
