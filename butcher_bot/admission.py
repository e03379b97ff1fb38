"""
Concurrency Admission Gate.

Bounds how many expensive upstream calls (audio transcription) run at once.
Callers beyond capacity wait in FIFO order on a future each; a release hands
the freed slot straight to the head of the queue, so a late arrival can never
overtake a waiter.

A gate belongs to one event loop. All bookkeeping happens between awaits, so
no lock is needed.

Usage:
    gate = AdmissionGate(max_concurrent=5, queue_timeout=30, name="transcription")

    async with gate.admit():
        ...  # raises AdmissionTimeout if no slot frees up in time
"""

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Optional

from .errors import AdmissionTimeout

logger = logging.getLogger(__name__)


class AdmissionTicket:
    """One held slot. Must be released exactly once."""

    def __init__(self, gate: "AdmissionGate"):
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise RuntimeError(f"Ticket for gate '{self._gate.name}' released twice")
        self._released = True
        self._gate._release_slot()


class AdmissionGate:
    def __init__(self, max_concurrent: int, queue_timeout: float, name: str = "gate"):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.queue_timeout = queue_timeout
        self.name = name
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def waiting(self) -> int:
        """Callers currently queued."""
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self, timeout: Optional[float] = None) -> Optional[AdmissionTicket]:
        """Wait for a slot. Returns a ticket, or None if ``timeout`` elapsed first.

        A caller that times out leaves the queue and never counts as active.
        """
        if timeout is None:
            timeout = self.queue_timeout

        if self._active < self.max_concurrent and not self._waiters:
            self._active += 1
            return AdmissionTicket(self)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await asyncio.wait({waiter}, timeout=timeout)
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed to us just as we got cancelled; pass it on
                self._release_slot()
            else:
                self._forget(waiter)
            raise

        if waiter.done() and not waiter.cancelled():
            return AdmissionTicket(self)

        self._forget(waiter)
        return None

    def _forget(self, waiter: asyncio.Future) -> None:
        waiter.cancel()
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def _release_slot(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand over: the slot stays counted as active
                waiter.set_result(True)
                return
        if self._active <= 0:
            raise RuntimeError(f"Gate '{self.name}' released more slots than it granted")
        self._active -= 1

    @asynccontextmanager
    async def admit(self, timeout: Optional[float] = None) -> AsyncIterator[AdmissionTicket]:
        """Hold a slot for the body of the ``async with`` block."""
        started = time.monotonic()
        ticket = await self.acquire(timeout)
        if ticket is None:
            waited = time.monotonic() - started
            logger.warning(
                "Admission gate '%s' full (%d active, %d waiting); rejected after %.1fs",
                self.name, self._active, self.waiting, waited,
            )
            raise AdmissionTimeout(self.name, waited)
        try:
            yield ticket
        finally:
            if not ticket.released:
                ticket.release()
