"""Schedules successive Ben-Or rounds"""
import asyncio
from typing import Callable, Optional
import logging

from ..communication.readiness import wait_until_ready
from ..utils.config import settings
from .round_machine import NodeStateSnapshot, RoundStateMachine

logger = logging.getLogger(__name__)


class CancellationToken:
    """Invalidated by RoundDriver.stop(); no round starts once cancelled"""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True


class RoundDriver:
    """Run rounds of a RoundStateMachine until it decides or is stopped"""

    def __init__(self, machine: RoundStateMachine, readiness: Callable[[], bool],
                 round_delay: Optional[float] = None,
                 violated_round_delay: Optional[float] = None,
                 readiness_poll: Optional[float] = None):
        self.machine = machine
        self.readiness = readiness
        self.round_delay = round_delay if round_delay is not None else settings.round_delay
        self.violated_round_delay = (violated_round_delay if violated_round_delay is not None
                                     else settings.violated_round_delay)
        self.readiness_poll = readiness_poll if readiness_poll is not None else settings.readiness_poll

        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> CancellationToken:
        """Schedule round execution; a no-op while already running"""
        if self.running:
            return self._token

        token = CancellationToken()
        if self.machine.state.stopped:
            token.cancel()
            return token

        self._token = token
        self._task = asyncio.create_task(self._run(token))
        return token

    def stop(self):
        """Cancel scheduled rounds and mark the node stopped"""
        if self._token is not None:
            self._token.cancel()
        self.machine.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def join(self):
        """Wait for the background task to finish"""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def inspect(self) -> NodeStateSnapshot:
        return self.machine.snapshot()

    def _next_delay(self) -> float:
        if self.machine.termination_permitted:
            return self.round_delay
        return self.violated_round_delay

    async def _run(self, token: CancellationToken):
        node_id = self.machine.node_id
        ready = await wait_until_ready(
            self.readiness, self.readiness_poll, lambda: not token.cancelled
        )
        if not ready:
            return

        logger.info(f"Node {node_id}: consensus started")
        while not token.cancelled:
            if not await self.machine.run_round():
                break
            await asyncio.sleep(self._next_delay())

        logger.info(f"Node {node_id}: consensus loop finished at round {self.machine.state.round}")
