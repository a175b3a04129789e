import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Protocol

from loguru import logger
from pydantic import BaseModel

from .datatypes import Snapshot, Transitions
from .exceptions import WatcherError
from .notifier import DispatchResult, Notifier
from .transitions import detect_transitions


class SnapshotSource(Protocol):
    async def fetch_snapshot(self) -> Snapshot: ...


class LoopState(str, Enum):
    COLD = "cold"
    WARM = "warm"


class CycleStatus(str, Enum):
    COLD_START = "cold_start"
    OK = "ok"
    FETCH_FAILED = "fetch_failed"
    ERROR = "error"


class CycleResult(BaseModel):
    status: CycleStatus
    transitions: Transitions = Transitions()
    dispatches: list[DispatchResult] = []
    error: str | None = None


class ReconciliationLoop:
    """
    Polls the validator source and notifies recipients about transitions.

    The loop owns the retained snapshot. The first successful fetch only
    stores a baseline; every later cycle diffs against it, notifies, and
    replaces it with the newly fetched snapshot.
    """

    def __init__(
        self,
        fetcher: SnapshotSource,
        notifier: Notifier,
        min_interval: float = 0.0,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
        fetch_timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.notifier = notifier
        self.min_interval = min_interval
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.fetch_timeout = fetch_timeout
        self.sleep = sleep
        self.lock = asyncio.Lock()
        self.previous: Snapshot | None = None
        self.cycles = 0
        self.failures = 0
        self.last_result: CycleResult | None = None
        self._backoff = 0.0

    @property
    def state(self) -> LoopState:
        return LoopState.COLD if self.previous is None else LoopState.WARM

    def is_active(self, address: str) -> bool:
        if self.previous is None:
            return False
        return any(v.operatorAddress == address for v in self.previous.active)

    async def run_cycle(self) -> CycleResult:
        async with self.lock:
            try:
                result = await self._run_cycle()
            except Exception as e:
                self.failures += 1
                logger.exception("Unexpected error in reconciliation cycle")
                result = CycleResult(status=CycleStatus.ERROR, error=str(e))
        self.cycles += 1
        self.last_result = result
        return result

    async def _run_cycle(self) -> CycleResult:
        try:
            snapshot = await asyncio.wait_for(
                self.fetcher.fetch_snapshot(), timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError:
            self.failures += 1
            logger.error(
                f"Cycle aborted, fetch exceeded {self.fetch_timeout}s, baseline kept"
            )
            return CycleResult(
                status=CycleStatus.FETCH_FAILED,
                error=f"fetch timed out after {self.fetch_timeout}s",
            )
        except WatcherError as e:
            self.failures += 1
            logger.error(f"Cycle aborted, baseline kept: {e}")
            return CycleResult(status=CycleStatus.FETCH_FAILED, error=str(e))
        except Exception as e:
            self.failures += 1
            logger.exception("Unexpected error fetching validators, baseline kept")
            return CycleResult(status=CycleStatus.FETCH_FAILED, error=str(e))

        if self.previous is None:
            self.previous = snapshot
            logger.info(
                f"Stored initial baseline of {len(snapshot.all)} validators, "
                f"{len(snapshot.active)} active"
            )
            return CycleResult(status=CycleStatus.COLD_START)

        try:
            transitions = detect_transitions(self.previous, snapshot)
            if not transitions.is_empty():
                logger.info(f"Detected transitions: {transitions.summary()}")
            dispatches = await self.notifier.notify_all(transitions)
        finally:
            self.previous = snapshot
        return CycleResult(
            status=CycleStatus.OK, transitions=transitions, dispatches=dispatches
        )

    def _next_delay(self, result: CycleResult, elapsed: float) -> float:
        if result.status == CycleStatus.FETCH_FAILED:
            if self._backoff:
                self._backoff = min(self._backoff * 2, self.backoff_max)
            else:
                self._backoff = self.backoff_initial
            return self._backoff
        self._backoff = 0.0
        return max(0.0, self.min_interval - elapsed)

    async def run_forever(self, max_cycles: int | None = None):
        logger.info(f"Starting reconciliation loop, min interval {self.min_interval}s")
        completed = 0
        while max_cycles is None or completed < max_cycles:
            started = time.monotonic()
            result = await self.run_cycle()
            completed += 1
            delay = self._next_delay(result, time.monotonic() - started)
            if delay > 0:
                logger.debug(f"Next cycle in {delay:.1f}s")
                await self.sleep(delay)
            else:
                # yield so other tasks still get scheduled between cycles
                await asyncio.sleep(0)
