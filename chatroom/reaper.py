"""
Presence reaper.

A recurring asyncio task that evicts participants whose last heartbeat is
older than the inactivity threshold and posts a departure notice for each.
Sweeps never overlap and never raise: every failure is logged and reported
in the sweep's result list.
"""
import asyncio
import logging
from typing import List, Optional

from .errors import Err, Ok, Result, classify
from .models import LEAVE_TEXT

logger = logging.getLogger("chatroom.reaper")


class PresenceReaper:

    def __init__(
        self,
        participants,
        interval: float = 15,
        threshold: float = 10,
        item_timeout: float = 5,
    ):
        self.participants = participants
        self.interval = interval
        self.threshold_ms = int(threshold * 1000)
        self.item_timeout = item_timeout

        self._task: Optional[asyncio.Task] = None
        self._sweeping = False

    # ---------------- lifecycle ----------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return self
        self._task = asyncio.create_task(self._loop(), name="presence-reaper")
        logger.info(
            "Reaper started (interval=%ss, threshold=%sms)", self.interval, self.threshold_ms
        )
        return self

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reaper stopped")

    async def _loop(self):
        # fixed-rate: firings stay on interval boundaries from start
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            await self.sweep()
            deadline += self.interval
            now = loop.time()
            if deadline <= now:
                missed = int((now - deadline) // self.interval) + 1
                logger.warning("Sweep overran its period; skipping %d firing(s)", missed)
                deadline += missed * self.interval

    # ---------------- sweeping ----------------

    async def sweep(self) -> List[Result]:
        """
        Run one scan and return one result per expired participant.

        Ok(name) means the participant was removed and its departure posted
        in the same commit, Ok(None) that a heartbeat arrived first and it
        was kept, Err that nothing was written and the participant is still
        there for the next sweep.
        """
        if self._sweeping:
            logger.warning("Previous sweep still running; skipping this one")
            return []

        self._sweeping = True
        try:
            try:
                names = await self.participants.expire_older_than(self.threshold_ms)
            except Exception as exc:
                logger.exception("Reaper scan failed: %s", exc)
                return []

            results: List[Result] = []
            for name in names:
                results.append(await self._evict_one(name))
            return results
        finally:
            self._sweeping = False

    async def _evict_one(self, name: str) -> Result:
        try:
            removed = await asyncio.wait_for(self._evict(name), timeout=self.item_timeout)
        except asyncio.TimeoutError:
            logger.error("Evicting '%s' timed out after %ss", name, self.item_timeout)
            return Err("timeout", f"evicting {name!r} timed out")
        except Exception as exc:
            logger.exception("Evicting '%s' failed", name)
            return classify(exc)
        return Ok(name if removed else None)

    async def _evict(self, name: str) -> bool:
        # a heartbeat since the scan makes this a no-op
        if not await self.participants.evict(name, self.threshold_ms, LEAVE_TEXT):
            logger.debug("'%s' refreshed before eviction; kept", name)
            return False
        logger.info("Participant '%s' timed out", name)
        return True
