"""
Participant registry.

Owns the set of active participants and their lastStatus heartbeat
timestamps. Names are sanitized before every lookup, and the name column
is the primary key, so the database itself rejects a second live
participant with the same name.
"""
import logging
import time
from typing import Callable, List

from sqlalchemy.exc import IntegrityError
from sqlmodel import delete, select

from .errors import Conflict, NotFound, ValidationError, store_errors
from .models import BROADCAST, JOIN_TEXT, Participant
from .sanitizer import sanitize

logger = logging.getLogger("chatroom.registry")


def now_ms() -> int:
    return int(time.time() * 1000)


class ParticipantRegistry:
    def __init__(self, session_factory, clock: Callable[[], int] = now_ms):
        self.session_factory = session_factory
        self.clock = clock
        self.messages = None

    def attach(self, messages):
        """Wire the message store used for join notices."""
        self.messages = messages
        return self

    async def register(self, raw_name: str) -> Participant:
        name = sanitize(raw_name)
        if not name:
            raise ValidationError("name must not be empty")
        if name == BROADCAST:
            raise ValidationError(f"{BROADCAST!r} is reserved for broadcasts")

        with store_errors("register participant"):
            async with self.session_factory() as session:
                if await session.get(Participant, name) is not None:
                    raise Conflict(f"participant {name!r} already exists")

                participant = Participant(name=name, last_status=self.clock())
                session.add(participant)
                try:
                    await session.commit()
                except IntegrityError:
                    # lost a race with a concurrent register
                    await session.rollback()
                    raise Conflict(f"participant {name!r} already exists")

        logger.info("Participant '%s' joined", name)

        # No rollback if this fails: the participant stays registered.
        await self.messages.emit_status(name, JOIN_TEXT)
        return participant

    async def list_all(self) -> List[Participant]:
        with store_errors("list participants"):
            async with self.session_factory() as session:
                return list((await session.exec(select(Participant))).all())

    async def heartbeat(self, raw_name: str) -> Participant:
        name = sanitize(raw_name)
        if not name:
            raise ValidationError("name must not be empty")

        with store_errors("heartbeat"):
            async with self.session_factory() as session:
                participant = await session.get(Participant, name)
                if participant is None:
                    raise NotFound(f"participant {name!r} not found")
                participant.last_status = self.clock()
                session.add(participant)
                await session.commit()

        logger.debug("Heartbeat from '%s'", name)
        return participant

    async def exists(self, name: str) -> bool:
        if not name:
            return False
        with store_errors("lookup participant"):
            async with self.session_factory() as session:
                return await session.get(Participant, name) is not None

    async def expire_older_than(self, threshold_ms: int) -> List[str]:
        """Names of participants whose last heartbeat is older than threshold_ms."""
        cutoff = self.clock() - threshold_ms
        with store_errors("scan expired participants"):
            async with self.session_factory() as session:
                rows = await session.exec(
                    select(Participant.name).where(Participant.last_status < cutoff)
                )
                return list(rows.all())

    async def remove(self, name: str, threshold_ms: int) -> bool:
        """
        Delete name if it is still stale under threshold_ms.

        A heartbeat that landed after the scan moves last_status past the
        cutoff and the delete matches nothing. Returns True if a row went.
        """
        cutoff = self.clock() - threshold_ms
        with store_errors("remove participant"):
            async with self.session_factory() as session:
                result = await session.exec(
                    delete(Participant)
                    .where(Participant.name == name)
                    .where(Participant.last_status < cutoff)
                )
                await session.commit()
                return result.rowcount > 0

    async def evict(self, name: str, threshold_ms: int, text: str) -> bool:
        """
        Remove a still-stale participant and post its departure notice.

        The conditional delete and the status insert share one commit, so
        either both land or neither does and the next scan retries.
        """
        cutoff = self.clock() - threshold_ms
        with store_errors("evict participant"):
            async with self.session_factory() as session:
                result = await session.exec(
                    delete(Participant)
                    .where(Participant.name == name)
                    .where(Participant.last_status < cutoff)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    return False
                session.add(self.messages.status_message(name, text))
                await session.commit()
                return True
