import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import col, or_, select

from .errors import NotFound, Unauthorized, ValidationError, store_errors
from .models import BROADCAST, CLIENT_TYPES, STATUS, Message
from .sanitizer import sanitize

logger = logging.getLogger("chatroom.messages")


def clock_time() -> str:
    return datetime.now().strftime("%H:%M:%S")


class MessageStore:
    """Creation, visibility and ownership rules for chat messages."""

    def __init__(self, session_factory, participants, clock=clock_time):
        self.session_factory = session_factory
        self.participants = participants
        self.clock = clock

    async def _validated(self, sender: str, to: str, text: str, type: str):
        sender, to, text = sanitize(sender), sanitize(to), sanitize(text)
        if not sender:
            raise ValidationError("sender must not be empty")
        if not to:
            raise ValidationError("recipient must not be empty")
        if not text:
            raise ValidationError("text must not be empty")
        if type not in CLIENT_TYPES:
            raise ValidationError(f"type must be one of {', '.join(CLIENT_TYPES)}")
        # never registered and already reaped look the same from here
        if not await self.participants.exists(sender):
            raise ValidationError(f"sender {sender!r} is not an active participant")
        return sender, to, text

    async def send(self, sender: str, to: str, text: str, type: str) -> Message:
        sender, to, text = await self._validated(sender, to, text, type)
        msg = Message(sender=sender, recipient=to, text=text, type=type, time=self.clock())
        with store_errors("send message"):
            async with self.session_factory() as session:
                session.add(msg)
                await session.commit()
                await session.refresh(msg)
        return msg

    def status_message(self, name: str, text: str) -> Message:
        """Build, without saving, a status notice from name to everyone."""
        return Message(sender=name, recipient=BROADCAST, text=text, type=STATUS, time=self.clock())

    async def emit_status(self, name: str, text: str) -> Message:
        """Append a server-generated status notice addressed to everyone."""
        msg = self.status_message(name, text)
        with store_errors("emit status"):
            async with self.session_factory() as session:
                session.add(msg)
                await session.commit()
                await session.refresh(msg)
        return msg

    async def list_for(self, user: str, limit: Optional[int] = None) -> List[Message]:
        """
        Messages visible to user, oldest first.

        A message is visible if the user sent it, received it, or it was
        addressed to the broadcast target. With limit, only the newest
        `limit` of those are returned, still oldest first.
        """
        user = sanitize(user)
        if not user:
            raise ValidationError("user must not be empty")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise ValidationError("limit must be a positive integer")

        visible = or_(
            Message.sender == user,
            Message.recipient == user,
            Message.recipient == BROADCAST,
        )
        with store_errors("list messages"):
            async with self.session_factory() as session:
                if limit is None:
                    stmt = select(Message).where(visible).order_by(col(Message.id))
                    return list((await session.exec(stmt)).all())

                stmt = select(Message).where(visible).order_by(col(Message.id).desc()).limit(limit)
                rows = list((await session.exec(stmt)).all())
        rows.reverse()
        return rows

    async def get(self, message_id: int) -> Message:
        with store_errors("get message"):
            async with self.session_factory() as session:
                msg = await session.get(Message, message_id)
        if msg is None:
            raise NotFound(f"message {message_id} not found")
        return msg

    async def update(self, message_id: int, requester: str, to: str, text: str, type: str) -> Message:
        requester = sanitize(requester)
        with store_errors("update message"):
            async with self.session_factory() as session:
                msg = await session.get(Message, message_id)
                if msg is None:
                    raise NotFound(f"message {message_id} not found")
                if msg.sender != requester:
                    raise Unauthorized(f"message {message_id} is not owned by {requester!r}")

                requester, to, text = await self._validated(requester, to, text, type)
                msg.sender = requester
                msg.recipient = to
                msg.text = text
                msg.type = type
                session.add(msg)
                await session.commit()

        logger.info("Message %s updated by '%s'", message_id, requester)
        return msg

    async def delete(self, message_id: int, requester: str) -> None:
        requester = sanitize(requester)
        with store_errors("delete message"):
            async with self.session_factory() as session:
                msg = await session.get(Message, message_id)
                if msg is None:
                    raise NotFound(f"message {message_id} not found")
                if msg.sender != requester:
                    raise Unauthorized(f"message {message_id} is not owned by {requester!r}")
                await session.delete(msg)
                await session.commit()

        logger.info("Message %s deleted by '%s'", message_id, requester)
