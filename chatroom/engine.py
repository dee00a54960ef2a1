from .messages import MessageStore
from .reaper import PresenceReaper
from .registry import ParticipantRegistry, now_ms


class ChatEngine:
    """Registry, message store and reaper over one session factory."""

    def __init__(self, session_factory, settings, clock=now_ms):
        self.participants = ParticipantRegistry(session_factory, clock=clock)
        self.messages = MessageStore(session_factory, self.participants)
        self.participants.attach(self.messages)
        self.reaper = PresenceReaper(
            self.participants,
            interval=settings.reaper_interval,
            threshold=settings.inactivity_threshold,
            item_timeout=settings.reaper_item_timeout,
        )

    def start(self):
        self.reaper.start()
        return self

    async def stop(self):
        await self.reaper.stop()
