# chatroom/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .database import build_engine, build_session_factory, init_db
from .engine import ChatEngine
from .errors import Err, Result, ValidationError, attempt
from .models import (
    MessageCreate,
    MessageRead,
    ParticipantCreate,
    ParticipantRead,
)
from .sanitizer import decode_identity
from .settings import Settings, get_settings

logger = logging.getLogger("chatroom.api")


def unwrap(result: Result):
    if isinstance(result, Err):
        raise HTTPException(status_code=result.status_code, detail=result.public_detail)
    return result.value


def identity(user: Optional[str] = Header(default=None)) -> str:
    # Starlette hands header values over as latin-1 text
    name = decode_identity(user)
    if not name:
        unwrap(Err(ValidationError.kind, "missing User header"))
    return name


def get_engine(request: Request) -> ChatEngine:
    return request.app.state.engine


def create_app(settings: Optional[Settings] = None, session_factory=None, db_engine=None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s"
    )

    if db_engine is None:
        db_engine = build_engine(settings.database_url, echo=settings.sql_echo)
    if session_factory is None:
        session_factory = build_session_factory(db_engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(db_engine)
        app.state.engine.start()
        logger.info("Chatroom API ready (database=%s)", db_engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await app.state.engine.stop()
            logger.info("Chatroom API shutting down")
            await db_engine.dispose()

    app = FastAPI(title="Chatroom API", lifespan=lifespan)
    app.state.engine = ChatEngine(session_factory, settings)

    if settings.is_dev:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # ---------------- participants ----------------

    @app.post("/participants", status_code=201, response_model=ParticipantRead)
    async def register(payload: ParticipantCreate, engine: ChatEngine = Depends(get_engine)):
        participant = unwrap(await attempt(engine.participants.register(payload.name)))
        return ParticipantRead.from_row(participant)

    @app.get("/participants", response_model=List[ParticipantRead])
    async def list_participants(engine: ChatEngine = Depends(get_engine)):
        rows = unwrap(await attempt(engine.participants.list_all()))
        return [ParticipantRead.from_row(row) for row in rows]

    @app.post("/status", response_model=ParticipantRead)
    async def heartbeat(user: str = Depends(identity), engine: ChatEngine = Depends(get_engine)):
        participant = unwrap(await attempt(engine.participants.heartbeat(user)))
        return ParticipantRead.from_row(participant)

    # ---------------- messages ----------------

    @app.post("/messages", status_code=201, response_model=MessageRead)
    async def send_message(
        payload: MessageCreate,
        user: str = Depends(identity),
        engine: ChatEngine = Depends(get_engine),
    ):
        msg = unwrap(await attempt(
            engine.messages.send(user, payload.to, payload.text, payload.type)
        ))
        return MessageRead.from_row(msg)

    @app.get("/messages", response_model=List[MessageRead])
    async def list_messages(
        limit: Optional[int] = Query(default=None),
        user: str = Depends(identity),
        engine: ChatEngine = Depends(get_engine),
    ):
        rows = unwrap(await attempt(engine.messages.list_for(user, limit)))
        return MessageRead.from_rows(rows)

    @app.put("/messages/{message_id}", response_model=MessageRead)
    async def update_message(
        message_id: int,
        payload: MessageCreate,
        user: str = Depends(identity),
        engine: ChatEngine = Depends(get_engine),
    ):
        msg = unwrap(await attempt(
            engine.messages.update(message_id, user, payload.to, payload.text, payload.type)
        ))
        return MessageRead.from_row(msg)

    @app.delete("/messages/{message_id}")
    async def delete_message(
        message_id: int,
        user: str = Depends(identity),
        engine: ChatEngine = Depends(get_engine),
    ):
        unwrap(await attempt(engine.messages.delete(message_id, user)))
        return {"deleted": message_id}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
