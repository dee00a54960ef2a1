from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import BigInteger
from sqlmodel import SQLModel, Field

BROADCAST = "Todos"

MESSAGE = "message"
PRIVATE_MESSAGE = "private_message"
STATUS = "status"

# types a client may set; status is only produced by the server
CLIENT_TYPES = (MESSAGE, PRIVATE_MESSAGE)

JOIN_TEXT = "entra na sala..."
LEAVE_TEXT = "sai da sala..."


class Participant(SQLModel, table=True):
    name: str = Field(primary_key=True)
    last_status: int = Field(sa_type=BigInteger, index=True)  # epoch millis


class Message(SQLModel, table=True):
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    sender: str = Field(index=True)
    recipient: str = Field(index=True)
    text: str
    type: str
    time: str  # HH:MM:SS


# ---- request / response schemas ----

class ParticipantCreate(SQLModel):
    name: str


class MessageCreate(SQLModel):
    to: str
    text: str
    type: str


class ParticipantRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    last_status: int = PydanticField(alias="lastStatus")

    @classmethod
    def from_row(cls, row: Participant) -> "ParticipantRead":
        return cls(name=row.name, last_status=row.last_status)


class MessageRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    from_: str = PydanticField(alias="from")
    to: str
    text: str
    type: str
    time: str

    @classmethod
    def from_row(cls, row: Message) -> "MessageRead":
        return cls(
            id=row.id,
            from_=row.sender,
            to=row.recipient,
            text=row.text,
            type=row.type,
            time=row.time,
        )

    @classmethod
    def from_rows(cls, rows: List[Message]) -> List["MessageRead"]:
        return [cls.from_row(row) for row in rows]
