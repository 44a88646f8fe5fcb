"""
Chat and message records as returned by the remote store.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SenderType(str, Enum):
    USER = "user"
    BOT = "bot"


class Chat(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    owner_id: Optional[str] = Field(default=None, alias="user_id")
    created_at: datetime
    updated_at: datetime


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    chat_id: str = ""
    content: str
    sender_type: SenderType
    owner_id: Optional[str] = Field(default=None, alias="user_id")
    created_at: datetime

    @property
    def is_bot(self) -> bool:
        return self.sender_type == SenderType.BOT
