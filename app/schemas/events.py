from __future__ import annotations

from pydantic import BaseModel, Field
from ulid import ULID


class InboundEvent(BaseModel):
    """One normalised user input: a text message, a media message or a button tap."""

    event_id: str = Field(default_factory=lambda: str(ULID()))
    user_id: int
    chat_id: int
    is_group: bool = False
    text: str = ""
    message_id: int | None = None
    has_media: bool = False
    callback_data: str | None = None
    callback_id: str | None = None


class ReminderSummary(BaseModel):
    checked: int = 0
    sent: int = 0
