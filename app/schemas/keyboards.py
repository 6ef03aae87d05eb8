from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel


class ReplyKeyboard(BaseModel):
    rows: list[list[str]]

    def to_markup(self) -> dict[str, Any]:
        return {
            "keyboard": [[{"text": t} for t in row] for row in self.rows],
            "resize_keyboard": True,
            "one_time_keyboard": False,
        }


class InlineButton(BaseModel):
    text: str
    callback_data: str


class InlineKeyboard(BaseModel):
    rows: list[list[InlineButton]]

    def to_markup(self) -> dict[str, Any]:
        return {"inline_keyboard": [[b.model_dump() for b in row] for row in self.rows]}


Keyboard = Union[ReplyKeyboard, InlineKeyboard]
