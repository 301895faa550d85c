"""
Telegram Schemas for Coffee Bot
===============================

Pydantic models for the subset of the Telegram Bot API the webhook consumes
and produces. Unknown fields are ignored so new Bot API additions never break
parsing.

Inbound:
--------
- Update: one webhook delivery, identified by update_id
- Message: a chat message (commands and quantity replies)
- CallbackQuery: an inline button press carrying callback_data

Outbound:
---------
- InlineKeyboardButton / InlineKeyboardMarkup: inline keyboards attached to
  the order card

Note that Telegram uses ``from`` as a field name; it is exposed here as
``from_user`` with an alias.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class User(TelegramModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def handle(self) -> str:
        """@username, or empty when the user has none."""
        return f"@{self.username}" if self.username else ""

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class Chat(TelegramModel):
    id: int
    type: str = "private"
    title: Optional[str] = None
    username: Optional[str] = None


class Message(TelegramModel):
    message_id: int
    date: int = 0
    chat: Chat
    from_user: Optional[User] = Field(default=None, alias="from")
    text: Optional[str] = None


class CallbackQuery(TelegramModel):
    id: str
    from_user: User = Field(alias="from")
    message: Optional[Message] = None
    data: Optional[str] = None


class Update(TelegramModel):
    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None


class InlineKeyboardButton(TelegramModel):
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


class InlineKeyboardMarkup(TelegramModel):
    inline_keyboard: List[List[InlineKeyboardButton]] = Field(default_factory=list)

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)
