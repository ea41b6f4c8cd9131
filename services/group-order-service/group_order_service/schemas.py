from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .events import InboundEvent


class HealthResponse(BaseModel):
    status: Literal["ok"]


class WebhookAck(BaseModel):
    ok: bool = True


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_: TelegramUser = Field(..., alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None

    def to_event(self) -> Optional[InboundEvent]:
        """The event this update carries, or None for update kinds the bot ignores."""
        if self.callback_query is not None:
            query = self.callback_query
            chat_id = query.message.chat.id if query.message is not None else query.from_.id
            return InboundEvent(
                sender_id=query.from_.id,
                chat_id=chat_id,
                callback_data=query.data or "",
                callback_id=query.id,
                display_name=query.from_.first_name,
            )
        if self.message is not None and self.message.text is not None:
            message = self.message
            sender = message.from_.id if message.from_ is not None else message.chat.id
            return InboundEvent(
                sender_id=sender,
                chat_id=message.chat.id,
                text=message.text,
                display_name=message.from_.first_name if message.from_ is not None else None,
            )
        return None
