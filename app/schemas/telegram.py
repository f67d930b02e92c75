"""
app/schemas/telegram.py

Purpose: Telegram webhook payload schemas and parsers

- Normalizes text, contact and callback updates into UnifiedMessage
- Ignores update types the bot does not handle
- Ensures predictable request handling
"""

from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

from app.models.user import TelegramProfile
from utils.time_utils import utc_now


class UnifiedMessage(BaseModel):
    """
    Normalized inbound event for internal processing
    """
    kind: Literal["text", "contact", "callback"] = Field(..., description="Event type")
    chat_id: int = Field(..., description="Chat to reply to")
    sender: TelegramProfile = Field(..., description="Who sent the update")
    update_id: Optional[int] = None
    message_id: Optional[int] = None
    timestamp: datetime = Field(default_factory=utc_now)

    text: Optional[str] = None

    # Contact share
    contact_phone: Optional[str] = None
    contact_user_id: Optional[int] = None

    # Inline button press
    callback_data: Optional[str] = None
    callback_query_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "text",
                "chat_id": 123456789,
                "sender": {"id": 123456789, "first_name": "Ali", "username": "ali"},
                "text": "/start",
                "message_id": 42
            }
        }

    @property
    def user_id(self) -> str:
        return str(self.sender.id)


def _profile(raw: dict) -> TelegramProfile:
    return TelegramProfile(
        id=raw["id"],
        first_name=raw.get("first_name") or "",
        username=raw.get("username"),
    )


def parse_update(update: dict) -> Optional[UnifiedMessage]:
    """
    Parses a Telegram Update object

    Telegram format (JSON):
    {
        "update_id": 1,
        "message": {
            "message_id": 42,
            "from": {"id": 123, "first_name": "Ali"},
            "chat": {"id": 123},
            "text": "/start" | "contact": {"phone_number": "+998...", "user_id": 123}
        }
    }
    or
    {
        "update_id": 2,
        "callback_query": {
            "id": "abc",
            "from": {...},
            "data": "lang:en",
            "message": {"message_id": 43, "chat": {"id": 123}}
        }
    }

    Returns:
        UnifiedMessage, or None for unsupported updates
    """
    update_id = update.get("update_id")

    callback = update.get("callback_query")
    if callback and callback.get("from"):
        message = callback.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id") or callback["from"]["id"]
        return UnifiedMessage(
            kind="callback",
            chat_id=chat_id,
            sender=_profile(callback["from"]),
            update_id=update_id,
            message_id=message.get("message_id"),
            callback_data=callback.get("data"),
            callback_query_id=callback.get("id"),
        )

    message = update.get("message")
    if not message or not message.get("from") or not message.get("chat"):
        return None

    common = {
        "chat_id": message["chat"]["id"],
        "sender": _profile(message["from"]),
        "update_id": update_id,
        "message_id": message.get("message_id"),
    }

    contact = message.get("contact")
    if contact:
        return UnifiedMessage(
            kind="contact",
            contact_phone=contact.get("phone_number"),
            contact_user_id=contact.get("user_id"),
            **common
        )

    if isinstance(message.get("text"), str):
        return UnifiedMessage(kind="text", text=message["text"], **common)

    return None
