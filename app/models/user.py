"""
app/models/user.py

Purpose: User document model

- Telegram ID and display data
- Phone number marks a completed registration
- Profile status shown by the profile command
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TelegramProfile(BaseModel):
    """
    Sender identity as delivered with every update.
    """
    id: int
    first_name: str = ""
    username: Optional[str] = None


class ProfileStatus(BaseModel):
    first_name: Optional[str] = None
    username: Optional[str] = None
    phone_number: Optional[str] = None
    used_in_window: int
    remaining: int
    limit: int
    next_available_at: Optional[datetime] = None
