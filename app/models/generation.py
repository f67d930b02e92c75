"""
app/models/generation.py

Purpose: Generation reservation model

- One document per reservation attempt
- Status lifecycle pending -> completed | failed
- Quota results returned by the ledger
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class GenerationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not GenerationStatus.PENDING


class QuotaStatus(BaseModel):
    """
    Snapshot of a user's rolling-window usage.
    """
    allowed: bool
    used_in_window: int
    remaining: int
    limit: int
    next_available_at: Optional[datetime] = None


class Reservation(QuotaStatus):
    """
    Result of a reservation attempt. ``reservation_id`` is set only when allowed.
    """
    reservation_id: Optional[str] = None
