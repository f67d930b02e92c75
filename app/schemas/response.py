"""
app/schemas/response.py

Purpose: HTTP response bodies

- Error envelope rendered by the exception handlers
- Webhook acknowledgement
"""

from pydantic import BaseModel
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class WebhookAck(BaseModel):
    """
    Body returned for every accepted Telegram update.
    """
    ok: bool = True
