"""
app/flow/handlers/profile.py

Handles: Profile screen

- Name, handle, phone
- Usage in the rolling window, remaining generations
- Next available time (UTC) when the limit is reached
"""

from typing import Dict, Any

from app.flow.handlers.common import format_next_available, respond, window_hours
from app.flow.handlers.registration import registration_required
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.services.user_service import get_profile_status
from utils.constants import (
    NOT_PROVIDED,
    PROFILE_FAILED_MESSAGE,
    PROFILE_MESSAGE,
    PROFILE_NEXT_AVAILABLE_LINE,
)
from utils.telegram_utils import create_text_message, main_menu_keyboard
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_profile(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id):
        try:
            status = await get_profile_status(message.user_id)
        except Exception as e:
            logger.error(f"Failed to load profile: {e}", exc_info=True)
            return respond(create_text_message(PROFILE_FAILED_MESSAGE), status="error")

        if status is None or not status.phone_number:
            return registration_required()

        text = PROFILE_MESSAGE.format(
            first_name=status.first_name or NOT_PROVIDED,
            username=f"@{status.username}" if status.username else NOT_PROVIDED,
            phone=status.phone_number,
            window_hours=window_hours(),
            used=status.used_in_window,
            limit=status.limit,
            remaining=status.remaining,
        )

        next_available = format_next_available(status.next_available_at)
        if next_available:
            text += "\n" + PROFILE_NEXT_AVAILABLE_LINE.format(next_available=next_available)

        return respond(create_text_message(text, reply_markup=main_menu_keyboard(), parse_mode=None))
