"""
app/flow/handlers/menu.py

Handles: Main menu actions

- /help
- /cancel (clears the wizard)
- "New presentation": registration + availability check, then language prompt
- Anything the bot does not understand
"""

from typing import Dict, Any

from app.flow.handlers.common import drop_flow, format_next_available, respond, step_response, window_hours
from app.flow.handlers.registration import registration_required
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.services.quota_service import get_quota_ledger
from app.services.user_service import get_user_by_telegram_id, is_registration_completed
from utils.constants import (
    FLOW_CANCELLED_MESSAGE,
    HELP_MESSAGE,
    LIMIT_NEXT_AVAILABLE_UNKNOWN,
    LIMIT_REACHED_MESSAGE,
    WELCOME_MESSAGE,
)
from utils.telegram_utils import create_text_message, main_menu_keyboard
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


def limit_reached_message(used: int, limit: int, next_available_at) -> Dict[str, Any]:
    hours = window_hours()
    next_available = format_next_available(next_available_at) or LIMIT_NEXT_AVAILABLE_UNKNOWN.format(
        window_hours=hours
    )
    return create_text_message(
        LIMIT_REACHED_MESSAGE.format(
            used=used,
            limit=limit,
            window_hours=hours,
            next_available=next_available,
        ),
        reply_markup=main_menu_keyboard(),
        parse_mode=None,
    )


async def handle_help(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    return respond(create_text_message(
        HELP_MESSAGE.format(limit=get_quota_ledger().limit, window_hours=window_hours()),
        parse_mode=None,
    ))


async def handle_cancel(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Handles /cancel. The prompt is retracted before the flow is dropped.
    """
    with LogContext(user_id=message.user_id):
        logger.info("Wizard cancelled")
        return drop_flow(
            flow,
            message.user_id,
            respond(create_text_message(FLOW_CANCELLED_MESSAGE, reply_markup=main_menu_keyboard())),
        )


async def handle_new_presentation(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Starts the wizard for a registered user with quota left.

    Returns:
        Response dict with the language prompt, the registration prompt
        or the limit message
    """
    with LogContext(user_id=message.user_id, state="awaiting_language"):
        user = await get_user_by_telegram_id(message.user_id)
        if not is_registration_completed(user):
            return registration_required()

        quota = await get_quota_ledger().check_availability(user["_id"])
        if not quota.allowed:
            logger.info(f"New presentation refused: {quota.used_in_window}/{quota.limit} used")
            return drop_flow(
                flow,
                message.user_id,
                respond(
                    limit_reached_message(quota.used_in_window, quota.limit, quota.next_available_at),
                    status="blocked",
                ),
            )

        old_prompt = flow.take_prompt(message.user_id)
        state = flow.start_flow(message.user_id)
        logger.info("Wizard started")

        response = step_response(state)
        if old_prompt:
            response["delete_message_ids"] = [old_prompt]
        return response


async def handle_unknown(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    return respond(create_text_message(WELCOME_MESSAGE, reply_markup=main_menu_keyboard()))
