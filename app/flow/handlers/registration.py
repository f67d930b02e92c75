"""
app/flow/handlers/registration.py

Handles: Entry and registration

- /start: clears any wizard, shows the main menu or asks for the phone number
- Contact share: completes registration with the sender's own number
"""

from typing import Dict, Any

from app.flow.handlers.common import drop_flow, respond
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.services.user_service import (
    complete_registration,
    get_user_by_telegram_id,
    is_registration_completed,
)
from utils.constants import (
    REGISTRATION_COMPLETED,
    REGISTRATION_FOREIGN_CONTACT,
    REGISTRATION_PROMPT,
    WELCOME_MESSAGE,
)
from utils.telegram_utils import create_text_message, main_menu_keyboard, registration_keyboard
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


def registration_required() -> Dict[str, Any]:
    return respond(create_text_message(REGISTRATION_PROMPT, reply_markup=registration_keyboard()))


async def handle_start(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Handles /start.

    Args:
        message: Normalized update
        flow: Wizard state machine

    Returns:
        Response dict with the menu or the registration prompt
    """
    with LogContext(user_id=message.user_id):
        user = await get_user_by_telegram_id(message.user_id)
        if not is_registration_completed(user):
            logger.info("Unregistered user started the bot")
            return drop_flow(flow, message.user_id, registration_required())

        return drop_flow(
            flow,
            message.user_id,
            respond(create_text_message(WELCOME_MESSAGE, reply_markup=main_menu_keyboard())),
        )


async def handle_contact(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Handles a shared contact. Only the sender's own contact is accepted.
    """
    with LogContext(user_id=message.user_id):
        if not message.contact_phone or message.contact_user_id != message.sender.id:
            logger.warning("Foreign or empty contact shared")
            return respond(
                create_text_message(REGISTRATION_FOREIGN_CONTACT, reply_markup=registration_keyboard()),
                status="error",
            )

        user = await complete_registration(message.user_id, message.contact_phone)
        if not user:
            return registration_required()

        return respond(
            create_text_message(REGISTRATION_COMPLETED, reply_markup=main_menu_keyboard())
        )
