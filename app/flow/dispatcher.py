"""
app/flow/dispatcher.py

Purpose: Central update dispatcher

- Receives normalized updates from the webhook
- Registers/refreshes the Telegram user on every update
- Routes commands, menu buttons, contacts and inline callbacks
- Routes free text by the active wizard step
- Sends responses via the Telegram Bot API and tracks the active prompt
"""

from typing import Dict, Any, Awaitable, Callable

from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.services.telegram_service import telegram_service
from app.services.user_service import register_user
from app.flow.states import FlowStep
from app.flow.handlers.brief import handle_brief_answer
from app.flow.handlers.common import respond
from app.flow.handlers.generation import handle_image_preference
from app.flow.handlers.language import handle_language_selection
from app.flow.handlers.menu import handle_cancel, handle_help, handle_new_presentation, handle_unknown
from app.flow.handlers.navigation import handle_back
from app.flow.handlers.page_count import handle_page_count_selection
from app.flow.handlers.profile import handle_profile
from app.flow.handlers.registration import handle_contact, handle_start
from app.flow.handlers.template import handle_template_selection
from app.flow.handlers.topic import handle_topic_input
from utils.constants import (
    BUTTON_NEW_PRESENTATION,
    CALLBACK_BACK,
    CALLBACK_IMAGES_NO,
    CALLBACK_IMAGES_YES,
    CALLBACK_LANGUAGE_PREFIX,
    CALLBACK_PAGES_PREFIX,
    CALLBACK_TEMPLATE_PREFIX,
    CANCEL_COMMANDS,
    FLOW_OUT_OF_ORDER_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    HELP_COMMANDS,
    START_COMMANDS,
)
from utils.telegram_utils import create_text_message
from utils.validation_utils import is_profile_trigger, strip_bot_mention
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)

Handler = Callable[[UnifiedMessage, PresentationFlow], Awaitable[Dict[str, Any]]]


async def handle_out_of_order(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    return respond(create_text_message(FLOW_OUT_OF_ORDER_MESSAGE), status="error")


def route_callback(data: str) -> Handler:
    if data.startswith(CALLBACK_LANGUAGE_PREFIX):
        return handle_language_selection
    if data.startswith(CALLBACK_TEMPLATE_PREFIX):
        return handle_template_selection
    if data.startswith(CALLBACK_PAGES_PREFIX):
        return handle_page_count_selection
    if data in (CALLBACK_IMAGES_YES, CALLBACK_IMAGES_NO):
        return handle_image_preference
    if data == CALLBACK_BACK:
        return handle_back
    return handle_unknown


def route_text(message: UnifiedMessage, flow: PresentationFlow) -> Handler:
    """
    Commands and menu buttons win over the wizard; free text goes to the
    active step.
    """
    text = (message.text or "").strip()
    command = strip_bot_mention(text.lower())

    if command in START_COMMANDS:
        return handle_start
    if command in HELP_COMMANDS:
        return handle_help
    if command in CANCEL_COMMANDS:
        return handle_cancel
    if is_profile_trigger(text):
        return handle_profile
    if text == BUTTON_NEW_PRESENTATION:
        return handle_new_presentation

    state = flow.get_flow(message.user_id)
    if state is None:
        return handle_unknown
    if state.step == FlowStep.AWAITING_TOPIC:
        return handle_topic_input
    if state.step == FlowStep.AWAITING_BRIEF_ANSWER:
        return handle_brief_answer

    # Button-driven steps do not accept free text
    return handle_out_of_order


def route_update(message: UnifiedMessage, flow: PresentationFlow) -> Handler:
    if message.kind == "contact":
        return handle_contact
    if message.kind == "callback":
        return route_callback(message.callback_data or "")
    return route_text(message, flow)


async def dispatch_update(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Main dispatcher for incoming Telegram updates

    Args:
        message: Normalized update
        flow: Wizard state machine shared by the process

    Returns:
        Handler response dict
    """
    with LogContext(user_id=message.user_id):
        logger.info(f"📨 Dispatching {message.kind} update from chat {message.chat_id}")

        try:
            await register_user(message.sender)

            if message.kind == "callback" and message.callback_query_id:
                await telegram_service.answer_callback_query(message.callback_query_id)

            handler = route_update(message, flow)
            logger.info(f"📞 Calling handler: {handler.__name__}")

            response = await handler(message, flow)
            await send_response(message, flow, response)
            return response

        except Exception as e:
            logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
            await telegram_service.send_message(message.chat_id, GENERIC_ERROR_MESSAGE, parse_mode=None)
            return {"status": "error", "error": str(e)}


async def send_response(message: UnifiedMessage, flow: PresentationFlow, response: Dict[str, Any]):
    """
    Deletes stale prompts, sends the handler messages and remembers the
    last one as the active prompt when asked to.
    """
    chat_id = message.chat_id
    stale = list(response.get("delete_message_ids") or [])

    if response.get("retract_prompt"):
        prompt_id = flow.take_prompt(message.user_id)
        if prompt_id:
            stale.append(prompt_id)

    for message_id in stale:
        result = await telegram_service.delete_message(chat_id, message_id)
        if not result.get("success"):
            logger.debug(f"Could not delete message {message_id}: {result.get('error')}")

    last_message_id = None
    for payload in response.get("messages") or []:
        result = await telegram_service.send_payload(chat_id, payload)
        if result.get("success"):
            last_message_id = result.get("message_id")
        else:
            logger.error(f"❌ Failed to send message: {result.get('error')}")

    if response.get("track_prompt") and last_message_id:
        flow.attach_prompt(message.user_id, last_message_id)
