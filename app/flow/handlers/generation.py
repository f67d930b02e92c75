"""
app/flow/handlers/generation.py

Handles: STEP 6 - Image preference and generation

- Terminal wizard transition (images yes/no)
- Runs the quota-gated pipeline and delivers the PDF
- Always removes temp files and clears the wizard afterwards
"""

from typing import Dict, Any

from app.core.exceptions import GenerationFailedError
from app.flow.handlers.common import rejected, respond, window_hours
from app.flow.handlers.menu import limit_reached_message
from app.flow.handlers.registration import registration_required
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.services.generation_service import get_generation_service
from app.services.telegram_service import telegram_service
from app.services.user_service import get_user_by_telegram_id, is_registration_completed
from utils.constants import (
    CALLBACK_IMAGES_NO,
    CALLBACK_IMAGES_YES,
    GENERATION_AGAIN_MESSAGE,
    GENERATION_DONE_CAPTION,
    GENERATION_FAILED_MESSAGE,
    GENERATION_STARTED_MESSAGE,
)
from utils.telegram_utils import create_document_message, create_text_message, main_menu_keyboard
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_image_preference(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Handles the images yes/no callback and runs the generation.

    Args:
        message: Callback update
        flow: Wizard state machine

    Returns:
        Response dict with the closing message
    """
    user_id = message.user_id

    with LogContext(user_id=user_id, state="generating"):
        if message.callback_data not in (CALLBACK_IMAGES_YES, CALLBACK_IMAGES_NO):
            return rejected(flow, user_id)

        state = flow.set_image_preference(user_id, message.callback_data == CALLBACK_IMAGES_YES)
        if state is None:
            return rejected(flow, user_id)

        prompt_id = flow.take_prompt(user_id)
        if prompt_id:
            await telegram_service.delete_message(message.chat_id, prompt_id)

        service = get_generation_service()
        outcome = None
        try:
            user = await get_user_by_telegram_id(user_id)
            if not is_registration_completed(user):
                return registration_required()

            await telegram_service.send_message(
                message.chat_id,
                GENERATION_STARTED_MESSAGE.format(page_count=state.page_count),
            )

            outcome = await service.run_generation(user["_id"], state)

            if outcome.blocked:
                quota = outcome.reservation
                return respond(
                    limit_reached_message(quota.used_in_window, quota.limit, quota.next_available_at),
                    status="blocked",
                )

            result = await telegram_service.send_payload(
                message.chat_id,
                create_document_message(
                    str(outcome.document.pdf_path),
                    outcome.document.file_name,
                    caption=GENERATION_DONE_CAPTION.format(
                        window_hours=window_hours(),
                        used=outcome.reservation.used_in_window,
                        limit=outcome.reservation.limit,
                    ),
                    reply_markup=main_menu_keyboard(),
                ),
            )
            if not result.get("success"):
                logger.error(f"Document delivery failed: {result.get('error')}")
                return respond(
                    create_text_message(GENERATION_FAILED_MESSAGE, reply_markup=main_menu_keyboard()),
                    status="error",
                )

            return respond(create_text_message(GENERATION_AGAIN_MESSAGE, reply_markup=main_menu_keyboard()))

        except GenerationFailedError as e:
            logger.error(f"Generation failed: {e.message}")
            return respond(
                create_text_message(GENERATION_FAILED_MESSAGE, reply_markup=main_menu_keyboard()),
                status="error",
            )

        finally:
            if outcome is not None:
                service.cleanup(outcome)
            flow.clear_flow(user_id)
