"""
app/flow/handlers/brief.py

Handles: STEP 3 - Presentation brief

- Asks audience, presenter role, goal and tone one by one
- Moves to template selection once all four answers are present
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, respond, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from utils.constants import INVALID_BRIEF_ANSWER_MESSAGE, MAX_BRIEF_ANSWER_LENGTH
from utils.telegram_utils import create_text_message
from utils.validation_utils import sanitize_input, validate_brief_answer
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_brief_answer(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id, state="awaiting_brief_answer"):
        current = flow.get_flow(message.user_id)
        field_name = current.next_brief_field if current else None
        if field_name is None:
            return rejected(flow, message.user_id)

        if not validate_brief_answer(message.text):
            return respond(create_text_message(INVALID_BRIEF_ANSWER_MESSAGE), status="error")

        answer = sanitize_input(message.text, max_length=MAX_BRIEF_ANSWER_LENGTH)
        state = flow.set_brief_answer(message.user_id, field_name, answer)
        if state is None:
            return rejected(flow, message.user_id)

        logger.debug(f"Brief answer stored: {field_name}")

        if state.brief_complete:
            state = flow.complete_brief_answers(message.user_id)
            if state is None:
                return rejected(flow, message.user_id)
            logger.info("Brief completed")

        return step_response(state)
