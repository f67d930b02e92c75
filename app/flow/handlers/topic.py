"""
app/flow/handlers/topic.py

Handles: STEP 2 - Topic

- Validates the free-form topic (plain text, not a command)
- Starts the brief questionnaire
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, respond, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from utils.constants import INVALID_TOPIC_MESSAGE, MAX_TOPIC_LENGTH
from utils.telegram_utils import create_text_message
from utils.validation_utils import sanitize_input, validate_topic
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_topic_input(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    """
    Handles topic input.

    Args:
        message: Text update
        flow: Wizard state machine

    Returns:
        Response dict with the first brief question or a re-prompt
    """
    with LogContext(user_id=message.user_id, state="awaiting_topic"):
        if not validate_topic(message.text):
            logger.info("Invalid topic input")
            return respond(create_text_message(INVALID_TOPIC_MESSAGE), status="error")

        topic = sanitize_input(message.text, max_length=MAX_TOPIC_LENGTH)
        state = flow.set_topic(message.user_id, topic)
        if state is None:
            return rejected(flow, message.user_id)

        logger.info("Topic accepted")
        return step_response(state)
