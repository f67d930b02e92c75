"""
app/flow/handlers/language.py

Handles: STEP 1 - Presentation language

- Parses lang:<code> callbacks
- Advances to the topic prompt
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from utils.validation_utils import parse_language
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_language_selection(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id, state="awaiting_language"):
        language = parse_language(message.callback_data)
        state = flow.set_language(message.user_id, language) if language else None
        if state is None:
            logger.warning(f"Language selection rejected: {message.callback_data}")
            return rejected(flow, message.user_id)

        logger.info(f"Language selected: {language}")
        return step_response(state)
