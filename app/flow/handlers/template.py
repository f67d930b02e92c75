"""
app/flow/handlers/template.py

Handles: STEP 4 - Template selection

- Parses template:<n> callbacks (1-4)
- Advances to the page count prompt
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from utils.validation_utils import parse_template_id
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_template_selection(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id, state="awaiting_template"):
        template_id = parse_template_id(message.callback_data)
        state = flow.set_template(message.user_id, template_id) if template_id else None
        if state is None:
            logger.warning(f"Template selection rejected: {message.callback_data}")
            return rejected(flow, message.user_id)

        logger.info(f"Template selected: {template_id}")
        return step_response(state)
