"""
app/flow/handlers/page_count.py

Handles: STEP 5 - Page count

- Parses pages:<n> callbacks (4, 6 or 8)
- Advances to the image preference prompt
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from utils.validation_utils import parse_page_count
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_page_count_selection(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id, state="awaiting_page_count"):
        page_count = parse_page_count(message.callback_data)
        state = flow.set_page_count(message.user_id, page_count) if page_count else None
        if state is None:
            logger.warning(f"Page count rejected: {message.callback_data}")
            return rejected(flow, message.user_id)

        logger.info(f"Page count selected: {page_count}")
        return step_response(state)
