"""
app/flow/handlers/navigation.py

Handles: Back button

- Returns to the previous wizard step and re-asks its question
"""

from typing import Dict, Any

from app.flow.handlers.common import rejected, step_response
from app.schemas.telegram import UnifiedMessage
from app.services.flow_service import PresentationFlow
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)


async def handle_back(message: UnifiedMessage, flow: PresentationFlow) -> Dict[str, Any]:
    with LogContext(user_id=message.user_id):
        state = flow.go_back(message.user_id)
        if state is None:
            return rejected(flow, message.user_id)

        logger.info(f"Went back to {state.step.value}")
        return step_response(state)
