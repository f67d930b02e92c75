"""
app/flow/handlers/common.py

Shared response builders for the flow handlers.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from app.flow.prompts import prompt_for
from app.services.flow_service import FlowState, PresentationFlow
from app.services.quota_service import get_quota_ledger
from utils.constants import FLOW_NOT_FOUND_MESSAGE, FLOW_OUT_OF_ORDER_MESSAGE
from utils.telegram_utils import create_text_message
from utils.time_utils import format_utc


def respond(
    *messages: Dict[str, Any],
    status: str = "success",
    retract_prompt: bool = False,
    track_prompt: bool = False
) -> Dict[str, Any]:
    """
    Handler response consumed by the dispatcher.

    retract_prompt: delete the previously tracked prompt message first
    track_prompt: remember the last sent message as the new prompt
    """
    return {
        "status": status,
        "messages": [m for m in messages if m],
        "retract_prompt": retract_prompt,
        "track_prompt": track_prompt,
    }


def step_response(state: FlowState, *before: Dict[str, Any]) -> Dict[str, Any]:
    """Moves the conversation to the state's step prompt."""
    return respond(*before, prompt_for(state), retract_prompt=True, track_prompt=True)


def rejected(flow: PresentationFlow, user_id: str) -> Dict[str, Any]:
    """Response for a transition the flow refused."""
    if flow.get_flow(user_id) is None:
        return respond(create_text_message(FLOW_NOT_FOUND_MESSAGE), status="error")
    return respond(create_text_message(FLOW_OUT_OF_ORDER_MESSAGE), status="error")


def window_hours() -> int:
    return int(get_quota_ledger().window.total_seconds() // 3600)


def format_next_available(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return f"{format_utc(value)} UTC"


def drop_flow(flow: PresentationFlow, user_id: str, response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Clears the wizard and schedules deletion of its prompt message.
    """
    prompt_id = flow.take_prompt(user_id)
    flow.clear_flow(user_id)
    if prompt_id:
        response.setdefault("delete_message_ids", []).append(prompt_id)
    return response
