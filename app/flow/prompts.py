"""
app/flow/prompts.py

Purpose: Step prompts

- Maps each wizard step to the message that asks for its input
- Shared by forward handlers and back navigation
"""

from typing import Any, Dict, Optional

from app.flow.states import FlowStep
from app.services.flow_service import FlowState
from app.services.render_service import get_render_service
from utils.constants import (
    ASK_IMAGES_MESSAGE,
    ASK_LANGUAGE_MESSAGE,
    ASK_PAGE_COUNT_MESSAGE,
    ASK_TEMPLATE_MESSAGE,
    ASK_TEMPLATE_NO_PREVIEW_MESSAGE,
    ASK_TOPIC_MESSAGE,
    BRIEF_QUESTIONS,
)
from utils.telegram_utils import (
    back_keyboard,
    create_photo_message,
    create_text_message,
    image_preference_keyboard,
    language_keyboard,
    page_count_keyboard,
    template_keyboard,
)


def template_prompt() -> Dict[str, Any]:
    renderer = get_render_service()
    if renderer.has_template_preview():
        return create_photo_message(
            str(renderer.template_preview_path),
            caption=ASK_TEMPLATE_MESSAGE,
            reply_markup=template_keyboard(),
        )
    return create_text_message(ASK_TEMPLATE_NO_PREVIEW_MESSAGE, reply_markup=template_keyboard())


def prompt_for(state: FlowState) -> Optional[Dict[str, Any]]:
    """
    Returns the prompt payload for the state's current step.
    """
    step = state.step

    if step == FlowStep.AWAITING_LANGUAGE:
        return create_text_message(ASK_LANGUAGE_MESSAGE, reply_markup=language_keyboard())
    if step == FlowStep.AWAITING_TOPIC:
        return create_text_message(ASK_TOPIC_MESSAGE, reply_markup=back_keyboard())
    if step == FlowStep.AWAITING_BRIEF_ANSWER:
        field_name = state.next_brief_field
        if field_name is None:
            return None
        return create_text_message(BRIEF_QUESTIONS[field_name], reply_markup=back_keyboard())
    if step == FlowStep.AWAITING_TEMPLATE:
        return template_prompt()
    if step == FlowStep.AWAITING_PAGE_COUNT:
        return create_text_message(ASK_PAGE_COUNT_MESSAGE, reply_markup=page_count_keyboard())
    if step == FlowStep.AWAITING_IMAGE_PREFERENCE:
        return create_text_message(ASK_IMAGES_MESSAGE, reply_markup=image_preference_keyboard())

    return None
