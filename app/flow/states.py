"""
app/flow/states.py

Purpose: Defines all wizard steps

- Enum for each step of the presentation wizard
- Single source of truth for flow stages
- Forward and backward transition tables
- FlowState field collected at each step
"""

from enum import Enum
from typing import Dict, List, Optional


class FlowStep(str, Enum):
    """
    Defines all steps of the presentation wizard.
    Each step names what the bot is waiting for next.
    """

    AWAITING_LANGUAGE = "awaiting_language"
    AWAITING_TOPIC = "awaiting_topic"
    AWAITING_BRIEF_ANSWER = "awaiting_brief_answer"
    AWAITING_TEMPLATE = "awaiting_template"
    AWAITING_PAGE_COUNT = "awaiting_page_count"
    AWAITING_IMAGE_PREFERENCE = "awaiting_image_preference"

    # Terminal, consumed immediately by the generation pipeline
    GENERATING = "generating"


# FlowState field filled at each step
STEP_FIELDS: Dict[FlowStep, str] = {
    FlowStep.AWAITING_LANGUAGE: "language",
    FlowStep.AWAITING_TOPIC: "topic",
    FlowStep.AWAITING_BRIEF_ANSWER: "brief_answers",
    FlowStep.AWAITING_TEMPLATE: "template_id",
    FlowStep.AWAITING_PAGE_COUNT: "page_count",
    FlowStep.AWAITING_IMAGE_PREFERENCE: "use_images",
}


# Forward transitions - a step may repeat itself only while collecting brief answers
STATE_TRANSITIONS: Dict[FlowStep, List[FlowStep]] = {
    FlowStep.AWAITING_LANGUAGE: [FlowStep.AWAITING_TOPIC],
    FlowStep.AWAITING_TOPIC: [FlowStep.AWAITING_BRIEF_ANSWER],
    FlowStep.AWAITING_BRIEF_ANSWER: [
        FlowStep.AWAITING_BRIEF_ANSWER,
        FlowStep.AWAITING_TEMPLATE,
    ],
    FlowStep.AWAITING_TEMPLATE: [FlowStep.AWAITING_PAGE_COUNT],
    FlowStep.AWAITING_PAGE_COUNT: [FlowStep.AWAITING_IMAGE_PREFERENCE],
    FlowStep.AWAITING_IMAGE_PREFERENCE: [FlowStep.GENERATING],
    FlowStep.GENERATING: [],
}


BACK_TRANSITIONS: Dict[FlowStep, FlowStep] = {
    FlowStep.AWAITING_TOPIC: FlowStep.AWAITING_LANGUAGE,
    FlowStep.AWAITING_BRIEF_ANSWER: FlowStep.AWAITING_TOPIC,
    FlowStep.AWAITING_TEMPLATE: FlowStep.AWAITING_BRIEF_ANSWER,
    FlowStep.AWAITING_PAGE_COUNT: FlowStep.AWAITING_TEMPLATE,
    FlowStep.AWAITING_IMAGE_PREFERENCE: FlowStep.AWAITING_PAGE_COUNT,
}


# Wizard order, used to discard fields collected at or after a step
STEP_ORDER: List[FlowStep] = [
    FlowStep.AWAITING_LANGUAGE,
    FlowStep.AWAITING_TOPIC,
    FlowStep.AWAITING_BRIEF_ANSWER,
    FlowStep.AWAITING_TEMPLATE,
    FlowStep.AWAITING_PAGE_COUNT,
    FlowStep.AWAITING_IMAGE_PREFERENCE,
]


def is_valid_transition(from_step: FlowStep, to_step: FlowStep) -> bool:
    """
    Checks if a forward transition is valid.

    Args:
        from_step: Current step
        to_step: Target step

    Returns:
        True if transition is allowed, False otherwise
    """
    return to_step in STATE_TRANSITIONS.get(from_step, [])


def get_previous_step(step: FlowStep) -> Optional[FlowStep]:
    return BACK_TRANSITIONS.get(step)


def fields_from(step: FlowStep) -> List[str]:
    """
    FlowState fields collected at ``step`` and every later step.
    """
    if step not in STEP_ORDER:
        return []
    index = STEP_ORDER.index(step)
    return [STEP_FIELDS[s] for s in STEP_ORDER[index:]]
