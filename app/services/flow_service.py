"""
app/services/flow_service.py

Purpose: Presentation wizard state management

- In-memory FlowState per user, held in an explicit FlowStore
- Guarded forward transitions (exact step + upstream fields)
- Backward navigation that rebuilds the previous step
- Prompt-message bookkeeping for later retraction

Wizard state is not persisted: a restart loses in-progress wizards,
and no generation record exists before the terminal step.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from app.core.logging import get_logger
from app.flow.states import FlowStep, fields_from, get_previous_step, is_valid_transition
from utils.constants import BRIEF_FIELDS, PAGE_COUNT_OPTIONS, SUPPORTED_LANGUAGES, TEMPLATE_IDS

logger = get_logger(__name__)


@dataclass(frozen=True)
class FlowState:
    step: FlowStep
    language: Optional[str] = None
    topic: Optional[str] = None
    brief_answers: Dict[str, str] = field(default_factory=dict)
    template_id: Optional[int] = None
    page_count: Optional[int] = None
    use_images: Optional[bool] = None
    prompt_message_id: Optional[int] = None

    @property
    def brief_complete(self) -> bool:
        return all((self.brief_answers.get(name) or "").strip() for name in BRIEF_FIELDS)

    @property
    def next_brief_field(self) -> Optional[str]:
        for name in BRIEF_FIELDS:
            if not (self.brief_answers.get(name) or "").strip():
                return name
        return None

    def to_metadata(self) -> Dict[str, Any]:
        """
        Generation parameters stored on the reservation record.
        """
        return {
            "prompt": self.topic,
            "language": self.language,
            "template_id": self.template_id,
            "page_count": self.page_count,
            "use_images": bool(self.use_images),
            "brief_answers": dict(self.brief_answers),
        }


class FlowStore:
    """
    Keyed store of wizard states. Every operation is a single get/set/delete.
    """

    def __init__(self):
        self._states: Dict[str, FlowState] = {}

    def get(self, user_id: str) -> Optional[FlowState]:
        return self._states.get(str(user_id))

    def set(self, user_id: str, state: FlowState) -> None:
        self._states[str(user_id)] = state

    def delete(self, user_id: str) -> bool:
        return self._states.pop(str(user_id), None) is not None

    def __contains__(self, user_id) -> bool:
        return str(user_id) in self._states

    def __len__(self) -> int:
        return len(self._states)


class PresentationFlow:
    """
    Wizard transitions over a FlowStore.

    Every ``set_*`` returns the new state, or None when the transition is
    rejected (no state, wrong step, missing upstream field, invalid value).
    A rejected transition leaves the stored state untouched.
    """

    def __init__(self, store: FlowStore):
        self.store = store

    def _advance(self, user_id: str, current: FlowState, **changes) -> FlowState:
        new_state = replace(current, **changes)
        if new_state.step != current.step and not is_valid_transition(current.step, new_state.step):
            raise ValueError(f"Invalid step transition: {current.step} -> {new_state.step}")
        self.store.set(user_id, new_state)
        logger.debug(
            f"Flow step: {current.step.value} -> {new_state.step.value}",
            extra={"user_id": str(user_id), "state": new_state.step.value}
        )
        return new_state

    def _at(self, user_id: str, step: FlowStep) -> Optional[FlowState]:
        state = self.store.get(user_id)
        if state is None or state.step != step:
            return None
        return state

    def start_flow(self, user_id: str) -> FlowState:
        """Starts (or restarts) the wizard at the language step."""
        state = FlowState(step=FlowStep.AWAITING_LANGUAGE)
        self.store.set(user_id, state)
        return state

    def get_flow(self, user_id: str) -> Optional[FlowState]:
        return self.store.get(user_id)

    def set_language(self, user_id: str, language: str) -> Optional[FlowState]:
        state = self._at(user_id, FlowStep.AWAITING_LANGUAGE)
        if state is None or language not in SUPPORTED_LANGUAGES:
            return None
        return self._advance(user_id, state, step=FlowStep.AWAITING_TOPIC, language=language)

    def set_topic(self, user_id: str, topic: str) -> Optional[FlowState]:
        state = self._at(user_id, FlowStep.AWAITING_TOPIC)
        topic = (topic or "").strip()
        if state is None or not state.language or not topic:
            return None
        return self._advance(
            user_id,
            state,
            step=FlowStep.AWAITING_BRIEF_ANSWER,
            topic=topic,
            brief_answers={},
        )

    def set_brief_answer(self, user_id: str, field_name: str, value: str) -> Optional[FlowState]:
        """
        Stores one brief answer; the step stays the same until completed.
        """
        state = self._at(user_id, FlowStep.AWAITING_BRIEF_ANSWER)
        value = (value or "").strip()
        if (
            state is None
            or not state.language
            or not state.topic
            or field_name not in BRIEF_FIELDS
            or not value
        ):
            return None

        answers = dict(state.brief_answers)
        answers[field_name] = value
        return self._advance(user_id, state, brief_answers=answers)

    def complete_brief_answers(self, user_id: str) -> Optional[FlowState]:
        state = self._at(user_id, FlowStep.AWAITING_BRIEF_ANSWER)
        if state is None or not state.brief_complete:
            return None
        return self._advance(user_id, state, step=FlowStep.AWAITING_TEMPLATE)

    def set_template(self, user_id: str, template_id: int) -> Optional[FlowState]:
        state = self._at(user_id, FlowStep.AWAITING_TEMPLATE)
        if (
            state is None
            or not state.language
            or not state.topic
            or not state.brief_complete
            or template_id not in TEMPLATE_IDS
        ):
            return None
        return self._advance(
            user_id, state, step=FlowStep.AWAITING_PAGE_COUNT, template_id=template_id
        )

    def set_page_count(self, user_id: str, page_count: int) -> Optional[FlowState]:
        state = self._at(user_id, FlowStep.AWAITING_PAGE_COUNT)
        if (
            state is None
            or not state.topic
            or state.template_id is None
            or page_count not in PAGE_COUNT_OPTIONS
        ):
            return None
        return self._advance(
            user_id, state, step=FlowStep.AWAITING_IMAGE_PREFERENCE, page_count=page_count
        )

    def set_generating(self, user_id: str, use_images: bool) -> Optional[FlowState]:
        """
        Terminal transition; the returned state is handed to the pipeline.
        """
        state = self._at(user_id, FlowStep.AWAITING_IMAGE_PREFERENCE)
        if (
            state is None
            or not state.language
            or not state.topic
            or state.template_id is None
            or state.page_count is None
        ):
            return None
        return self._advance(
            user_id, state, step=FlowStep.GENERATING, use_images=bool(use_images)
        )

    set_image_preference = set_generating

    def go_back(self, user_id: str) -> Optional[FlowState]:
        """
        Returns to the previous step, discarding the field collected there
        and every field collected after it.
        """
        state = self.store.get(user_id)
        if state is None:
            return None

        previous = get_previous_step(state.step)
        if previous is None:
            return None

        cleared: Dict[str, Any] = {}
        for name in fields_from(previous):
            cleared[name] = {} if name == "brief_answers" else None

        new_state = replace(state, step=previous, **cleared)
        self.store.set(user_id, new_state)
        logger.debug(
            f"Flow step back: {state.step.value} -> {previous.value}",
            extra={"user_id": str(user_id), "state": previous.value}
        )
        return new_state

    def attach_prompt(self, user_id: str, message_id: int) -> Optional[FlowState]:
        """Remembers the last prompt message so it can be deleted later."""
        state = self.store.get(user_id)
        if state is None:
            return None
        new_state = replace(state, prompt_message_id=message_id)
        self.store.set(user_id, new_state)
        return new_state

    def take_prompt(self, user_id: str) -> Optional[int]:
        """Pops the remembered prompt message id."""
        state = self.store.get(user_id)
        if state is None or state.prompt_message_id is None:
            return None
        self.store.set(user_id, replace(state, prompt_message_id=None))
        return state.prompt_message_id

    def clear_flow(self, user_id: str) -> bool:
        """
        The only deletion path. Called after every terminal outcome.
        """
        removed = self.store.delete(user_id)
        if removed:
            logger.debug("Flow cleared", extra={"user_id": str(user_id)})
        return removed
