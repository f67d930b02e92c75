"""
app/services/content_service.py

Purpose: Slide content generation

- Phase 1: topic normalization (spelling, transliteration, translation)
- Phase 2: slide generation with an exact page count
- Per-slide normalization and escaped HTML bodies
- Deterministic localized fallback content

Both phases run the OpenAI -> Gemini (all keys) cascade and never fail:
the worst case is the raw topic and the fallback deck.
"""

from typing import Any, Dict, List, Optional

from markupsafe import Markup, escape

from app.core.exceptions import ProviderResponseError, SlideCountMismatchError
from app.core.logging import get_logger
from app.schemas.presentation import GeneratedContent, Slide
from app.services.cascade import CascadeResult, run_cascade
from app.services.llm_service import LLMService, get_llm_service
from utils.constants import (
    BRIEF_FIELDS,
    DEFAULT_LANGUAGE,
    MAX_BULLETS_PER_SLIDE,
    PROMPT_LANGUAGE_NAMES,
    SLIDE_GENERATION_TEMPERATURE,
    SLIDE_LOCALES,
    TOPIC_NORMALIZATION_TEMPERATURE,
)

logger = get_logger(__name__)


TOPIC_SYSTEM_PROMPT = (
    "You normalize presentation topics. Fix spelling and grammar, infer intended meaning "
    "from noisy text, and translate fully into the requested language when needed. "
    'Return only JSON with shape {"normalizedTopic":string}. The normalizedTopic must be '
    "written strictly in the requested language, except unavoidable proper nouns."
)

SLIDES_SYSTEM_PROMPT = (
    "You are an expert presentation writer. Write every output field strictly in the target "
    "language and never mix languages except unavoidable proper nouns. Return only JSON with "
    'shape {"slides":[{"title":string,"summary":string,"bullets":string[]}]}.'
)

TOPIC_SCHEMA = {
    "type": "OBJECT",
    "properties": {"normalizedTopic": {"type": "STRING"}},
    "required": ["normalizedTopic"],
}

SLIDES_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "slides": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "summary": {"type": "STRING"},
                    "bullets": {"type": "ARRAY", "items": {"type": "STRING"}},
                },
                "required": ["title", "summary", "bullets"],
            },
        },
    },
    "required": ["slides"],
}

BRIEF_LABELS = {
    "audience": "Audience",
    "presenter_role": "Presenter role",
    "goal": "Goal",
    "tone": "Tone",
}


def get_slide_locale(language: str) -> Dict[str, Any]:
    return SLIDE_LOCALES.get(language, SLIDE_LOCALES[DEFAULT_LANGUAGE])


def get_language_name(language: str) -> str:
    return PROMPT_LANGUAGE_NAMES.get(language, PROMPT_LANGUAGE_NAMES[DEFAULT_LANGUAGE])


def build_slide_html(summary: str, bullets: List[str]) -> str:
    """
    Minimal markup around escaped text; nothing from a provider is passed through raw.
    """
    items = Markup("").join(Markup("<li>{}</li>").format(bullet) for bullet in bullets)
    return str(Markup("<p>{}</p><ul>{}</ul>").format(escape(summary), items))


# ============================================================
# PROMPTS
# ============================================================

def build_topic_prompt(topic: str, language: str) -> str:
    language_name = get_language_name(language)
    return "\n".join([
        f'Normalize this presentation topic into {language_name}: "{topic}"',
        "Requirements:",
        "- Fix spelling and grammar mistakes.",
        "- Infer the intended meaning even if words are noisy or transliterated.",
        "- If the input language is different, translate fully to the target language.",
        "- Keep it concise and natural as a presentation theme.",
        'Return only JSON: {"normalizedTopic":"..."}',
    ])


def build_slides_prompt(
    topic: str,
    page_count: int,
    language: str,
    brief_answers: Optional[Dict[str, str]] = None
) -> str:
    language_name = get_language_name(language)
    lines = [
        f'Create {page_count} slide pages for the topic: "{topic}".',
        f"Target language: {language_name}.",
    ]

    brief = [
        f"- {BRIEF_LABELS[name]}: {brief_answers[name]}"
        for name in BRIEF_FIELDS
        if brief_answers and (brief_answers.get(name) or "").strip()
    ]
    if brief:
        lines.append("Presentation brief:")
        lines.extend(brief)

    lines.extend([
        "Rules:",
        f"- Write all slide text strictly in {language_name}.",
        "- Do not use words from other languages except unavoidable proper nouns.",
        "- Adapt depth and wording to the audience, presenter role, goal and tone above.",
        "- Keep each summary to 1-2 sentences.",
        "- Provide exactly 4 concise bullets per slide.",
        "- Return only valid JSON matching the required schema.",
    ])
    return "\n".join(lines)


# ============================================================
# NORMALIZATION
# ============================================================

def normalize_slides(raw_slides: Any, page_count: int, language: str) -> List[Slide]:
    """
    Applies placeholder title/summary/bullet rules to provider output.
    Returns at most ``page_count`` slides; non-list input yields none.
    """
    if not isinstance(raw_slides, list):
        return []

    locale = get_slide_locale(language)
    slides: List[Slide] = []

    for index, item in enumerate(raw_slides[:page_count]):
        item = item if isinstance(item, dict) else {}

        title = item.get("title")
        title = title.strip() if isinstance(title, str) and title.strip() else f"{locale['section_label']} {index + 1}"

        summary = item.get("summary")
        summary = summary.strip() if isinstance(summary, str) and summary.strip() else locale["default_summary"]

        raw_bullets = item.get("bullets")
        bullets = [
            bullet.strip()
            for bullet in (raw_bullets if isinstance(raw_bullets, list) else [])
            if isinstance(bullet, str) and bullet.strip()
        ][:MAX_BULLETS_PER_SLIDE]
        if not bullets:
            bullets = list(locale["default_bullets"])

        slides.append(Slide(
            page_number=index + 1,
            title=title,
            summary=summary,
            bullets=bullets,
            content=build_slide_html(summary, bullets),
        ))

    return slides


def build_fallback_slides(topic: str, page_count: int, language: str) -> List[Slide]:
    """
    Deterministic deck in the language's section order, exactly ``page_count`` slides.
    """
    locale = get_slide_locale(language)
    sections = locale["sections"]
    slides: List[Slide] = []

    for index in range(page_count):
        section = sections[index] if index < len(sections) else None

        if section:
            section_text = locale["section_format"].format(section=section.lower())
        else:
            section_text = locale["fallback_section"]

        summary = locale["fallback_summary"].format(topic=topic, section=section_text)
        bullets = [bullet.format(topic=topic) for bullet in locale["fallback_bullets"]]

        slides.append(Slide(
            page_number=index + 1,
            title=section or f"{locale['section_label']} {index + 1}",
            summary=summary,
            bullets=bullets,
            content=build_slide_html(summary, bullets),
        ))

    return slides


# ============================================================
# SERVICE
# ============================================================

class ContentService:
    """
    Runs both content phases through the provider cascade.
    """

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or get_llm_service()

    async def normalize_topic(self, topic: str, language: str) -> CascadeResult:
        fallback_topic = (topic or "").strip()

        def parse(provider: str, payload: Dict[str, Any]) -> str:
            value = payload.get("normalizedTopic")
            if not isinstance(value, str) or not value.strip():
                raise ProviderResponseError(f"{provider} returned no normalizedTopic", provider=provider)
            return value.strip()

        if not fallback_topic:
            return await run_cascade([], fallback_topic, label="topic")

        tiers = self.llm.build_tiers(
            TOPIC_SYSTEM_PROMPT,
            build_topic_prompt(fallback_topic, language),
            TOPIC_NORMALIZATION_TEMPERATURE,
            parse,
            schema=TOPIC_SCHEMA,
        )
        return await run_cascade(tiers, fallback_topic, label="topic")

    async def generate_slides(
        self,
        topic: str,
        page_count: int,
        language: str,
        brief_answers: Optional[Dict[str, str]] = None
    ) -> CascadeResult:
        def parse(provider: str, payload: Dict[str, Any]) -> List[Slide]:
            slides = normalize_slides(payload.get("slides"), page_count, language)
            if len(slides) != page_count:
                raise SlideCountMismatchError(
                    f"{provider} returned {len(slides)} slides, expected {page_count}",
                    provider=provider
                )
            return slides

        tiers = self.llm.build_tiers(
            SLIDES_SYSTEM_PROMPT,
            build_slides_prompt(topic, page_count, language, brief_answers),
            SLIDE_GENERATION_TEMPERATURE,
            parse,
            schema=SLIDES_SCHEMA,
        )
        return await run_cascade(
            tiers,
            lambda: build_fallback_slides(topic, page_count, language),
            label="slides",
        )

    async def generate_content(
        self,
        topic: str,
        page_count: int,
        language: str,
        brief_answers: Optional[Dict[str, str]] = None
    ) -> GeneratedContent:
        """
        Topic normalization followed by slide generation.
        """
        topic_result = await self.normalize_topic(topic, language)
        normalized_topic = topic_result.value

        slides_result = await self.generate_slides(normalized_topic, page_count, language, brief_answers)

        logger.info(
            f"Content ready: {len(slides_result.value)} slides "
            f"(topic via {topic_result.provider or 'input'}, "
            f"slides via {slides_result.provider or 'fallback'})"
        )

        return GeneratedContent(
            topic=normalized_topic,
            language=language,
            slides=slides_result.value,
            used_fallback=slides_result.used_fallback,
        )


# Global service instance
_content_service: Optional[ContentService] = None


def get_content_service() -> ContentService:
    """Get or create the global content service."""
    global _content_service
    if _content_service is None:
        _content_service = ContentService()
    return _content_service
