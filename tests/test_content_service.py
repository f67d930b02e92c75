import json

import httpx

from app.services.content_service import (
    ContentService,
    build_fallback_slides,
    build_slide_html,
    build_slides_prompt,
    normalize_slides,
)
from app.services.llm_service import LLMService
from utils.constants import SLIDE_LOCALES

BRIEF = {
    "audience": "students",
    "presenter_role": "teacher",
    "goal": "inform",
    "tone": "formal",
}


def gemini_reply(payload):
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}]})


def make_service(handler):
    llm = LLMService(openai_key="sk-test", gemini_keys=["g-1", "g-2"], transport=httpx.MockTransport(handler))
    return ContentService(llm=llm)


def is_topic_request(request: httpx.Request) -> bool:
    return "normalizedTopic" in request.content.decode()


async def test_primary_down_and_secondary_wrong_shape_uses_fallback_deck():
    calls = []

    def handler(request: httpx.Request):
        calls.append(request.url.host)
        if request.url.host == "api.openai.com":
            return httpx.Response(401, json={"error": {"message": "Incorrect API key"}})
        if is_topic_request(request):
            return gemini_reply({"normalizedTopic": "Climate policy"})
        # Three slides instead of six
        return gemini_reply({"slides": [{"title": "A", "summary": "B", "bullets": ["c"]}] * 3})

    content = await make_service(handler).generate_content("climat polisy", 6, "en", BRIEF)

    assert content.topic == "Climate policy"
    assert content.used_fallback
    sections = SLIDE_LOCALES["en"]["sections"]
    assert [slide.title for slide in content.slides] == sections[:6]
    assert [slide.page_number for slide in content.slides] == [1, 2, 3, 4, 5, 6]
    # One topic call, then both Gemini keys tried for slides
    assert calls.count("generativelanguage.googleapis.com") == 3


async def test_slide_count_mismatch_moves_to_next_key():
    slide_keys = []

    def handler(request: httpx.Request):
        if request.url.host == "api.openai.com":
            return httpx.Response(500, json={"error": {"message": "down"}})
        if is_topic_request(request):
            return gemini_reply({"normalizedTopic": "Climate policy"})
        key = request.headers["x-goog-api-key"]
        slide_keys.append(key)
        count = 2 if key == "g-1" else 4
        return gemini_reply({
            "slides": [{"title": f"Slide {n}", "summary": "s", "bullets": ["b"]} for n in range(1, count + 1)]
        })

    content = await make_service(handler).generate_content("Climate policy", 4, "en")

    assert slide_keys == ["g-1", "g-2"]
    assert not content.used_fallback
    assert [slide.title for slide in content.slides] == ["Slide 1", "Slide 2", "Slide 3", "Slide 4"]


async def test_non_object_gemini_body_falls_back():
    llm = LLMService(
        gemini_keys=["g-1"],
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "an", "object"])),
    )

    result = await ContentService(llm=llm).generate_slides("Climate policy", 4, "en")

    assert result.used_fallback
    assert len(result.value) == 4


async def test_malformed_gemini_candidates_fall_back():
    bodies = [
        {"candidates": ["text"]},
        {"candidates": [{"content": {"parts": ["text", 7]}}]},
        {"candidates": "nope"},
    ]

    for body in bodies:
        llm = LLMService(
            gemini_keys=["g-1"],
            transport=httpx.MockTransport(lambda request, body=body: httpx.Response(200, json=body)),
        )
        result = await ContentService(llm=llm).generate_slides("Climate policy", 3, "en")
        assert result.used_fallback
        assert len(result.value) == 3


async def test_secondary_key_rotation_on_quota_errors():
    gemini_keys = []
    slides = [
        {"title": f"Slide {n}", "summary": "Summary", "bullets": ["one", "two"]}
        for n in range(1, 5)
    ]

    def handler(request: httpx.Request):
        if request.url.host == "api.openai.com":
            return httpx.Response(429, json={"error": {"message": "quota"}})
        key = request.headers["x-goog-api-key"]
        gemini_keys.append(key)
        if key == "g-1":
            return httpx.Response(403, json={"error": {"message": "billing"}})
        if is_topic_request(request):
            return gemini_reply({"normalizedTopic": "Solar energy"})
        return gemini_reply({"slides": slides})

    content = await make_service(handler).generate_content("solar", 4, "en")

    assert not content.used_fallback
    assert [slide.title for slide in content.slides] == ["Slide 1", "Slide 2", "Slide 3", "Slide 4"]
    assert gemini_keys == ["g-1", "g-2", "g-1", "g-2"]


async def test_no_providers_keeps_raw_topic():
    content = await ContentService(llm=LLMService()).generate_content("  Space travel ", 4, "uz")
    assert content.topic == "Space travel"
    assert content.used_fallback
    assert len(content.slides) == 4


def test_normalize_slides_placeholders():
    slides = normalize_slides(
        [
            {"title": "  ", "summary": None, "bullets": []},
            {"title": "Real", "summary": "Text", "bullets": ["a", " ", 3, "b", "c", "d", "e", "f"]},
            "garbage",
        ],
        3,
        "ru",
    )
    locale = SLIDE_LOCALES["ru"]

    assert slides[0].title == f"{locale['section_label']} 1"
    assert slides[0].summary == locale["default_summary"]
    assert slides[0].bullets == locale["default_bullets"]
    assert slides[1].bullets == ["a", "b", "c", "d", "e"]
    assert slides[2].title == f"{locale['section_label']} 3"


def test_normalize_slides_truncates_and_rejects_non_lists():
    raw = [{"title": str(n), "summary": "s", "bullets": ["b"]} for n in range(10)]
    assert len(normalize_slides(raw, 4, "en")) == 4
    assert normalize_slides({"title": "x"}, 4, "en") == []


def test_slide_html_is_escaped():
    html = build_slide_html("<b>bold</b>", ["<script>alert(1)</script>", "R&D"])
    assert html == (
        "<p>&lt;b&gt;bold&lt;/b&gt;</p>"
        "<ul><li>&lt;script&gt;alert(1)&lt;/script&gt;</li><li>R&amp;D</li></ul>"
    )


def test_fallback_summary_localization():
    ru = build_fallback_slides("Экология", 1, "ru")[0]
    assert ru.summary.startswith('По теме "Экология" раскрывается раздел «введение и контекст».')

    en = build_fallback_slides("Ecology", 1, "en")[0]
    assert '"Ecology"' in en.summary
    assert "introduction and context" in en.summary


def test_fallback_deck_beyond_sections_uses_generic_titles():
    locale = SLIDE_LOCALES["en"]
    slides = build_fallback_slides("Ecology", len(locale["sections"]) + 1, "en")
    assert slides[-1].title == f"{locale['section_label']} {len(slides)}"
    assert locale["fallback_section"] in slides[-1].summary


def test_slides_prompt_includes_brief():
    prompt = build_slides_prompt("Climate policy", 6, "en", BRIEF)
    assert "Presentation brief:" in prompt
    assert "- Audience: students" in prompt
    assert "- Tone: formal" in prompt
    assert "Create 6 slide pages" in prompt
