import base64

import httpx

from app.services.content_service import build_fallback_slides
from app.services.image_service import (
    OUTCOME_EMPTY,
    OUTCOME_FOUND,
    ImageService,
    build_candidate_queries,
    truncate_query,
)
from app.services.llm_service import LLMService

PHOTO_URL = "https://images.pexels.com/photos/1/photo.jpeg"
PHOTO_BYTES = b"\xff\xd8\xff-fake-jpeg"


def photo_found():
    return httpx.Response(200, json={"photos": [{"src": {"landscape": PHOTO_URL}}]})


def make_service(search, keys=("p-1",)):
    def handler(request: httpx.Request):
        if request.url.host == "images.pexels.com":
            return httpx.Response(200, content=PHOTO_BYTES, headers={"content-type": "image/jpeg"})
        return search(request)

    return ImageService(
        pexels_keys=list(keys),
        llm=LLMService(),
        transport=httpx.MockTransport(handler),
    )


async def test_permission_denied_stops_remaining_slides():
    searched = []

    def search(request: httpx.Request):
        query = request.url.params["query"]
        searched.append(query)
        if "Core concepts" in query:
            return httpx.Response(403, json={"error": "quota exceeded"})
        return photo_found()

    slides = build_fallback_slides("Climate policy", 6, "en")
    enriched, report = await make_service(search).enrich("Climate policy", slides, "en")

    assert report.stopped_at_slide == 2
    assert report.images_found == 1
    for number in range(3, 7):
        assert report.attempts_for(number) == []
    assert len(searched) == 2

    expected = "data:image/jpeg;base64," + base64.b64encode(PHOTO_BYTES).decode("ascii")
    assert enriched[0].image == expected
    assert all(slide.image is None for slide in enriched[1:])
    assert [slide.title for slide in enriched] == [slide.title for slide in slides]


async def test_empty_result_moves_to_next_query():
    def search(request: httpx.Request):
        if request.url.params["query"] == "Core concepts":
            return photo_found()
        return httpx.Response(200, json={"photos": []})

    slides = build_fallback_slides("Climate policy", 2, "en")[1:]
    enriched, report = await make_service(search, keys=("p-1", "p-2")).enrich("Climate policy", slides, "en")

    attempts = report.attempts_for(2)
    assert [(a.query, a.key_index, a.outcome) for a in attempts] == [
        ("Climate policy Core concepts", 0, OUTCOME_EMPTY),
        ("Core concepts", 0, OUTCOME_FOUND),
    ]
    assert enriched[0].image is not None


async def test_server_error_tries_next_key():
    def search(request: httpx.Request):
        if request.headers["Authorization"] == "p-1":
            return httpx.Response(500, text="boom")
        return photo_found()

    slides = build_fallback_slides("Ocean", 1, "en")
    _, report = await make_service(search, keys=("p-1", "p-2")).enrich("Ocean", slides, "en")

    assert [(a.key_index, a.outcome) for a in report.attempts] == [
        (0, "ProviderError"),
        (1, OUTCOME_FOUND),
    ]
    assert not report.stopped


async def test_no_keys_skips_images():
    service = ImageService(pexels_keys=[], llm=LLMService())
    slides = build_fallback_slides("Ocean", 4, "en")

    enriched, report = await service.enrich("Ocean", slides, "en")

    assert enriched == slides
    assert report.attempts == []


async def test_search_uses_locale():
    locales = []

    def search(request: httpx.Request):
        locales.append(request.url.params["locale"])
        return photo_found()

    slides = build_fallback_slides("Экология", 1, "ru")
    await make_service(search).enrich("Экология", slides, "ru")
    assert locales == ["ru-RU"]


def test_candidate_queries_are_unique_and_capped():
    queries = build_candidate_queries("Ocean waves", "Ocean", "Waves")
    assert queries == ["Ocean waves", "Waves", "Ocean"]

    long_title = "x" * 200
    assert all(len(q) <= 80 for q in build_candidate_queries(None, "Topic", long_title))
    assert truncate_query("  a   b  ") == "a b"


async def test_malformed_photos_are_not_errors():
    bodies = iter([
        {"photos": ["https://x/y.jpg"]},
        {"photos": [{"src": "https://x/y.jpg"}, {"src": {"landscape": PHOTO_URL}}]},
    ])

    def search(request: httpx.Request):
        return httpx.Response(200, json=next(bodies))

    slides = build_fallback_slides("Climate policy", 1, "en")
    enriched, report = await make_service(search).enrich("Climate policy", slides, "en")

    assert [a.outcome for a in report.attempts_for(1)] == [OUTCOME_EMPTY, OUTCOME_FOUND]
    assert enriched[0].image.startswith("data:image/jpeg;base64,")


async def test_non_object_search_body_tries_next_key():
    def search(request: httpx.Request):
        if request.headers["Authorization"] == "p-1":
            return httpx.Response(200, json=["not", "an", "object"])
        return photo_found()

    slides = build_fallback_slides("Climate policy", 2, "en")
    enriched, report = await make_service(search, keys=("p-1", "p-2")).enrich("Climate policy", slides, "en")

    assert not report.stopped
    assert report.images_found == 2
    assert [a.outcome for a in report.attempts_for(1)] == ["ProviderResponseError", OUTCOME_FOUND]
