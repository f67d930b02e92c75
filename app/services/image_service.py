"""
app/services/image_service.py

Purpose: Slide image enrichment

- Up to 4 candidate search queries per slide (AI-corrected, heuristic, title, topic)
- Pexels search across every configured key
- Authorization/quota failure stops image search for the rest of the deck
- Found images embedded as data: URIs so rendering needs no network
- Every search attempt recorded in an ImageEnrichmentReport

A slide without an image is never an error.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.core.config import settings
from app.core.exceptions import (
    InvalidKeyError,
    PermissionDeniedError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from app.core.logging import get_logger
from app.schemas.presentation import Slide
from app.services.cascade import run_cascade
from app.services.llm_service import LLMService, get_llm_service
from utils.constants import (
    DEFAULT_LANGUAGE,
    IMAGE_QUERY_MAX_LENGTH,
    IMAGE_SEARCH_LOCALES,
    MAX_IMAGE_QUERIES,
    TOPIC_NORMALIZATION_TEMPERATURE,
)

logger = get_logger(__name__)

PEXELS = "pexels"

OUTCOME_FOUND = "found"
OUTCOME_EMPTY = "empty"

QUERY_SYSTEM_PROMPT = (
    "You write short stock-photo search queries. Fix spelling, keep only concrete visual "
    'keywords, and return only JSON with shape {"query":string}.'
)

QUERY_SCHEMA = {
    "type": "OBJECT",
    "properties": {"query": {"type": "STRING"}},
    "required": ["query"],
}

# Authorization and quota failures make every later search futile
STOP_ERRORS = (InvalidKeyError, PermissionDeniedError)


@dataclass
class ImageSearchAttempt:
    slide_number: int
    query: str
    key_index: int
    outcome: str
    error: Optional[str] = None


@dataclass
class ImageEnrichmentReport:
    attempts: List[ImageSearchAttempt] = field(default_factory=list)
    stopped_at_slide: Optional[int] = None
    images_found: int = 0

    def attempts_for(self, slide_number: int) -> List[ImageSearchAttempt]:
        return [a for a in self.attempts if a.slide_number == slide_number]

    @property
    def stopped(self) -> bool:
        return self.stopped_at_slide is not None


def truncate_query(query: Optional[str]) -> str:
    return " ".join((query or "").split())[:IMAGE_QUERY_MAX_LENGTH].strip()


def build_candidate_queries(ai_query: Optional[str], topic: str, title: str) -> List[str]:
    """
    Ordered, truncated, de-duplicated queries for one slide.
    """
    candidates = [ai_query, f"{topic} {title}", title, topic]
    queries: List[str] = []
    seen = set()

    for candidate in candidates:
        query = truncate_query(candidate)
        if query and query.lower() not in seen:
            seen.add(query.lower())
            queries.append(query)

    return queries[:MAX_IMAGE_QUERIES]


def build_query_prompt(topic: str, title: str, locale: str) -> str:
    return "\n".join([
        f'Presentation topic: "{topic}"',
        f'Slide title: "{title}"',
        f"Write one stock photo search query for this slide in the language of locale {locale}.",
        f"Use at most {IMAGE_QUERY_MAX_LENGTH} characters.",
        'Return only JSON: {"query":"..."}',
    ])


class PexelsClient:
    """
    Thin client for the Pexels search API with one key.
    """
    name = PEXELS

    def __init__(self, api_key: str, base_url: str, timeout: float, transport=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def search(self, query: str, locale: str) -> Optional[str]:
        """
        Returns the first photo URL for the query, or None when nothing matched.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/search",
                    params={"query": query, "locale": locale, "per_page": 1, "orientation": "landscape"},
                    headers={"Authorization": self.api_key},
                )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError("pexels search timed out", provider=self.name) from e
        except httpx.RequestError as e:
            raise ProviderError(f"pexels network error: {e}", provider=self.name) from e

        status = response.status_code
        if status == 401:
            raise InvalidKeyError("pexels rejected the API key", provider=self.name, status=status)
        if status in (403, 429):
            raise PermissionDeniedError(f"pexels denied the request ({status})", provider=self.name, status=status)
        if status >= 400:
            raise ProviderError(f"pexels API error: {status}", provider=self.name, status=status)

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderResponseError("pexels returned an invalid body", provider=self.name) from e

        if not isinstance(body, dict):
            raise ProviderResponseError("pexels returned a non-object body", provider=self.name)

        photos = body.get("photos") or []
        if not isinstance(photos, list):
            raise ProviderResponseError("pexels photos is not a list", provider=self.name)

        for photo in photos:
            src = photo.get("src") if isinstance(photo, dict) else None
            if not isinstance(src, dict):
                continue
            url = src.get("landscape") or src.get("large") or src.get("original")
            if isinstance(url, str) and url:
                return url
        return None


class ImageService:
    """
    Adds at most one image per slide.
    """

    def __init__(
        self,
        pexels_keys: Optional[List[str]] = None,
        llm: Optional[LLMService] = None,
        timeout: Optional[float] = None,
        transport=None
    ):
        self.timeout = timeout or settings.IMAGE_TIMEOUT_SECONDS
        self._transport = transport
        keys = settings.pexels_keys if pexels_keys is None else pexels_keys
        self.clients = [
            PexelsClient(key, settings.PEXELS_BASE_URL, self.timeout, transport)
            for key in keys
        ]
        self.llm = llm or get_llm_service()

    async def correct_query(self, topic: str, title: str, language: str) -> str:
        """
        AI-corrected, locale-aware query; heuristic ``topic + title`` on failure.
        """
        locale = IMAGE_SEARCH_LOCALES.get(language, IMAGE_SEARCH_LOCALES[DEFAULT_LANGUAGE])
        heuristic = truncate_query(f"{topic} {title}")

        def parse(provider: str, payload: Dict[str, Any]) -> str:
            query = truncate_query(payload.get("query") if isinstance(payload.get("query"), str) else "")
            if not query:
                raise ProviderResponseError(f"{provider} returned no query", provider=provider)
            return query

        tiers = self.llm.build_tiers(
            QUERY_SYSTEM_PROMPT,
            build_query_prompt(topic, title, locale),
            TOPIC_NORMALIZATION_TEMPERATURE,
            parse,
            schema=QUERY_SCHEMA,
        )
        result = await run_cascade(tiers, heuristic, label="image-query")
        return result.value

    async def embed(self, url: str) -> str:
        """
        Downloads the image once and returns a data: URI; the raw URL on failure.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Image download failed, using remote URL: {e}")
            return url

        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"

    async def _search_slide(
        self,
        slide: Slide,
        queries: List[str],
        locale: str,
        report: ImageEnrichmentReport
    ) -> Optional[str]:
        for query in queries:
            for key_index, client in enumerate(self.clients):
                try:
                    url = await client.search(query, locale)
                except STOP_ERRORS as e:
                    report.attempts.append(ImageSearchAttempt(
                        slide.page_number, query, key_index, type(e).__name__, e.message
                    ))
                    report.stopped_at_slide = slide.page_number
                    logger.warning(
                        f"Image search stopped at slide {slide.page_number}: {e.message}",
                        extra={"provider": PEXELS}
                    )
                    return None
                except ProviderError as e:
                    report.attempts.append(ImageSearchAttempt(
                        slide.page_number, query, key_index, type(e).__name__, e.message
                    ))
                    logger.warning(
                        f"Image search failed for slide {slide.page_number} "
                        f"(key #{key_index + 1}): {e.message}"
                    )
                    continue

                if url:
                    report.attempts.append(ImageSearchAttempt(
                        slide.page_number, query, key_index, OUTCOME_FOUND
                    ))
                    return url

                # Same query on another key yields the same empty result
                report.attempts.append(ImageSearchAttempt(
                    slide.page_number, query, key_index, OUTCOME_EMPTY
                ))
                break

        return None

    async def enrich(
        self,
        topic: str,
        slides: List[Slide],
        language: str
    ) -> Tuple[List[Slide], ImageEnrichmentReport]:
        """
        Args:
            topic: Normalized topic
            slides: Slides from the content cascade
            language: Deck language

        Returns:
            (slides with images where found, report)
        """
        report = ImageEnrichmentReport()
        if not self.clients:
            logger.info("No image provider keys configured, skipping images")
            return list(slides), report

        locale = IMAGE_SEARCH_LOCALES.get(language, IMAGE_SEARCH_LOCALES[DEFAULT_LANGUAGE])
        enriched: List[Slide] = []

        for slide in slides:
            if report.stopped:
                enriched.append(slide)
                continue

            ai_query = await self.correct_query(topic, slide.title, language)
            queries = build_candidate_queries(ai_query, topic, slide.title)

            url = await self._search_slide(slide, queries, locale, report)
            if not url:
                enriched.append(slide)
                continue

            image = await self.embed(url)
            report.images_found += 1
            enriched.append(slide.model_copy(update={"image": image}))

        logger.info(
            f"Images attached to {report.images_found}/{len(slides)} slides"
            + (f" (stopped at slide {report.stopped_at_slide})" if report.stopped else "")
        )
        return enriched, report


# Global service instance
_image_service: Optional[ImageService] = None


def get_image_service() -> ImageService:
    """Get or create the global image service."""
    global _image_service
    if _image_service is None:
        _image_service = ImageService()
    return _image_service
