"""
app/services/render_service.py

Purpose: Presentation rendering

- Jinja2 templates template-{1..4}.html.j2 receive (topic, generated_at, slides)
- Headless Chromium (Playwright) prints landscape A4 PDF
- Output lives in a per-request temp directory removed after delivery
- Template preview image lookup for the template step
"""

import asyncio
import re
import shutil
import tempfile
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from playwright.async_api import async_playwright, Error as PlaywrightError

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger
from app.schemas.presentation import Slide
from utils.time_utils import format_document_date, utc_now

logger = get_logger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
TEMPLATE_PREVIEW_NAME = "templates.png"
MAX_SLUG_LENGTH = 40


@dataclass
class RenderedDocument:
    pdf_path: Path
    temp_dir: Path
    file_name: str


def slugify(text: str) -> str:
    """
    ASCII slug: lowercase, non-alphanumerics collapsed to '-', max 40 chars.
    """
    ascii_text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-")


def build_pdf_name(topic: str, today: Optional[datetime] = None) -> str:
    """
    ``climate-policy-2026-10-18.pdf``; ``presentation-...`` when the slug is empty.
    """
    today = today or utc_now()
    return f"{slugify(topic) or 'presentation'}-{today.strftime('%Y-%m-%d')}.pdf"


def resolve_templates_dir() -> Path:
    if settings.TEMPLATES_DIR:
        return Path(settings.TEMPLATES_DIR)
    return DEFAULT_TEMPLATES_DIR


class RenderService:
    """
    Turns slides into a PDF file.
    """

    def __init__(self, templates_dir: Optional[Path] = None, timeout: Optional[float] = None):
        self.templates_dir = Path(templates_dir) if templates_dir else resolve_templates_dir()
        self.timeout = timeout or settings.RENDER_TIMEOUT_SECONDS
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(enabled_extensions=("html", "j2")),
        )

    @property
    def template_preview_path(self) -> Path:
        return self.templates_dir / TEMPLATE_PREVIEW_NAME

    def has_template_preview(self) -> bool:
        return self.template_preview_path.is_file()

    def render_html(
        self,
        template_id: int,
        topic: str,
        slides: List[Slide],
        generated_at: Optional[datetime] = None
    ) -> str:
        template = self.env.get_template(f"template-{template_id}.html.j2")
        return template.render(
            topic=topic,
            generated_at=format_document_date(generated_at or utc_now()),
            slides=[slide.model_dump() for slide in slides],
        )

    async def html_to_pdf(self, html: str, output_path: Path) -> None:
        """
        Prints HTML to a landscape A4 PDF with zero margins.
        """
        timeout_ms = int(self.timeout * 1000)

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=True,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            try:
                page = await browser.new_page()
                await page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
                await page.pdf(
                    path=str(output_path),
                    format="A4",
                    landscape=True,
                    prefer_css_page_size=True,
                    print_background=True,
                    margin={"top": "0mm", "right": "0mm", "bottom": "0mm", "left": "0mm"},
                )
            finally:
                await browser.close()

    async def render(self, template_id: int, topic: str, slides: List[Slide]) -> RenderedDocument:
        """
        Renders the deck into a fresh temp directory.

        Raises:
            ExternalServiceError: If the browser fails or times out
        """
        html = self.render_html(template_id, topic, slides)

        temp_dir = Path(tempfile.mkdtemp(prefix="slidebot-"))
        html_path = temp_dir / "presentation.html"
        pdf_path = temp_dir / "presentation.pdf"

        try:
            html_path.write_text(html, encoding="utf-8")
            await asyncio.wait_for(self.html_to_pdf(html, pdf_path), timeout=self.timeout)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            self.cleanup(temp_dir)
            logger.error(f"PDF rendering failed: {e}")
            raise ExternalServiceError("Rendering failed", details={"template_id": template_id}) from e
        except Exception:
            self.cleanup(temp_dir)
            raise

        logger.info(f"Rendered template {template_id} with {len(slides)} slides")
        return RenderedDocument(
            pdf_path=pdf_path,
            temp_dir=temp_dir,
            file_name=build_pdf_name(topic),
        )

    @staticmethod
    def cleanup(temp_dir: Path) -> None:
        shutil.rmtree(temp_dir, ignore_errors=True)


# Global service instance
_render_service: Optional[RenderService] = None


def get_render_service() -> RenderService:
    """Get or create the global render service."""
    global _render_service
    if _render_service is None:
        _render_service = RenderService()
    return _render_service
