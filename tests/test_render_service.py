from datetime import datetime

import pytest
from jinja2 import TemplateNotFound

from app.services.content_service import build_fallback_slides
from app.services.render_service import RenderService, build_pdf_name, slugify


@pytest.mark.parametrize(
    "topic,expected",
    [
        ("Climate policy", "climate-policy"),
        ("  Énergie   solaire!! ", "energie-solaire"),
        ("Iqlim o'zgarishi", "iqlim-o-zgarishi"),
        ("Экология", ""),
        ("a" * 60, "a" * 40),
    ],
)
def test_slugify(topic, expected):
    assert slugify(topic) == expected


def test_pdf_name():
    today = datetime(2026, 10, 18)
    assert build_pdf_name("Climate policy", today) == "climate-policy-2026-10-18.pdf"
    assert build_pdf_name("Экология", today) == "presentation-2026-10-18.pdf"


@pytest.fixture
def renderer():
    return RenderService()


@pytest.mark.parametrize("template_id", [1, 2, 3, 4])
def test_render_html_contains_all_slides(renderer, template_id):
    slides = build_fallback_slides("Climate & policy", 4, "en")

    html = renderer.render_html(template_id, "Climate & policy", slides, generated_at=datetime(2026, 10, 18))

    assert "Climate &amp; policy" in html
    assert "18 Oct 2026" in html
    for slide in slides:
        assert slide.content in html
    assert html.count('class="page slide') == 4


def test_render_html_embeds_images(renderer):
    slides = build_fallback_slides("Ocean", 2, "en")
    slides[0] = slides[0].model_copy(update={"image": "data:image/jpeg;base64,AAAA"})

    html = renderer.render_html(1, "Ocean", slides)

    assert 'src="data:image/jpeg;base64,AAAA"' in html
    assert html.count("page slide with-image") == 1


def test_unknown_template(renderer):
    with pytest.raises(TemplateNotFound):
        renderer.render_html(9, "Ocean", [])


def test_missing_preview(tmp_path):
    assert not RenderService(templates_dir=tmp_path).has_template_preview()
