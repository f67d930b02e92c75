from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from app.core.exceptions import ExternalServiceError, GenerationFailedError, ValidationError
from app.schemas.presentation import GeneratedContent
from app.services.content_service import build_fallback_slides
from app.services.flow_service import FlowStore, PresentationFlow
from app.services.generation_service import GenerationService
from app.services.image_service import ImageEnrichmentReport
from app.services.render_service import RenderedDocument

USER = "1001"
BRIEF = {
    "audience": "students",
    "presenter_role": "teacher",
    "goal": "inform",
    "tone": "formal",
}


def generating_state(use_images=True):
    flow = PresentationFlow(FlowStore())
    flow.start_flow(USER)
    flow.set_language(USER, "en")
    flow.set_topic(USER, "Climate policy")
    for name, value in BRIEF.items():
        flow.set_brief_answer(USER, name, value)
    flow.complete_brief_answers(USER)
    flow.set_template(USER, 2)
    flow.set_page_count(USER, 6)
    return flow.set_generating(USER, use_images)


@pytest.fixture
def slides():
    return build_fallback_slides("Climate policy", 6, "en")


@pytest.fixture
def content(slides):
    service = MagicMock()
    service.generate_content = AsyncMock(return_value=GeneratedContent(
        topic="Climate policy", language="en", slides=slides, used_fallback=False
    ))
    return service


@pytest.fixture
def images(slides):
    service = MagicMock()
    report = ImageEnrichmentReport(images_found=2)
    service.enrich = AsyncMock(return_value=(slides, report))
    return service


@pytest.fixture
def renderer(tmp_path):
    service = MagicMock()
    service.render = AsyncMock(return_value=RenderedDocument(
        pdf_path=tmp_path / "presentation.pdf",
        temp_dir=tmp_path,
        file_name="climate-policy-2026-10-18.pdf",
    ))
    return service


async def test_successful_generation_completes_reservation(ledger, user_id, db, content, images, renderer):
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    outcome = await service.run_generation(user_id, generating_state())

    assert not outcome.blocked
    assert outcome.document.file_name == "climate-policy-2026-10-18.pdf"
    content.generate_content.assert_awaited_once_with("Climate policy", 6, "en", BRIEF)
    images.enrich.assert_awaited_once()
    renderer.render.assert_awaited_once()
    assert renderer.render.await_args.args[0] == 2

    record = await db.generations.find_one({"_id": ObjectId(outcome.reservation.reservation_id)})
    assert record["status"] == "completed"
    assert record["metadata"]["prompt"] == "Climate policy"
    assert record["metadata"]["language"] == "en"
    assert record["metadata"]["template_id"] == 2
    assert record["metadata"]["page_count"] == 6
    assert record["metadata"]["use_images"] is True
    assert record["metadata"]["brief_answers"] == BRIEF
    assert record["metadata"]["output_filename"] == "climate-policy-2026-10-18.pdf"
    assert record["metadata"]["images_found"] == 2


async def test_text_only_skips_images(ledger, user_id, content, images, renderer):
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    await service.run_generation(user_id, generating_state(use_images=False))

    images.enrich.assert_not_awaited()


async def test_blocked_generation_does_no_work(ledger, user_id, content, images, renderer):
    for _ in range(3):
        await ledger.reserve(user_id)
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    outcome = await service.run_generation(user_id, generating_state())

    assert outcome.blocked
    assert outcome.reservation.next_available_at is not None
    content.generate_content.assert_not_awaited()
    renderer.render.assert_not_awaited()


async def test_render_failure_marks_reservation_failed(ledger, user_id, db, content, images, renderer):
    renderer.render = AsyncMock(side_effect=ExternalServiceError("Rendering failed"))
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    with pytest.raises(GenerationFailedError) as excinfo:
        await service.run_generation(user_id, generating_state())

    reservation_id = excinfo.value.details["reservation_id"]
    record = await db.generations.find_one({"_id": ObjectId(reservation_id)})
    assert record["status"] == "failed"
    assert record["metadata"]["failure_reason"] == "ExternalServiceError"

    status = await ledger.check_availability(user_id)
    assert status.used_in_window == 0


async def test_finalize_failure_cleans_up_document(ledger, user_id, content, images, renderer, monkeypatch):
    monkeypatch.setattr(ledger, "finalize", AsyncMock(side_effect=RuntimeError("db down")))
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    with pytest.raises(GenerationFailedError):
        await service.run_generation(user_id, generating_state())

    renderer.cleanup.assert_called_once()


async def test_requires_generating_step(ledger, user_id, content, images, renderer):
    flow = PresentationFlow(FlowStore())
    state = flow.start_flow(USER)
    service = GenerationService(ledger=ledger, content=content, images=images, renderer=renderer)

    with pytest.raises(ValidationError):
        await service.run_generation(user_id, state)

    assert (await ledger.check_availability(user_id)).used_in_window == 0
