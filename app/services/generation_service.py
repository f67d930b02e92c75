"""
app/services/generation_service.py

Purpose: Quota-gated generation pipeline

- Reserves a quota slot before any work starts
- Content cascade -> optional image cascade -> PDF rendering
- Finalizes the reservation as completed with the output file name
- On any failure after the reservation: marks it failed (if still pending)
  and raises GenerationFailedError

The caller delivers the document, removes the temp files and clears the flow.
"""

from dataclasses import dataclass
from typing import Optional

from app.core.exceptions import GenerationFailedError, ValidationError
from app.core.logging import get_logger, LogContext
from app.models.generation import GenerationStatus, Reservation
from app.schemas.presentation import GeneratedContent
from app.services.content_service import ContentService, get_content_service
from app.services.flow_service import FlowState
from app.services.image_service import ImageEnrichmentReport, ImageService, get_image_service
from app.services.quota_service import QuotaLedger, get_quota_ledger
from app.services.render_service import RenderedDocument, RenderService, get_render_service
from app.flow.states import FlowStep

logger = get_logger(__name__)


@dataclass
class GenerationOutcome:
    reservation: Reservation
    document: Optional[RenderedDocument] = None
    content: Optional[GeneratedContent] = None
    image_report: Optional[ImageEnrichmentReport] = None

    @property
    def blocked(self) -> bool:
        return not self.reservation.allowed


class GenerationService:
    """
    Runs one generation for a flow that reached the generating step.
    """

    def __init__(
        self,
        ledger: Optional[QuotaLedger] = None,
        content: Optional[ContentService] = None,
        images: Optional[ImageService] = None,
        renderer: Optional[RenderService] = None
    ):
        self.ledger = ledger or get_quota_ledger()
        self.content = content or get_content_service()
        self._images = images
        self.renderer = renderer or get_render_service()

    @property
    def images(self) -> ImageService:
        if self._images is None:
            self._images = get_image_service()
        return self._images

    async def run_generation(self, user_id, flow_state: FlowState) -> GenerationOutcome:
        """
        Args:
            user_id: Internal user id (users._id)
            flow_state: State returned by the terminal flow transition

        Returns:
            GenerationOutcome; ``blocked`` when the quota is exhausted

        Raises:
            ValidationError: If the flow is not at the generating step
            GenerationFailedError: If anything fails after the reservation
        """
        if flow_state.step != FlowStep.GENERATING:
            raise ValidationError(f"Flow is at {flow_state.step.value}, not generating")

        reservation = await self.ledger.reserve(user_id, flow_state.to_metadata())
        if not reservation.allowed:
            logger.info(
                f"Generation blocked: {reservation.used_in_window}/{reservation.limit}",
                extra={"user_id": str(user_id)}
            )
            return GenerationOutcome(reservation=reservation)

        reservation_id = reservation.reservation_id

        with LogContext(user_id=str(user_id), reservation_id=reservation_id):
            document: Optional[RenderedDocument] = None
            try:
                content = await self.content.generate_content(
                    flow_state.topic,
                    flow_state.page_count,
                    flow_state.language,
                    flow_state.brief_answers,
                )

                slides = content.slides
                image_report = None
                if flow_state.use_images:
                    slides, image_report = await self.images.enrich(content.topic, slides, flow_state.language)
                    content = content.model_copy(update={"slides": slides})

                document = await self.renderer.render(flow_state.template_id, content.topic, slides)

                await self.ledger.finalize(
                    reservation_id,
                    GenerationStatus.COMPLETED,
                    {
                        "output_filename": document.file_name,
                        "normalized_topic": content.topic,
                        "used_fallback": content.used_fallback,
                        "images_found": image_report.images_found if image_report else 0,
                    },
                )

            except Exception as e:
                logger.error(f"Generation failed: {e}", exc_info=True)
                if document is not None:
                    self.renderer.cleanup(document.temp_dir)

                try:
                    await self.ledger.mark_failed_if_pending(reservation_id, reason=type(e).__name__)
                except Exception as mark_error:
                    logger.error(f"Could not mark reservation as failed: {mark_error}", exc_info=True)

                raise GenerationFailedError(
                    "Presentation generation failed",
                    details={"reservation_id": reservation_id},
                ) from e

            logger.info(f"✅ Generation completed: {document.file_name}")
            return GenerationOutcome(
                reservation=reservation,
                document=document,
                content=content,
                image_report=image_report,
            )

    def cleanup(self, outcome: GenerationOutcome) -> None:
        """Removes the rendered files once the document has been delivered."""
        if outcome.document is not None:
            self.renderer.cleanup(outcome.document.temp_dir)


# Global service instance
_generation_service: Optional[GenerationService] = None


def get_generation_service() -> GenerationService:
    """Get or create the global generation service."""
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService()
    return _generation_service
