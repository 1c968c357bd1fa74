"""
Pipeline Coordinator.

Runs one image through vision and nutrition resolution under a single
trace id. Stage failures are absorbed and logged; only vision-failed and
no-food-detected reach the caller, as PipelineError values.

Flow:
1. TraceId + image-upload event
2. VisionStage.identify
3. BatchNutritionOrchestrator.resolve_all over candidate names
4. Zip candidates with details (detection order) + final-item event
"""

from __future__ import annotations

from typing import Any, Optional, Union

import structlog

from food_identifier.application.nutrition.batch import BatchNutritionOrchestrator
from food_identifier.application.recognition.vision_stage import VisionStage
from food_identifier.application.tracing.trace_logger import TraceLogger, TraceRef
from food_identifier.domain.nutrition.models import FoodItemDetail
from food_identifier.domain.pipeline.models import (
    PipelineError,
    PipelineErrorKind,
    PipelineResult,
    PipelineState,
)
from food_identifier.domain.recognition.models import VisionError
from food_identifier.domain.recognition.prompts import describe_image_ref
from food_identifier.domain.shared.value_objects import TraceId
from food_identifier.domain.tracing.models import LogEvent, PipelineStage, TraceSummary

logger = structlog.get_logger(__name__)

DEFAULT_LOW_CONFIDENCE_THRESHOLD = 0.3


class PipelineCoordinator:
    """
    Image → ordered food rows with nutrition.

    Example:
        >>> coordinator = PipelineCoordinator(vision_stage, batch, trace_logger)
        >>> outcome = await coordinator.run("https://example.com/lunch.jpg")
        >>> if isinstance(outcome, PipelineResult):
        ...     for item in outcome:
        ...         print(item.name, item.nutrition.calories)
        ... else:
        ...     print(outcome.user_message)
    """

    def __init__(
        self,
        vision_stage: VisionStage,
        batch: BatchNutritionOrchestrator,
        trace_logger: TraceLogger,
        low_confidence_threshold: float = DEFAULT_LOW_CONFIDENCE_THRESHOLD,
    ):
        """
        Initialize coordinator.

        Args:
            vision_stage: Image → candidates
            batch: Names → nutrition records
            trace_logger: Trace event log (shared with the stages)
            low_confidence_threshold: Warn when every candidate is below it
        """
        self.vision_stage = vision_stage
        self.batch = batch
        self.trace_logger = trace_logger
        self.low_confidence_threshold = low_confidence_threshold

    async def run(
        self, image_ref: str, trace_id: Optional[TraceRef] = None
    ) -> Union[PipelineResult, PipelineError]:
        """
        Identify foods in an image and resolve their nutrition.

        Args:
            image_ref: http(s) URL, data URL or bare base64 image
            trace_id: Pre-created trace id (generated if None)

        Returns:
            PipelineResult, or PipelineError for vision-failed /
            no-food-detected
        """
        trace = self._resolve_trace_id(trace_id)
        tid = str(trace)

        self.trace_logger.info(
            trace,
            PipelineStage.IMAGE_UPLOAD,
            "Image received",
            {"image": describe_image_ref(image_ref) if isinstance(image_ref, str) else {}},
        )
        state = self._transition(tid, PipelineState.UPLOADED, PipelineState.VISION_PENDING)

        vision = await self.vision_stage.identify(image_ref, trace)

        if isinstance(vision, VisionError):
            self._transition(tid, state, PipelineState.VISION_FAILED)
            self.trace_logger.error(
                trace,
                PipelineStage.ERROR,
                "Food identification failed",
                {"kind": PipelineErrorKind.VISION_FAILED.value, "error": vision.message},
            )
            return PipelineError(
                kind=PipelineErrorKind.VISION_FAILED,
                message=vision.message,
                trace_id=tid,
            )

        state = self._transition(tid, state, PipelineState.VISION_DONE)
        candidates = vision.candidates

        if not candidates:
            self.trace_logger.warn(
                trace,
                PipelineStage.VISION_RESPONSE,
                "No food items detected in image",
                {"extracted_text": vision.extracted_text},
            )
            return PipelineError(
                kind=PipelineErrorKind.NO_FOOD_DETECTED,
                message="No food items detected in image",
                trace_id=tid,
            )

        low_confidence = all(c.confidence < self.low_confidence_threshold for c in candidates)
        if low_confidence:
            self.trace_logger.warn(
                trace,
                PipelineStage.VISION_RESPONSE,
                "Food items detected with low confidence, results may not be accurate",
                {
                    "threshold": self.low_confidence_threshold,
                    "confidences": [c.confidence for c in candidates],
                },
            )

        state = self._transition(tid, state, PipelineState.NUTRITION_PENDING)
        details = await self.batch.resolve_all([c.name for c in candidates], trace)

        items: list[FoodItemDetail] = []
        for candidate in candidates:
            detail = details.get(candidate.name) or FoodItemDetail.fallback(candidate.name)
            items.append(detail.with_identity(candidate.name, candidate.confidence or None))

        self.trace_logger.info(
            trace,
            PipelineStage.FINAL_ITEM,
            f"Identified {len(items)} food item(s)",
            {
                "items": [self._summarize(item) for item in items],
                "low_confidence": low_confidence,
            },
        )
        self._transition(tid, state, PipelineState.COMPLETE)

        return PipelineResult(
            trace_id=tid,
            items=items,
            extracted_text=vision.extracted_text,
            low_confidence=low_confidence,
        )

    # ─────────────────────────── inspection ───────────────────────────

    def get_trace_events(self, trace_id: TraceRef) -> list[LogEvent]:
        """All events of one run, oldest first."""
        return self.trace_logger.by_trace(trace_id)

    def list_trace_summaries(self) -> list[TraceSummary]:
        """One summary per run, most recent first."""
        return self.trace_logger.all_trace_summaries()

    # ──────────────────────────── internals ───────────────────────────

    @staticmethod
    def _resolve_trace_id(trace_id: Optional[TraceRef]) -> TraceId:
        if trace_id is None:
            return TraceId.generate()
        if isinstance(trace_id, TraceId):
            return trace_id
        return TraceId.from_string(trace_id)

    @staticmethod
    def _transition(trace_id: str, current: PipelineState, new: PipelineState) -> PipelineState:
        logger.debug(
            "Pipeline state change",
            trace_id=trace_id,
            from_state=current.value,
            to_state=new.value,
        )
        return new

    @staticmethod
    def _summarize(item: FoodItemDetail) -> dict[str, Any]:
        return {
            "name": item.name,
            "source": item.source.value,
            "source_id": item.source_id,
            "confidence": item.confidence,
            "calories": item.nutrition.calories,
        }
