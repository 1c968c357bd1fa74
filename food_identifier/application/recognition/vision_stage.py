"""
Vision Stage.

Sends the image plus the fixed identification prompt to the vision model
and turns the reply into a VisionResult. Model failures come back as a
VisionError value, never as an exception.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Union

import structlog

from food_identifier.application.tracing.trace_logger import TraceLogger, TraceRef
from food_identifier.domain.recognition.models import (
    ParseStrategy,
    VisionError,
    VisionErrorKind,
    VisionResult,
)
from food_identifier.domain.recognition.parser import VisionResponseParser
from food_identifier.domain.recognition.ports import IVisionClient
from food_identifier.domain.recognition.prompts import (
    build_vision_messages,
    describe_image_ref,
)
from food_identifier.domain.shared.errors import RecognitionError
from food_identifier.domain.tracing.models import PipelineStage

logger = structlog.get_logger(__name__)

# Raw model output kept on the trace
MAX_LOGGED_RESPONSE_CHARS = 1000


class VisionStage:
    """
    Image → detected food candidates.

    Example:
        >>> stage = VisionStage(client=openai_client, trace_logger=trace_logger)
        >>> outcome = await stage.identify("https://example.com/apple.jpg", trace_id)
        >>> if isinstance(outcome, VisionResult):
        ...     print([c.name for c in outcome.candidates])
    """

    def __init__(
        self,
        client: IVisionClient,
        trace_logger: TraceLogger,
        parser: Optional[VisionResponseParser] = None,
        timeout_seconds: float = 30.0,
        temperature: float = 0.5,
        max_tokens: int = 1000,
    ):
        """
        Initialize stage.

        Args:
            client: Vision model client
            trace_logger: Trace event log
            parser: Reply parser (default VisionResponseParser)
            timeout_seconds: Upper bound for the model call
            temperature: Sampling temperature
            max_tokens: Max reply tokens
        """
        self.client = client
        self.trace_logger = trace_logger
        self.parser = parser or VisionResponseParser()
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def identify(
        self, image_ref: str, trace_id: TraceRef
    ) -> Union[VisionResult, VisionError]:
        """
        Identify foods in one image.

        Args:
            image_ref: http(s) URL, data URL or bare base64 image
            trace_id: Run correlation id

        Returns:
            VisionResult (possibly with zero candidates) or VisionError
        """
        if not isinstance(image_ref, str) or not image_ref.strip():
            return self._fail(trace_id, "Empty image reference")

        self.trace_logger.info(
            trace_id,
            PipelineStage.VISION_REQUEST,
            "Sending image to vision model",
            {
                "image": describe_image_ref(image_ref),
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        )

        try:
            response = await asyncio.wait_for(
                self.client.complete(
                    messages=build_vision_messages(image_ref),
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
            content = response.get("content") or ""
            if not content.strip():
                raise RecognitionError("Empty response from vision model")

        except asyncio.TimeoutError:
            return self._fail(
                trace_id, f"Vision model did not answer within {self.timeout_seconds}s"
            )
        except Exception as e:
            return self._fail(trace_id, str(e) or type(e).__name__, error_type=type(e).__name__)

        self.trace_logger.info(
            trace_id,
            PipelineStage.VISION_RESPONSE,
            "Vision model responded",
            {
                "content": content[:MAX_LOGGED_RESPONSE_CHARS],
                "content_length": len(content),
                "finish_reason": response.get("finish_reason"),
                "usage": response.get("usage", {}),
            },
        )

        parsed = self.parser.parse(content)

        if parsed.strategy == ParseStrategy.EXTRACTED:
            self.trace_logger.warn(
                trace_id,
                PipelineStage.VISION_RESPONSE,
                "Vision reply was not bare JSON, extracted embedded object",
                {"parse_error": parsed.error},
            )
        elif parsed.strategy == ParseStrategy.FAILED:
            self.trace_logger.error(
                trace_id,
                PipelineStage.VISION_RESPONSE,
                "Vision reply could not be parsed, continuing with no items",
                {"parse_error": parsed.error},
            )

        if parsed.dropped_items:
            self.trace_logger.warn(
                trace_id,
                PipelineStage.VISION_RESPONSE,
                "Dropped malformed food items",
                {"dropped_items": parsed.dropped_items},
            )

        self.trace_logger.info(
            trace_id,
            PipelineStage.VISION_RESPONSE,
            f"Identified {len(parsed.food_items)} food item(s)",
            {
                "food_items": [c.model_dump() for c in parsed.food_items],
                "extracted_text": parsed.extracted_text,
            },
        )

        return VisionResult(
            candidates=parsed.food_items,
            extracted_text=parsed.extracted_text,
        )

    def _fail(
        self, trace_id: TraceRef, message: str, error_type: Optional[str] = None
    ) -> VisionError:
        logger.warning("Vision stage failed", trace_id=str(trace_id), error=message)
        data = {"error": message}
        if error_type:
            data["error_type"] = error_type
        self.trace_logger.error(trace_id, PipelineStage.ERROR, "Vision request failed", data)
        return VisionError(kind=VisionErrorKind.API_ERROR, message=message)
