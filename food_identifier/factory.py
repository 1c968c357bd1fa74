"""
Pipeline wiring.

Opens the real provider clients and assembles a PipelineCoordinator.

Example:
    >>> settings = Settings.from_env()
    >>> async with build_pipeline(settings) as pipeline:
    ...     outcome = await pipeline.run("https://example.com/lunch.jpg")
    ...     events = pipeline.get_trace_events(outcome.trace_id)
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from food_identifier.application.nutrition.batch import BatchNutritionOrchestrator
from food_identifier.application.nutrition.resolver import NutritionResolver
from food_identifier.application.pipeline.coordinator import PipelineCoordinator
from food_identifier.application.recognition.vision_stage import VisionStage
from food_identifier.application.tracing.trace_logger import TraceLogger
from food_identifier.config import Settings
from food_identifier.infrastructure.ai.openai_client import OpenAIClient
from food_identifier.infrastructure.openfoodfacts.api_client import OpenFoodFactsClient
from food_identifier.infrastructure.tracing.http_forwarder import HttpLogForwarder
from food_identifier.infrastructure.usda.api_client import USDAApiClient
from food_identifier.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def build_pipeline(
    settings: Optional[Settings] = None,
    trace_logger: Optional[TraceLogger] = None,
    configure_logs: bool = True,
) -> AsyncIterator[PipelineCoordinator]:
    """
    Yield a ready coordinator; close clients and flush traces on exit.

    Args:
        settings: Configuration (Settings.from_env() if None)
        trace_logger: Existing trace log to reuse (new in-memory one if None)
        configure_logs: Apply LOG_LEVEL / LOG_JSON to stdlib logging and structlog

    Raises:
        ConfigurationError: Missing OpenAI key or invalid settings
    """
    settings = settings or Settings.from_env()
    if configure_logs:
        configure_logging(settings.log_level, settings.log_json)

    async with AsyncExitStack() as stack:
        if trace_logger is None:
            forwarder = None
            if settings.trace_forward_url:
                forwarder = await stack.enter_async_context(
                    HttpLogForwarder(settings.trace_forward_url)
                )
            trace_logger = TraceLogger(forwarder=forwarder)

        vision_client = await stack.enter_async_context(
            OpenAIClient(
                api_key=settings.openai_api_key,
                model=settings.openai_vision_model,
                timeout=settings.vision_timeout_seconds,
            )
        )
        usda_client = await stack.enter_async_context(
            USDAApiClient(
                api_key=settings.usda_api_key,
                timeout_seconds=settings.nutrition_provider_timeout_seconds,
                max_retries=settings.nutrition_provider_max_retries,
                confidence=settings.usda_confidence,
            )
        )
        off_client = await stack.enter_async_context(
            OpenFoodFactsClient(
                timeout_seconds=settings.nutrition_provider_timeout_seconds,
                max_retries=settings.nutrition_provider_max_retries,
                confidence=settings.off_confidence,
            )
        )

        # Registered last so it runs first on exit, while the forwarder is open
        stack.push_async_callback(trace_logger.flush)

        resolver = NutritionResolver(
            usda_client=usda_client,
            off_client=off_client,
            trace_logger=trace_logger,
            # Covers every client attempt plus backoff
            provider_timeout_seconds=max(
                usda_client.retry_budget_seconds, off_client.retry_budget_seconds
            ),
            page_size=settings.nutrition_search_page_size,
        )

        coordinator = PipelineCoordinator(
            vision_stage=VisionStage(
                client=vision_client,
                trace_logger=trace_logger,
                timeout_seconds=settings.vision_timeout_seconds,
                temperature=settings.vision_temperature,
                max_tokens=settings.vision_max_tokens,
            ),
            batch=BatchNutritionOrchestrator(
                resolver=resolver,
                trace_logger=trace_logger,
                max_concurrency=settings.nutrition_max_concurrency,
            ),
            trace_logger=trace_logger,
            low_confidence_threshold=settings.low_confidence_threshold,
        )

        logger.info(
            "Pipeline ready",
            vision_model=settings.openai_vision_model,
            trace_forwarding=bool(settings.trace_forward_url),
        )
        yield coordinator
