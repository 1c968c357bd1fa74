"""
Batch Nutrition Orchestrator.

Resolves many food names concurrently, one lookup per distinct name.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

import structlog

from food_identifier.application.nutrition.resolver import NutritionResolver
from food_identifier.application.tracing.trace_logger import TraceLogger, TraceRef
from food_identifier.domain.nutrition.models import FoodItemDetail
from food_identifier.domain.tracing.models import PipelineStage

logger = structlog.get_logger(__name__)


class BatchNutritionOrchestrator:
    """
    Fan out NutritionResolver.resolve over distinct names.

    The returned mapping has exactly one entry per distinct input name,
    keyed by the original string (case preserved), in first-occurrence
    order.

    Example:
        >>> batch = BatchNutritionOrchestrator(resolver, trace_logger)
        >>> details = await batch.resolve_all(["Apple", "Banana", "Apple"], trace_id)
        >>> assert list(details) == ["Apple", "Banana"]
    """

    def __init__(
        self,
        resolver: NutritionResolver,
        trace_logger: TraceLogger,
        max_concurrency: Optional[int] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            resolver: Per-name resolver
            trace_logger: Trace event log
            max_concurrency: Max names in flight (None or <= 0 = unbounded)
        """
        self.resolver = resolver
        self.trace_logger = trace_logger
        self.max_concurrency = max_concurrency if max_concurrency and max_concurrency > 0 else None

    async def resolve_all(
        self, names: Iterable[str], trace_id: TraceRef
    ) -> dict[str, FoodItemDetail]:
        """
        Resolve every distinct name.

        Args:
            names: Food names, duplicates allowed
            trace_id: Run correlation id

        Returns:
            name → FoodItemDetail (default row where nothing was found)
        """
        unique_names = list(dict.fromkeys(names))
        if not unique_names:
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def guarded(name: str) -> FoodItemDetail:
            if semaphore is None:
                return await self._resolve_one(name, trace_id)
            async with semaphore:
                return await self._resolve_one(name, trace_id)

        details = await asyncio.gather(*(guarded(name) for name in unique_names))
        return dict(zip(unique_names, details))

    async def _resolve_one(self, name: str, trace_id: TraceRef) -> FoodItemDetail:
        try:
            return await self.resolver.resolve(name, trace_id)
        except Exception as e:
            # resolve() should not raise; keep the one-row-per-name contract if it does
            logger.error(
                "Unexpected nutrition failure",
                food_name=name,
                trace_id=str(trace_id),
                error=str(e),
            )
            self.trace_logger.error(
                trace_id,
                PipelineStage.ERROR,
                f"Nutrition lookup crashed for {name}, using default",
                {"food_name": name, "error": str(e), "error_type": type(e).__name__},
            )
            return FoodItemDetail.fallback(name)
