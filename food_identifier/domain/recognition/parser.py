"""
Vision response parser.

Turns free-text model output into a validated ParsedVisionResponse.
The model is asked for bare JSON but may wrap it in markdown fences,
surround it with prose, or truncate it; none of that may crash a run.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator, List, Optional, Tuple

from food_identifier.domain.recognition.models import (
    DetectedFoodCandidate,
    ParsedVisionResponse,
    ParseStrategy,
    clamp_confidence,
)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
_OBJECT_SPAN_LAZY = re.compile(r"\{[\s\S]*?\}")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")

# Caps the brace scan on very long replies
_MAX_SCAN_STARTS = 50


class VisionResponseParser:
    """
    Layered parser for vision model replies.

    Layers, in order:
    1. json.loads of the whole text
    2. fenced ```json block, any fenced block, first {...} span (lazy
       then greedy), then a raw_decode scan from each "{"
    3. empty-but-valid result

    Normalization runs on every parsed payload: names trimmed (empty
    dropped), confidences coerced and clamped to [0, 1].

    Example:
        >>> parser = VisionResponseParser()
        >>> result = parser.parse(
        ...     '```json\\n{"foodItems": [{"name": "Apple", '
        ...     '"confidence": 0.9}], "extractedText": []}\\n```'
        ... )
        >>> assert result.food_items[0].name == "Apple"
        >>> assert result.strategy == ParseStrategy.EXTRACTED
    """

    def parse(self, raw_text: Any) -> ParsedVisionResponse:
        """
        Parse raw model text. Never raises.

        Args:
            raw_text: Model reply (expected str)

        Returns:
            Normalized response; empty with strategy FAILED if unparseable
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            return ParsedVisionResponse.empty(error="Empty vision response")

        payload = self._load_object(raw_text)
        if payload is not None:
            return self._normalize(payload, ParseStrategy.DIRECT)

        direct_error = self._direct_error(raw_text)

        for candidate in self._extract_candidates(raw_text):
            payload = self._load_object(self._strip_fences(candidate))
            if payload is not None:
                return self._normalize(payload, ParseStrategy.EXTRACTED, error=direct_error)

        payload = self._scan_for_object(raw_text)
        if payload is not None:
            return self._normalize(payload, ParseStrategy.EXTRACTED, error=direct_error)

        return ParsedVisionResponse.empty(
            error=f"Could not extract JSON from response: {direct_error}"
        )

    # ───────────────────────────── layers ─────────────────────────────

    @staticmethod
    def _load_object(text: str) -> Optional[dict[str, Any]]:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError, RecursionError):
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _direct_error(text: str) -> str:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, ValueError, RecursionError) as e:
            return str(e)
        return f"Expected JSON object, got {type(data).__name__}"

    @staticmethod
    def _extract_candidates(text: str) -> Iterator[str]:
        for pattern in (_JSON_FENCE, _ANY_FENCE):
            match = pattern.search(text)
            if match:
                yield match.group(1)

        for pattern in (_OBJECT_SPAN_LAZY, _OBJECT_SPAN):
            span = pattern.search(text)
            if span:
                yield span.group(0)

    @staticmethod
    def _strip_fences(text: str) -> str:
        text = _LEADING_FENCE.sub("", text.strip())
        return _TRAILING_FENCE.sub("", text).strip()

    @staticmethod
    def _scan_for_object(text: str) -> Optional[dict[str, Any]]:
        decoder = json.JSONDecoder()
        for count, match in enumerate(re.finditer(r"\{", text)):
            if count >= _MAX_SCAN_STARTS:
                break
            try:
                data, _ = decoder.raw_decode(text, match.start())
            except (json.JSONDecodeError, ValueError, RecursionError):
                continue
            if isinstance(data, dict):
                return data
        return None

    # ────────────────────────── normalization ─────────────────────────

    def _normalize(
        self,
        payload: dict[str, Any],
        strategy: ParseStrategy,
        error: Optional[str] = None,
    ) -> ParsedVisionResponse:
        raw_items = payload.get("foodItems", payload.get("food_items", []))
        raw_text = payload.get("extractedText", payload.get("extracted_text", []))

        items, dropped = self._normalize_items(raw_items)

        return ParsedVisionResponse(
            food_items=items,
            extracted_text=self._normalize_text(raw_text),
            strategy=strategy,
            error=error,
            dropped_items=dropped,
        )

    @staticmethod
    def _normalize_items(raw_items: Any) -> Tuple[List[DetectedFoodCandidate], int]:
        if not isinstance(raw_items, list):
            return [], 0

        items: List[DetectedFoodCandidate] = []
        dropped = 0
        for raw_item in raw_items:
            if not isinstance(raw_item, dict):
                dropped += 1
                continue

            name = raw_item.get("name")
            name = name.strip() if isinstance(name, str) else ""
            if not name:
                dropped += 1
                continue

            items.append(
                DetectedFoodCandidate(
                    name=name,
                    confidence=clamp_confidence(raw_item.get("confidence")),
                )
            )

        return items, dropped

    @staticmethod
    def _normalize_text(raw_text: Any) -> List[str]:
        if not isinstance(raw_text, list):
            return []
        return [line.strip() for line in raw_text if isinstance(line, str) and line.strip()]
