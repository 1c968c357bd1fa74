"""
Ports (Interfaces) for food recognition dependencies.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IVisionClient(Protocol):
    """
    Port for a multimodal chat-completion model.

    Implemented by OpenAIClient; tests substitute an AsyncMock.
    """

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        response_format: Optional[Dict[str, str]] = None,
        temperature: float = 0.5,
        max_tokens: int = 1000,
    ) -> Dict[str, Any]:
        """
        Run one completion.

        Returns:
            Dict with "content", "finish_reason" and "usage"

        Raises:
            ExternalServiceError: On any API failure
        """
        ...
