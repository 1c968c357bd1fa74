"""
OpenAI prompt for food identification.

One fixed instruction asking for a JSON-only reply; the image travels
alongside it in the same user message.
"""

import re
from typing import Any, Dict, List
from urllib.parse import urlparse

# ═══════════════════════════════════════════════════════════
# VISION PROMPT (static instructions)
# ═══════════════════════════════════════════════════════════

VISION_PROMPT = """Analyze this image and identify all food items visible.
Also extract any text visible in the image (labels, menus, packaging).

Return ONLY a JSON object, no markdown and no commentary, in this format:
{
  "foodItems": [
    {"name": "Food name", "confidence": 0.95}
  ],
  "extractedText": ["line of text", "another line"]
}

Rules:
- Capitalize the first letter of each food name (e.g. "Apple", "Grilled chicken")
- Use common, specific food names suitable for a nutrition database search
- confidence is a number between 0.0 and 1.0
- If no food is visible return an empty foodItems array
- If no text is visible return an empty extractedText array
"""

DEFAULT_IMAGE_MIME = "image/jpeg"

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<base64>;base64)?,", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════
# IMAGE REFERENCES
# ═══════════════════════════════════════════════════════════


def to_image_url(image_ref: str) -> str:
    """
    Normalize an image reference into something the vision API accepts.

    http(s) URLs and data URLs pass through; anything else is treated as a
    bare base64 payload and wrapped as a JPEG data URL.

    Example:
        >>> to_image_url("https://example.com/apple.jpg")
        'https://example.com/apple.jpg'
        >>> to_image_url("iVBORw0KGgo=")
        'data:image/jpeg;base64,iVBORw0KGgo='
    """
    ref = image_ref.strip()
    if ref.lower().startswith(("http://", "https://", "data:")):
        return ref
    return f"data:{DEFAULT_IMAGE_MIME};base64,{ref}"


def describe_image_ref(image_ref: str) -> Dict[str, Any]:
    """
    Metadata safe to log about an image reference (never the bytes).

    Example:
        >>> describe_image_ref("https://cdn.example.com/a.jpg")
        {'kind': 'url', 'length': 29, 'host': 'cdn.example.com'}
    """
    ref = image_ref.strip()
    lowered = ref.lower()

    if lowered.startswith(("http://", "https://")):
        return {"kind": "url", "length": len(ref), "host": urlparse(ref).hostname or ""}

    match = _DATA_URL.match(ref)
    if match:
        return {
            "kind": "data-url",
            "length": len(ref),
            "mime": match.group("mime") or "",
            "payload_length": len(ref) - match.end(),
        }

    return {"kind": "base64", "length": len(ref), "mime": DEFAULT_IMAGE_MIME}


def build_vision_messages(image_ref: str) -> List[Dict[str, Any]]:
    """
    Build the chat messages for one identification call.

    Args:
        image_ref: URL, data URL or bare base64 image

    Returns:
        Single user message with the prompt text and the image
    """
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": VISION_PROMPT},
                {"type": "image_url", "image_url": {"url": to_image_url(image_ref)}},
            ],
        }
    ]
