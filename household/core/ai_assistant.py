"""Claude AI integration — cosmetic photo analysis and the model catalog.

Calls the Anthropic API using the key stored in the settings table.  Photo
analysis asks for JSON matching COSMETIC_SCHEMA and parses it into an
AnalyzedCosmetic that the add form uses to pre-fill its fields.

The list of models available to the key is cached by a ModelCatalog object.
The web app owns one instance (app.state.model_catalog); tests build their
own with a fake clock.
"""

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from household.config import get_model, get_setting

logger = logging.getLogger(__name__)

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


def _get_api_key() -> Optional[str]:
    """Retrieve the Claude API key from the settings table, or None if not set."""
    return get_setting("claude_api_key")


def _get_client():
    """Create and return an Anthropic client. Raises ValueError if the API key is not set."""
    import anthropic
    api_key = _get_api_key()
    if not api_key:
        raise ValueError("Claude API key not set. Go to Settings to add your API key.")
    return anthropic.Anthropic(api_key=api_key)


@dataclass
class AnalyzedCosmetic:
    """Product details read off a photo. Every field may be missing."""
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    size: Optional[float] = None
    unit: Optional[str] = None
    pao_months: Optional[int] = None
    description: Optional[str] = None
    notes: Optional[str] = None


# JSON schema template included in the prompt so Claude returns structured data.
COSMETIC_SCHEMA = """
{
  "name": "Hydrating Toner",
  "brand": "Brand name",
  "category": "Skincare",
  "size": 150,
  "unit": "ml",
  "pao_months": 12,
  "description": "Alcohol-free toner for dry skin",
  "notes": "Batch code or storage hints printed on the pack"
}
"""

_PROMPT = f"""Identify the cosmetic product in this photo and return its details as JSON matching this schema exactly:
{COSMETIC_SCHEMA}

pao_months is the period-after-opening symbol (an open jar with e.g. "12M"); use null if it is not visible.
size is a number and unit its unit (ml, g, oz). Use null for anything you cannot read.

Return only the JSON, wrapped in ```json``` code fences."""


def _extract_json(text: str):
    """Pull a JSON value out of a reply, fenced or raw. Returns None if unparseable."""
    match = re.search(r"```(?:json)?\s*([\s\S]+?)\s*```", text or "")
    json_str = match.group(1) if match else (text or "").strip()
    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        return None


def _first_number(value) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        match = re.search(r"\d+(?:[.,]\d+)?", value)
        if match:
            return float(match.group(0).replace(",", "."))
    return None


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_cosmetic_json(text: str) -> Optional[AnalyzedCosmetic]:
    """Parse Claude's reply into an AnalyzedCosmetic, or None if it isn't a JSON object."""
    data = _extract_json(text)
    if not isinstance(data, dict):
        return None

    pao = _first_number(data.get("pao_months", data.get("paoMonths")))
    return AnalyzedCosmetic(
        name=_clean(data.get("name")),
        brand=_clean(data.get("brand")),
        category=_clean(data.get("category")),
        size=_first_number(data.get("size")),
        unit=_clean(data.get("unit")),
        pao_months=int(pao) if pao and pao > 0 else None,
        description=_clean(data.get("description")),
        notes=_clean(data.get("notes")),
    )


def analyze_cosmetic_image(image_bytes: bytes, media_type: str = "image/jpeg") -> Optional[AnalyzedCosmetic]:
    """Send a product photo to Claude and get back the details it can read."""
    if media_type not in SUPPORTED_MEDIA_TYPES:
        raise ValueError(f"Unsupported image type: {media_type}")
    if not image_bytes:
        raise ValueError("Image is empty")

    client = _get_client()
    data = base64.standard_b64encode(image_bytes).decode("utf-8")
    message = client.messages.create(
        model=get_model(),
        max_tokens=1024,
        messages=[{
            "role": "user",
            "content": [
                {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}},
                {"type": "text", "text": _PROMPT},
            ],
        }],
    )
    result = parse_cosmetic_json(message.content[0].text)
    if result is None:
        logger.warning("Could not parse cosmetic analysis reply")
    return result


def analyze_cosmetic_image_url(url: str) -> Optional[AnalyzedCosmetic]:
    """Fetch an image URL and analyze it."""
    try:
        response = httpx.get(url, follow_redirects=True, timeout=15)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise ValueError(f"Failed to fetch image: {e}")

    media_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip().lower()
    return analyze_cosmetic_image(response.content, media_type)


def list_models() -> list[str]:
    """Return the ids of models the configured key can use."""
    client = _get_client()
    return [model.id for model in client.models.list()]


def vision_capable(model_id: str) -> bool:
    """Claude 3 and later accept images; older generations don't."""
    model_id = (model_id or "").lower()
    if not model_id.startswith("claude-"):
        return False
    return not model_id.startswith(("claude-2", "claude-instant"))


class ModelCatalog:
    """Caches the model list for ttl_seconds.

    clock must return seconds as a float (time.monotonic by default).
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._models: Optional[list[str]] = None
        self._fetched_at = 0.0

    def get_models(self, fetch: Callable[[], list[str]] = None) -> list[str]:
        """Return cached model ids, calling fetch (list_models by default) when stale."""
        now = self._clock()
        if self._models is not None and now - self._fetched_at < self.ttl_seconds:
            return list(self._models)
        fetch = fetch or list_models
        self._models = list(fetch())
        self._fetched_at = now
        logger.info("Refreshed model catalog (%d models)", len(self._models))
        return list(self._models)

    def invalidate(self) -> None:
        """Drop the cache, e.g. after the API key changes."""
        self._models = None
