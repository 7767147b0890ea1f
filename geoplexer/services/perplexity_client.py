# geoplexer/services/perplexity_client.py

import json
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from geoplexer.core.config import settings
from geoplexer.core.errors import UpstreamError
from geoplexer.core.logging_config import logger
from geoplexer.models.schemas import AiResponse

MAX_RETRIES = 1
THINK_MARKER = "</think>"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
_IMAGE_URL = re.compile(r"\bhttps?://\S+\.(?:png|jpe?g|webp|gif)\b", re.IGNORECASE)


# ---------------- Response cleanup ----------------


def strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):].strip()
    if text.startswith("```"):
        text = text[3:].strip()
    if text.endswith("```"):
        text = text[:-3].strip()
    return text


def strip_think_content(text: str) -> str:
    """Drop the model's reasoning preamble, keep the answer."""
    if not text:
        return text
    idx = text.rfind(THINK_MARKER)
    if idx != -1:
        return text[idx + len(THINK_MARKER):].strip()
    return _THINK_BLOCK.sub("", text).strip()


def _message(data: Dict[str, Any]) -> Dict[str, Any]:
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return {}
    message = choices[0].get("message")
    return message if isinstance(message, dict) else {}


def extract_valid_json(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    content = _message(data).get("content") or ""
    if not isinstance(content, str) or not content:
        return None
    idx = content.rfind(THINK_MARKER)
    raw = content if idx == -1 else content[idx + len(THINK_MARKER):]
    try:
        parsed = json.loads(strip_code_fence(raw))
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _first_string_field(value: Any, names: Iterable[str]) -> Optional[str]:
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None
    for name in names:
        if isinstance(value.get(name), str):
            return value[name]
    return None


def normalize_link(value: Any) -> Optional[str]:
    return _first_string_field(value, ("url", "link", "href"))


def normalize_image(value: Any) -> Optional[str]:
    return _first_string_field(value, ("url", "image_url", "src"))


def collect_unique(values: Iterable[Optional[str]]) -> List[str]:
    return list(dict.fromkeys(value for value in values if value))


def extract_image_urls_from_text(text: str) -> List[str]:
    if not text:
        return []
    return _IMAGE_URL.findall(text)


def parse_completion(data: Dict[str, Any]) -> AiResponse:
    message = _message(data)
    raw_text = message.get("content") or "No AI response available."
    if not isinstance(raw_text, str):
        raw_text = "No AI response available."

    parsed = extract_valid_json(data)
    if parsed and isinstance(parsed.get("summary"), str):
        summary = parsed["summary"]
    else:
        summary = strip_think_content(raw_text)

    citations = data.get("citations") or message.get("citations") or []
    sources = [link for link in map(normalize_link, citations) if link]

    images = collect_unique(
        [normalize_image(item) for item in data.get("images") or []]
        + [normalize_image(item) for item in message.get("images") or []]
        + extract_image_urls_from_text(raw_text)
    )

    return AiResponse(summary=summary, images=images, sources=sources)


# ---------------- Provider call ----------------


async def _request_once(
    client: httpx.AsyncClient, system_prompt: str, user_prompt: str
) -> Dict[str, Any]:
    response = await client.post(
        settings.PERPLEXITY_API_URL,
        headers={"Authorization": f"Bearer {settings.PERPLEXITY_API_KEY}"},
        json={
            "model": settings.PERPLEXITY_MODEL,
            "return_images": True,
            "max_tokens": settings.PERPLEXITY_MAX_TOKENS,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.3,
        },
    )
    if response.is_error:
        raise UpstreamError(f"AI error {response.status_code}", response.status_code)

    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("AI response is not a JSON object")
    return data


async def call_perplexity(
    system_prompt: str,
    user_prompt: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AiResponse:
    """
    Ask the model for a summary and collect its images and citations.

    Timeouts are retried once. Every failure is folded into the summary
    text, so callers always get an AiResponse back.
    """
    if not settings.PERPLEXITY_API_KEY:
        return AiResponse(summary="AI is not configured yet.")

    timeout_s = settings.PERPLEXITY_TIMEOUT_MS / 1000

    try:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            for attempt in range(MAX_RETRIES + 1):
                try:
                    data = await _request_once(client, system_prompt, user_prompt)
                    break
                except httpx.TimeoutException:
                    if attempt == MAX_RETRIES:
                        raise
                    logger.warning(f"Perplexity timed out, retrying ({attempt + 1}/{MAX_RETRIES})")
    except httpx.TimeoutException:
        logger.error("Perplexity request timed out")
        return AiResponse(
            summary=f"AI request failed: AI request timed out after {settings.PERPLEXITY_TIMEOUT_MS}ms"
        )
    except (httpx.HTTPError, UpstreamError, ValueError) as exc:
        logger.error(f"Perplexity request failed: {exc}")
        message = str(exc)
        return AiResponse(summary=f"AI request failed: {message}" if message else "AI request failed.")

    result = parse_completion(data)
    logger.info(
        f"Perplexity summary: {len(result.summary)} chars, "
        f"{len(result.images)} images, {len(result.sources)} sources"
    )
    return result
