# geoplexer/services/image_proxy.py

import ipaddress
import re
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit, SplitResult

import httpx

from geoplexer.core.config import settings
from geoplexer.core.logging_config import logger

MAX_URL_LENGTH = 2048
CACHE_CONTROL = "public, max-age=86400, s-maxage=86400"

_DOTTED_QUAD = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")


class ImageFetchError(Exception):
    pass


class UnsupportedImageError(Exception):
    pass


def is_private_hostname(hostname: str) -> bool:
    lower = hostname.lower()
    if lower == "localhost" or lower.endswith(".local"):
        return True
    # Any IPv6 literal is refused outright
    if ":" in lower:
        return True

    if not _DOTTED_QUAD.match(lower):
        return False
    try:
        address = ipaddress.IPv4Address(lower)
    except ValueError:
        # Out-of-range octets, leading zeros and the like
        return True
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
    )


def parse_image_url(raw: Optional[str]) -> Optional[SplitResult]:
    if not raw:
        return None
    trimmed = raw.strip()
    if not trimmed or len(trimmed) > MAX_URL_LENGTH:
        return None

    try:
        url = urlsplit(unquote(trimmed))
    except ValueError:
        return None
    if url.scheme not in ("http", "https"):
        return None
    if not url.hostname or is_private_hostname(url.hostname):
        return None
    return url


async def fetch_image(
    url: SplitResult,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[bytes, str]:
    """
    Returns (body, content type). Raises ImageFetchError on transport or
    status failure and UnsupportedImageError when the body is not an image.
    """
    try:
        async with httpx.AsyncClient(
            timeout=settings.IMAGE_PROXY_TIMEOUT_MS / 1000, transport=transport
        ) as client:
            response = await client.get(url.geturl())
    except httpx.HTTPError as exc:
        logger.warning(f"Image proxy fetch failed for {url.hostname}: {exc!r}")
        raise ImageFetchError(str(exc)) from exc

    if response.is_error:
        raise ImageFetchError(f"upstream status {response.status_code}")

    content_type = response.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise UnsupportedImageError(content_type)

    return response.content, content_type
