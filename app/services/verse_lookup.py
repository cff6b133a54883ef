import logging
from typing import Optional
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel

from app.config import BIBLE_API_TIMEOUT, BIBLE_API_URL, BIBLE_GATEWAY_URL, BIBLE_TRANSLATION
from app.utils.reference_scanner import normalize_reference

logger = logging.getLogger(__name__)


class VerseLookupError(RuntimeError):
    """Passage text could not be fetched for a reference."""

    def __init__(self, reference: str, message: str, not_found: bool = False):
        super().__init__(f"{reference}: {message}")
        self.reference = reference
        self.not_found = not_found


class VersePassage(BaseModel):
    reference: str
    text: str
    translation_name: str
    external_url: str


def bible_gateway_url(reference: str, translation: str = BIBLE_TRANSLATION) -> str:
    """Link to the same passage on Bible Gateway."""
    return f"{BIBLE_GATEWAY_URL}?{urlencode({'search': reference, 'version': translation.upper()})}"


def lookup_verse(reference: str, client: Optional[httpx.Client] = None, translation: str = BIBLE_TRANSLATION) -> VersePassage:
    """
    Fetch passage text for a reference from the bible-api service.

    Args:
        reference: Citation such as "John 3:16" or "Rom 8:1-4"
        client: Optional httpx client; a short-lived one is created otherwise
        translation: Translation id understood by the service

    Returns:
        The passage with the service's canonical reference and a Bible Gateway link
    """
    if not reference or not reference.strip():
        raise VerseLookupError(reference or "", "empty reference", not_found=True)
    query = normalize_reference(reference) or reference.strip()
    url = f"{BIBLE_API_URL.rstrip('/')}/{quote(query)}"

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=BIBLE_API_TIMEOUT)
    try:
        response = client.get(url, params={"translation": translation})
        if response.status_code == 404:
            raise VerseLookupError(query, "passage not found", not_found=True)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        logger.error("Verse lookup failed for %s: %s", query, e)
        raise VerseLookupError(query, f"verse service request failed: {e}") from e
    except ValueError as e:
        raise VerseLookupError(query, "verse service returned invalid JSON") from e
    finally:
        if owns_client:
            client.close()

    if not isinstance(data, dict):
        logger.error("Verse lookup for %s returned %s instead of an object", query, type(data).__name__)
        raise VerseLookupError(query, "verse service returned an unexpected payload")
    text = data.get("text", "")
    if not isinstance(text, str) or not text.strip():
        raise VerseLookupError(query, "passage not found", not_found=True)

    canonical = data.get("reference") or query
    return VersePassage(
        reference=canonical,
        text=text.strip(),
        translation_name=data.get("translation_name") or translation.upper(),
        external_url=bible_gateway_url(canonical, translation),
    )
