import logging
from typing import Iterator

import httpx
from fastapi import APIRouter, Depends, HTTPException

from app.config import BIBLE_API_TIMEOUT
from app.services.verse_lookup import VerseLookupError, VersePassage, lookup_verse

logger = logging.getLogger(__name__)

router = APIRouter()


# Dependency to get the verse service client (overridden in tests)
def get_verse_client() -> Iterator[httpx.Client]:
    client = httpx.Client(timeout=BIBLE_API_TIMEOUT)
    try:
        yield client
    finally:
        client.close()


@router.get("/{reference}", response_model=VersePassage)
def get_verse(reference: str, client: httpx.Client = Depends(get_verse_client)):
    """
    Passage text for a verse reference, for the reference popover.
    """
    try:
        return lookup_verse(reference, client=client)
    except VerseLookupError as e:
        if e.not_found:
            raise HTTPException(status_code=404, detail="Could not load verse text.")
        raise HTTPException(status_code=502, detail="Could not load verse text.")
