"""
Normalisation of stored studies.

Studies reach the service in several shapes: the current one, the browser
storage shape (``{metadata, content: {section_id: ...}}`` with camelCase keys)
and the editor shape (``{metadata, sections: [{sectionId, title, content}]}``).
``normalize_study`` maps all of them onto one Study with every canonical
section present, once, at the persistence boundary.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.config import DEFAULT_STUDY_IMAGE_URL, GUEST_OWNER_ID
from app.models.enums import StudyDifficulty, StudyLength
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_DEFINITIONS, SECTION_TITLES
from app.schemas import Section, Study, StudyMetadata, StudyStats, new_study_id
from app.utils.study_response_validator import normalize_quiz_content

logger = logging.getLogger(__name__)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # browser storage keeps epoch milliseconds
        seconds = value / 1000 if value > 10**11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning("Unparseable creation timestamp %r; using now", value)
    return datetime.now(timezone.utc)


def _to_enum(enum_cls, value: Any, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s %r; using %s", enum_cls.__name__, value, default.value)
        return default


def _stats(raw: Any) -> StudyStats:
    raw = raw if isinstance(raw, dict) else {}
    counts = {}
    for name in ("views", "likes", "shares", "clones"):
        value = raw.get(name, 0)
        counts[name] = value if isinstance(value, int) and value >= 0 else 0
    return StudyStats(**counts)


def _metadata(raw: Dict[str, Any]) -> StudyMetadata:
    return StudyMetadata(
        title=str(_pick(raw, "title", default="Untitled Study")),
        theme=str(_pick(raw, "theme", default="")),
        passages=str(_pick(raw, "passages", default="")),
        difficulty=_to_enum(StudyDifficulty, _pick(raw, "difficulty"), StudyDifficulty.introductory),
        length=_to_enum(StudyLength, _pick(raw, "length"), StudyLength.standard),
        created_at=_to_datetime(_pick(raw, "created_at", "createdAt")),
        is_public=bool(_pick(raw, "is_public", "isPublic", default=False)),
        is_locked=bool(_pick(raw, "is_locked", "isLocked", default=False)),
        image_url=_pick(raw, "image_url", "imageUrl", default=DEFAULT_STUDY_IMAGE_URL),
        stats=_stats(_pick(raw, "stats")),
    )


def _stored_sections(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Collect stored section values keyed by id, whatever shape they came in."""
    found: Dict[str, Dict[str, Any]] = {}

    sections = raw.get("sections")
    if isinstance(sections, list):
        for entry in sections:
            if not isinstance(entry, dict):
                continue
            section_id = _pick(entry, "section_id", "sectionId")
            if section_id:
                found[section_id] = entry
    elif isinstance(sections, dict):
        for section_id, value in sections.items():
            found[section_id] = {"content": value}

    content = raw.get("content")
    if isinstance(content, dict):
        for section_id, value in content.items():
            found.setdefault(section_id, {"content": value})

    unknown = sorted(set(found) - set(SECTION_TITLES))
    if unknown:
        logger.warning("Dropping unknown stored sections: %s", ", ".join(unknown))
    return found


def _section(section_id: str, entry: Optional[Dict[str, Any]]) -> Section:
    entry = entry or {}
    title = str(_pick(entry, "title", default=""))
    value = entry.get("content")

    if section_id == QUIZ_SECTION_ID:
        content = normalize_quiz_content(value) if value not in (None, "") else None
        if content is None:
            return Section(section_id=section_id, title=title, content="", needs_regeneration=True)
        return Section(section_id=section_id, title=title, content=content)

    if not isinstance(value, str) or not value.strip():
        return Section(section_id=section_id, title=title, content="", needs_regeneration=True)
    return Section(
        section_id=section_id,
        title=title,
        content=value,
        needs_regeneration=bool(_pick(entry, "needs_regeneration", "needsRegeneration", default=False)),
    )


def normalize_study(raw: Dict[str, Any]) -> Study:
    """Build the canonical Study from any stored representation."""
    if not isinstance(raw, dict):
        raise ValueError("A stored study must be a JSON object")

    raw_metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
    study_id = _pick(raw, "id") or _pick(raw_metadata, "id")
    if not study_id:
        study_id = new_study_id()
        logger.warning("Stored study had no id; assigned %s", study_id)
    owner_id = _pick(raw, "owner_id", "ownerId") or _pick(raw_metadata, "owner_id", "ownerId") or GUEST_OWNER_ID

    stored = _stored_sections(raw)
    return Study(
        id=str(study_id),
        owner_id=str(owner_id),
        metadata=_metadata(raw_metadata),
        sections=[_section(d.section_id, stored.get(d.section_id)) for d in SECTION_DEFINITIONS],
    )
