"""
Study response validator module.
Turns raw model output into a validated Study (full generation) or into
section markup (single-section regeneration).
"""

import enum
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app.config import AUTO_LINK_REFERENCES, GUEST_OWNER_ID
from app.models.enums import StudyDifficulty, StudyLength
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_DEFINITIONS, SECTION_TITLES
from app.schemas import QuizQuestion, Section, Study, StudyMetadata
from app.utils.markup_parser import annotate_markup

logger = logging.getLogger(__name__)

REGENERATION_PLACEHOLDER = "<p>Failed to regenerate content.</p>"

# ```json / ```html / bare ``` markers anywhere in the text
CODE_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*")


class GenerationErrorKind(str, enum.Enum):
    MALFORMED_RESPONSE = "MalformedResponse"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"


class GenerationError(Exception):
    """A generation attempt failed; no study or section was changed."""

    def __init__(self, kind: GenerationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class EmptyContentError(ValueError):
    """Regenerated markup was empty after cleanup."""


def strip_code_fences(text: Optional[str]) -> str:
    """Remove code-fence markers; they are never part of the content."""
    if not text:
        return ""
    return CODE_FENCE_PATTERN.sub("", text).strip()


def _load_json_object(raw: str) -> Dict[str, Any]:
    cleaned = strip_code_fences(raw)
    if not cleaned:
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Empty response from the model")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Fallback: a JSON object surrounded by prose
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Response is not JSON")
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Response JSON is not an object")
    return data


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

def parse_quiz_questions(value: Any) -> List[QuizQuestion]:
    """Accept a native list or a JSON-encoded list; drop invalid questions."""
    if isinstance(value, str):
        try:
            value = json.loads(strip_code_fences(value))
        except json.JSONDecodeError:
            logger.warning("Quiz content is not valid JSON")
            return []
    if isinstance(value, dict):
        value = value.get("questions", value.get("quiz"))
    if not isinstance(value, list):
        return []

    questions: List[QuizQuestion] = []
    for index, item in enumerate(value):
        try:
            questions.append(QuizQuestion.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping quiz question %d: %s", index, e.errors()[0].get("msg"))
    return questions


def encode_quiz(questions: List[QuizQuestion]) -> str:
    return json.dumps([q.model_dump(by_alias=True, exclude_none=True) for q in questions], ensure_ascii=False)


def normalize_quiz_content(value: Any) -> Optional[str]:
    """Canonical string form of a quiz, or None when no question is usable."""
    questions = parse_quiz_questions(value)
    if not questions:
        return None
    return encode_quiz(questions)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _markup_section(section_id: str, value: Any, link_references: bool) -> Section:
    title = SECTION_TITLES[section_id]
    if not isinstance(value, str) or not value.strip():
        logger.warning("Section %s missing or not a string; marking for regeneration", section_id)
        return Section(section_id=section_id, title=title, content="", needs_regeneration=True)
    content = strip_code_fences(value)
    if link_references:
        content = annotate_markup(content)
    if not content.strip():
        logger.warning("Section %s has no usable markup; marking for regeneration", section_id)
        return Section(section_id=section_id, title=title, content="", needs_regeneration=True)
    return Section(section_id=section_id, title=title, content=content)


def _quiz_section(value: Any) -> Section:
    title = SECTION_TITLES[QUIZ_SECTION_ID]
    content = normalize_quiz_content(value)
    if content is None:
        logger.warning("Quiz section missing or invalid; marking for regeneration")
        return Section(section_id=QUIZ_SECTION_ID, title=title, content="", needs_regeneration=True)
    return Section(section_id=QUIZ_SECTION_ID, title=title, content=content)


def build_sections(raw_sections: Dict[str, Any], link_references: bool = AUTO_LINK_REFERENCES) -> List[Section]:
    """One Section per canonical id, in canonical order. Bad values never abort siblings."""
    unknown = sorted(set(raw_sections) - set(SECTION_TITLES))
    if unknown:
        logger.warning("Ignoring unknown section keys: %s", ", ".join(unknown))

    sections = []
    for definition in SECTION_DEFINITIONS:
        value = raw_sections.get(definition.section_id)
        if definition.section_id == QUIZ_SECTION_ID:
            sections.append(_quiz_section(value))
        else:
            sections.append(_markup_section(definition.section_id, value, link_references))
    return sections


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

def validate_study_response(
    raw: str,
    difficulty: StudyDifficulty,
    length: StudyLength,
    topic: Optional[str] = None,
    owner_id: Optional[str] = None,
    link_references: bool = AUTO_LINK_REFERENCES,
) -> Study:
    """
    Validate a full-study response and build the Study.

    Raises GenerationError(MALFORMED_RESPONSE) when the text is not a JSON
    object with a ``sections`` object. Individual bad sections are marked
    ``needs_regeneration`` instead.
    """
    data = _load_json_object(raw)

    raw_sections = data.get("sections")
    if not isinstance(raw_sections, dict):
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Response has no 'sections' object")

    title = _as_text(data.get("title")) or (topic or "").strip()
    if not title:
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Response has no title")

    metadata = StudyMetadata(
        title=title,
        theme=_as_text(data.get("theme")),
        passages=_as_text(data.get("passages")),
        difficulty=difficulty,
        length=length,
    )
    return Study(
        owner_id=owner_id or GUEST_OWNER_ID,
        metadata=metadata,
        sections=build_sections(raw_sections, link_references=link_references),
    )


def _require_content(text: str) -> str:
    if not text:
        raise EmptyContentError("Regenerated section is empty")
    return text


def clean_section_markup(raw: Optional[str], link_references: bool = AUTO_LINK_REFERENCES) -> str:
    """Regeneration contract: raw markup, fences stripped, never empty."""
    content = strip_code_fences(raw)
    if content and link_references:
        content = annotate_markup(content)
    try:
        return _require_content(content)
    except EmptyContentError as e:
        logger.warning("%s; using placeholder", e)
        return REGENERATION_PLACEHOLDER


def clean_quiz_response(raw: Optional[str]) -> str:
    """Regeneration contract for the quiz section: a JSON list of questions."""
    content = normalize_quiz_content(strip_code_fences(raw))
    if content is None:
        raise GenerationError(GenerationErrorKind.MALFORMED_RESPONSE, "Regenerated quiz has no valid questions")
    return content
