"""
Section store for one in-memory study.

The section set is closed over SECTION_DEFINITIONS: unknown ids are rejected,
never inserted. Replacing a section swaps in a new Section object for that id
only, so replacements of different sections never touch each other.
"""

import logging
from typing import Dict, List

from app.models.section_definitions import (
    QUIZ_SECTION_ID,
    SECTION_DEFINITIONS,
    humanize_section_id,
    is_known_section,
)
from app.schemas import QuizQuestion, Section, Study
from app.utils.document_model import Document
from app.utils.markup_parser import parse_markup
from app.utils.study_response_validator import normalize_quiz_content, parse_quiz_questions

logger = logging.getLogger(__name__)


class UnknownSectionError(KeyError):
    """The section id is not one of the canonical sections."""

    def __init__(self, section_id: str):
        super().__init__(section_id)
        self.section_id = section_id

    def __str__(self) -> str:
        return f"Unknown section '{self.section_id}'"


class StudyLockedError(Exception):
    """The study is finalised; its sections can no longer change."""

    def __init__(self, study_id: str):
        super().__init__(f"Study {study_id} is locked")
        self.study_id = study_id


class InvalidQuizContentError(ValueError):
    """Quiz content must be a JSON list of valid questions."""


class SectionStore:
    def __init__(self, study: Study):
        self.study = study

    def _index(self) -> Dict[str, int]:
        return {section.section_id: i for i, section in enumerate(self.study.sections)}

    def get(self, section_id: str) -> Section:
        if not is_known_section(section_id):
            raise UnknownSectionError(section_id)
        position = self._index().get(section_id)
        if position is None:
            # a known id with nothing stored yet
            return Section(section_id=section_id, content="", needs_regeneration=True)
        return self.study.sections[position]

    def replace_content(self, section_id: str, content: str) -> Section:
        """Replace one section's content; siblings are left untouched."""
        if not is_known_section(section_id):
            raise UnknownSectionError(section_id)
        if self.study.metadata.is_locked:
            raise StudyLockedError(self.study.id)

        if section_id == QUIZ_SECTION_ID:
            normalized = normalize_quiz_content(content)
            if normalized is None:
                raise InvalidQuizContentError("Quiz content has no valid questions")
            content = normalized

        current = self.get(section_id)
        updated = current.model_copy(
            update={"content": content, "needs_regeneration": not content.strip()}
        )
        position = self._index().get(section_id)
        if position is None:
            self.study.sections.append(updated)
            self.study.sections.sort(key=_canonical_position)
        else:
            self.study.sections[position] = updated
        logger.info("Replaced section %s of study %s", section_id, self.study.id)
        return updated

    def ordered_view(self) -> List[Section]:
        """All canonical sections in canonical order, each with a display title."""
        view = []
        for definition in SECTION_DEFINITIONS:
            section = self.get(definition.section_id)
            if not section.title:
                section = section.model_copy(update={"title": humanize_section_id(section.section_id)})
            view.append(section)
        return view

    def document(self, section_id: str) -> Document:
        if section_id == QUIZ_SECTION_ID:
            raise ValueError("The quiz section holds questions, not markup")
        return parse_markup(self.get(section_id).content)

    def quiz(self) -> List[QuizQuestion]:
        return parse_quiz_questions(self.get(QUIZ_SECTION_ID).content)


_POSITIONS = {d.section_id: i for i, d in enumerate(SECTION_DEFINITIONS)}


def _canonical_position(section: Section) -> int:
    return _POSITIONS.get(section.section_id, len(_POSITIONS))
