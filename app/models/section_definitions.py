"""Canonical section list of a study.

The order here is the order sections are generated, stored and displayed.
"""

from typing import Dict, List, NamedTuple


class SectionDefinition(NamedTuple):
    section_id: str
    title: str


QUIZ_SECTION_ID = "theological_quiz"

SECTION_DEFINITIONS: List[SectionDefinition] = [
    SectionDefinition("theme_summary", "Thematic Overview"),
    SectionDefinition("historical_context", "Historical & Cultural Context"),
    SectionDefinition("original_language_analysis", "Original Language Nuances"),
    SectionDefinition("literary_structure", "Literary Structure"),
    SectionDefinition("verse_by_verse", "Verse-by-Verse Exegesis"),
    SectionDefinition("cross_references", "Biblical Cross-References"),
    SectionDefinition("theological_synthesis", "Theological Synthesis"),
    SectionDefinition("practical_application", "Modern Application"),
    SectionDefinition("devotional_reflection", "Devotional Reflection"),
    SectionDefinition("prayer_guide", "Guided Prayer"),
    SectionDefinition("further_study", "Further Study Questions"),
    SectionDefinition(QUIZ_SECTION_ID, "Theological Quiz"),
]

SECTION_IDS: List[str] = [d.section_id for d in SECTION_DEFINITIONS]
SECTION_TITLES: Dict[str, str] = {d.section_id: d.title for d in SECTION_DEFINITIONS}
MARKUP_SECTION_IDS: List[str] = [sid for sid in SECTION_IDS if sid != QUIZ_SECTION_ID]


def is_known_section(section_id: str) -> bool:
    return section_id in SECTION_TITLES


def humanize_section_id(section_id: str) -> str:
    """'cross_references' -> 'Cross References'."""
    return " ".join(part.capitalize() for part in section_id.split("_") if part)
