import json

import pytest

from app.models.enums import StudyDifficulty, StudyLength
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_IDS
from app.schemas import Section, Study, StudyMetadata
from app.services.section_store import (
    InvalidQuizContentError,
    SectionStore,
    StudyLockedError,
    UnknownSectionError,
)
from app.utils.study_response_validator import validate_study_response


@pytest.fixture
def study(raw_response):
    return validate_study_response(
        raw_response, StudyDifficulty.introductory, StudyLength.standard, link_references=False
    )


def test_replace_touches_only_the_named_section(study):
    store = SectionStore(study)
    before = {s.section_id: (s, s.model_dump()) for s in study.sections}

    updated = store.replace_content("cross_references", "<p>Fresh <bible-verse reference=\"Acts 2:38\">Acts 2:38</bible-verse></p>")

    assert updated.content.startswith("<p>Fresh")
    assert store.get("cross_references") is updated
    for section in study.sections:
        if section.section_id == "cross_references":
            continue
        original, dumped = before[section.section_id]
        assert section is original
        assert section.model_dump() == dumped
    # the replaced object itself was swapped, not mutated
    assert before["cross_references"][0].content != updated.content


def test_replace_clears_regeneration_flag():
    study = Study(
        metadata=StudyMetadata(title="t"),
        sections=[Section(section_id="prayer_guide", content="", needs_regeneration=True)],
    )
    section = SectionStore(study).replace_content("prayer_guide", "<p>Pray.</p>")
    assert not section.needs_regeneration


def test_unknown_section_is_rejected(study):
    store = SectionStore(study)
    with pytest.raises(UnknownSectionError):
        store.replace_content("literary_genre", "<p>x</p>")
    with pytest.raises(UnknownSectionError):
        store.get("nope")
    assert [s.section_id for s in study.sections] == SECTION_IDS


def test_locked_study_rejects_writes(study):
    study.metadata.is_locked = True
    with pytest.raises(StudyLockedError):
        SectionStore(study).replace_content("prayer_guide", "<p>x</p>")


def test_quiz_replacement_is_validated(study):
    store = SectionStore(study)
    with pytest.raises(InvalidQuizContentError):
        store.replace_content(QUIZ_SECTION_ID, "<p>not a quiz</p>")

    section = store.replace_content(QUIZ_SECTION_ID, json.dumps([{"q": "Q?", "o": ["a", "b", "c", "d"], "a": 2}]))
    assert json.loads(section.content)[0]["correctAnswerIndex"] == 2
    assert store.quiz()[0].question == "Q?"


def test_ordered_view_fills_gaps_and_titles():
    study = Study(
        metadata=StudyMetadata(title="t"),
        sections=[
            Section(section_id="prayer_guide", content="<p>Pray.</p>"),
            Section(section_id="theme_summary", title="Overview", content="<p>Theme.</p>"),
        ],
    )
    view = SectionStore(study).ordered_view()

    assert [s.section_id for s in view] == SECTION_IDS
    assert view[0].title == "Overview"
    prayer = view[SECTION_IDS.index("prayer_guide")]
    assert prayer.title == "Prayer Guide"
    assert prayer.content == "<p>Pray.</p>"
    assert view[SECTION_IDS.index("cross_references")].needs_regeneration


def test_replacing_a_section_missing_from_storage_keeps_canonical_order():
    study = Study(metadata=StudyMetadata(title="t"), sections=[Section(section_id="further_study", content="<p>a</p>")])
    SectionStore(study).replace_content("theme_summary", "<p>b</p>")
    assert [s.section_id for s in study.sections] == ["theme_summary", "further_study"]


def test_document_parses_section_markup(study):
    store = SectionStore(study)
    document = store.document("verse_by_verse")
    assert [v.reference for v in document.verse_references()] == ["John 3:16"]
    with pytest.raises(ValueError):
        store.document(QUIZ_SECTION_ID)
