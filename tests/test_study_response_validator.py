import json

import pytest

from conftest import make_payload
from app.models.enums import StudyDifficulty, StudyLength
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_IDS
from app.utils.study_response_validator import (
    REGENERATION_PLACEHOLDER,
    GenerationError,
    GenerationErrorKind,
    clean_quiz_response,
    clean_section_markup,
    parse_quiz_questions,
    strip_code_fences,
    validate_study_response,
)


def _validate(raw, **kwargs):
    kwargs.setdefault("link_references", False)
    return validate_study_response(raw, StudyDifficulty.intermediate, StudyLength.brief, **kwargs)


def test_full_response_yields_all_sections_in_order(payload):
    study = _validate(json.dumps(payload))

    assert [s.section_id for s in study.sections] == SECTION_IDS
    assert not any(s.needs_regeneration for s in study.sections)
    assert study.metadata.title == "Light in the Darkness"
    assert study.metadata.difficulty == StudyDifficulty.intermediate
    assert study.metadata.length == StudyLength.brief
    assert study.sections[1].content == payload["sections"]["historical_context"]
    assert study.sections[1].title == "Historical & Cultural Context"


def test_quiz_is_stored_as_canonical_json_string(payload):
    study = _validate(json.dumps(payload))
    quiz = study.sections[-1]

    assert quiz.section_id == QUIZ_SECTION_ID
    assert isinstance(quiz.content, str)
    questions = json.loads(quiz.content)
    assert len(questions) == 3
    assert questions[0] == {
        "question": "Who was born in Bethlehem?",
        "options": ["Moses", "Jesus", "Paul", "Peter"],
        "correctAnswerIndex": 1,
    }
    assert questions[2]["explanation"] == "Matthew, Mark, Luke and John."


def test_quiz_given_as_json_string_is_accepted(payload):
    payload["sections"][QUIZ_SECTION_ID] = json.dumps(payload["sections"][QUIZ_SECTION_ID])
    study = _validate(json.dumps(payload))
    assert len(json.loads(study.sections[-1].content)) == 3


def test_missing_section_is_marked_for_regeneration(payload):
    del payload["sections"]["cross_references"]
    study = _validate(json.dumps(payload))

    by_id = {s.section_id: s for s in study.sections}
    assert len(study.sections) == 12
    assert by_id["cross_references"].needs_regeneration
    assert by_id["cross_references"].content == ""
    assert all(not s.needs_regeneration for sid, s in by_id.items() if sid != "cross_references")


def test_non_string_section_and_bad_quiz_do_not_abort_siblings(payload):
    payload["sections"]["verse_by_verse"] = {"html": "<p>nested</p>"}
    payload["sections"][QUIZ_SECTION_ID] = [{"q": "Too few options", "o": ["a", "b"], "a": 0}]
    study = _validate(json.dumps(payload))

    flagged = [s.section_id for s in study.sections if s.needs_regeneration]
    assert flagged == ["verse_by_verse", QUIZ_SECTION_ID]


def test_unknown_section_keys_are_ignored(payload):
    payload["sections"]["literary_genre"] = "<p>extra</p>"
    study = _validate(json.dumps(payload))
    assert [s.section_id for s in study.sections] == SECTION_IDS


@pytest.mark.parametrize("raw", [
    "I'm sorry, I can't write that study right now.",
    "```json\nnot json at all\n```",
    "",
    "[1, 2, 3]",
    '{"title": "No sections"}',
    '{"title": "Bad sections", "sections": ["a", "b"]}',
])
def test_unusable_response_is_malformed(raw):
    with pytest.raises(GenerationError) as excinfo:
        _validate(raw)
    assert excinfo.value.kind == GenerationErrorKind.MALFORMED_RESPONSE


def test_code_fences_are_stripped_before_parsing(payload):
    raw = "```json\n" + json.dumps(payload) + "\n```"
    study = _validate(raw)
    assert study.metadata.title == payload["title"]


def test_json_surrounded_by_prose_is_recovered(payload):
    raw = "Here is your study:\n" + json.dumps(payload) + "\nEnjoy!"
    assert _validate(raw).metadata.theme == "God's love"


def test_missing_title_falls_back_to_topic():
    payload = make_payload()
    del payload["title"]
    assert _validate(json.dumps(payload), topic="  Grace  ").metadata.title == "Grace"
    with pytest.raises(GenerationError):
        _validate(json.dumps(payload))


def test_generated_sections_get_untagged_references_linked(payload):
    payload["sections"]["further_study"] = "<p>Compare Rom 8:1.</p>"
    study = _validate(json.dumps(payload), link_references=True)
    further = next(s for s in study.sections if s.section_id == "further_study")
    assert further.content == '<p>Compare <bible-verse reference="Romans 8:1">Rom 8:1</bible-verse>.</p>'


def test_owner_defaults_to_guest(payload):
    study = _validate(json.dumps(payload))
    assert study.is_guest_owned
    assert _validate(json.dumps(payload), owner_id="user-1").owner_id == "user-1"


def test_regenerated_markup_fences_are_stripped():
    assert clean_section_markup("```html\n<p>New insight</p>\n```", link_references=False) == "<p>New insight</p>"


@pytest.mark.parametrize("raw", ["", None, "```html\n```", "   \n"])
def test_empty_regeneration_yields_placeholder(raw):
    assert clean_section_markup(raw) == REGENERATION_PLACEHOLDER


def test_regenerated_quiz():
    content = clean_quiz_response('```json\n[{"q": "Q?", "o": ["a", "b", "c", "d"], "a": 3}]\n```')
    assert json.loads(content) == [{"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 3}]

    with pytest.raises(GenerationError):
        clean_quiz_response("Sorry, no quiz today.")


def test_parse_quiz_questions_accepts_wrapped_object():
    questions = parse_quiz_questions({"questions": [{"q": "Q?", "o": ["a", "b", "c", "d"], "a": 0}]})
    assert questions[0].correct_answer_index == 0
    assert parse_quiz_questions("not json") == []
    assert parse_quiz_questions([{"q": "Q?", "o": ["a", "b", "c", "d"], "a": 4}]) == []


def test_strip_code_fences():
    assert strip_code_fences("```html\n<p>x</p>\n```") == "<p>x</p>"
    assert strip_code_fences(None) == ""
