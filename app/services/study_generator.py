"""
Study generation service using OpenAI through LangChain.

Full-study generation asks for one JSON object holding all canonical
sections; single-section regeneration asks for raw markup (or, for the quiz,
a JSON array). The text generator is injected so the HTTP layer and tests can
swap it out.
"""

import logging
from typing import Callable, List, Optional

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from app.models.enums import StudyDifficulty, StudyLength, UserTier
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_DEFINITIONS, SECTION_TITLES
from app.schemas import Study, StudyContext
from app.services.llm_service import LLMServiceError, generate_text, model_for_tier
from app.services.section_store import StudyLockedError, UnknownSectionError
from app.utils.study_response_validator import (
    GenerationError,
    GenerationErrorKind,
    clean_quiz_response,
    clean_section_markup,
    validate_study_response,
)

logger = logging.getLogger(__name__)

TextGenerator = Callable[[List[BaseMessage], Optional[str]], str]

FORMATTING_RULES = """IMPORTANT FORMATTING RULES:
1. Do NOT use Markdown. Use HTML tags only: <h3> for headers, <p> for paragraphs, <ul>/<ol> with <li> for lists.
2. CRITICAL: wrap EVERY Bible verse reference (e.g. "John 3:16", "Romans 8:1", "Gen 1:1") in the tag <bible-verse reference="John 3:16">John 3:16</bible-verse>.
3. The reference attribute holds the full book name, chapter and verse(s), e.g. <bible-verse reference="Genesis 1:1">Gen 1:1</bible-verse>.
4. Do not miss any references. Every verse mentioned must be tagged."""

STUDY_PROMPT = ChatPromptTemplate.from_messages([
    ("system",
     "You are an expert biblical scholar and theologian specialising in the Inductive Bible Study Method."),
    ("human",
     """Create a structured, verse-by-verse inductive study on the topic: "{topic}".

Target audience: {difficulty} (adjust tone and depth accordingly).
Length: {length} (adjust verbosity and the number of cross-references).

The study MUST contain exactly these {section_count} sections, keyed by the ids below:
{section_list}

{formatting_rules}

Output format:
Return ONLY a valid JSON object, without code fences. It must contain:
{{
  "title": "A creative, cinematic title for the study",
  "theme": "A short, 2-5 word thematic summary",
  "passages": "The primary scripture references used (e.g. John 1:1-14)",
  "sections": {{
    "<section id>": "HTML content...",
    "{quiz_id}": [{{"question": "...", "options": ["...", "...", "...", "..."], "correctAnswerIndex": 0, "explanation": "..."}}]
  }}
}}
The "{quiz_id}" value is a JSON array of 3 questions, each with exactly 4 options and the index (0-3) of the correct one."""),
])

SECTION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "You are an expert biblical scholar."),
    ("human",
     """REWRITE and DEEPEN the section "{section_title}" ({section_id}) of the study "{title}" (Theme: {theme}, Passages: {passages}).

Provide fresh, profound theological insight with clarity and depth.
LENGTH CONSTRAINT: keep the output concise and roughly the same length as the current content.

{formatting_rules}
5. Do not return a JSON object. Return only the raw HTML for the content of this section.

{current_content}"""),
])

QUIZ_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "You are an expert biblical scholar writing comprehension quizzes."),
    ("human",
     """Write 3 new multiple-choice questions testing the study "{title}" (Theme: {theme}, Passages: {passages}).

Return ONLY a JSON array, without code fences, of objects with the keys:
"question" (string), "options" (array of exactly 4 strings), "correctAnswerIndex" (0-3), "explanation" (string).

{current_content}"""),
])


def _section_list() -> str:
    return "\n".join(f"- {d.section_id}: {d.title}" for d in SECTION_DEFINITIONS)


def build_study_messages(topic: str, difficulty: StudyDifficulty, length: StudyLength) -> List[BaseMessage]:
    return STUDY_PROMPT.format_messages(
        topic=topic,
        difficulty=StudyDifficulty(difficulty).value,
        length=StudyLength(length).value,
        section_count=len(SECTION_DEFINITIONS),
        section_list=_section_list(),
        formatting_rules=FORMATTING_RULES,
        quiz_id=QUIZ_SECTION_ID,
    )


def build_section_messages(section_id: str, context: StudyContext, current_content: Optional[str] = None) -> List[BaseMessage]:
    current = ""
    if current_content and current_content.strip():
        current = f"Current content (for context, improve upon this):\n{current_content}"

    if section_id == QUIZ_SECTION_ID:
        return QUIZ_PROMPT.format_messages(
            title=context.title,
            theme=context.theme,
            passages=context.passages,
            current_content=current,
        )
    return SECTION_PROMPT.format_messages(
        section_title=SECTION_TITLES[section_id],
        section_id=section_id,
        title=context.title,
        theme=context.theme,
        passages=context.passages,
        formatting_rules=FORMATTING_RULES,
        current_content=current,
    )


def _call_generator(generate: TextGenerator, messages: List[BaseMessage], model: str) -> str:
    try:
        return generate(messages, model)
    except LLMServiceError as e:
        raise GenerationError(GenerationErrorKind.SERVICE_UNAVAILABLE, str(e)) from e


def generate_study(
    topic: str,
    difficulty: StudyDifficulty,
    length: StudyLength,
    owner_id: Optional[str] = None,
    tier: UserTier = UserTier.seeker,
    generate: TextGenerator = generate_text,
) -> Study:
    """
    Generate a complete study for a topic.

    Raises:
        GenerationError: the model was unreachable or its output was not a study
    """
    messages = build_study_messages(topic, difficulty, length)
    model = model_for_tier(tier)
    logger.info("Generating %s/%s study on %r with %s", difficulty, length, topic, model)

    raw = _call_generator(generate, messages, model)
    try:
        study = validate_study_response(raw, difficulty, length, topic=topic, owner_id=owner_id)
    except GenerationError:
        logger.warning("Model returned an unusable study for %r: %.200s", topic, raw)
        raise

    missing = [s.section_id for s in study.sections if s.needs_regeneration]
    if missing:
        logger.warning("Study %s generated with sections needing regeneration: %s", study.id, ", ".join(missing))
    return study


def regenerate_section(
    study: Study,
    section_id: str,
    tier: UserTier = UserTier.seeker,
    generate: TextGenerator = generate_text,
) -> str:
    """
    Produce new content for one section without touching the study.

    The caller stores the result; nothing is written when this raises.
    """
    if section_id not in SECTION_TITLES:
        raise UnknownSectionError(section_id)
    if study.metadata.is_locked:
        raise StudyLockedError(study.id)

    current = next((s.content for s in study.sections if s.section_id == section_id), None)
    context = StudyContext(
        title=study.metadata.title,
        theme=study.metadata.theme,
        passages=study.metadata.passages,
    )
    messages = build_section_messages(section_id, context, current)
    model = model_for_tier(tier)
    logger.info("Regenerating section %s of study %s with %s", section_id, study.id, model)

    raw = _call_generator(generate, messages, model)
    if section_id == QUIZ_SECTION_ID:
        return clean_quiz_response(raw)
    return clean_section_markup(raw)
