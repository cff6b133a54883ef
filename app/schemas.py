"""Domain schemas for studies, sections and quiz questions.

These are storage-agnostic: the repository maps them to and from rows, the
validator builds them from generated text, and the routers return them.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.config import DEFAULT_STUDY_IMAGE_URL, GUEST_OWNER_ID
from app.models.enums import StudyDifficulty, StudyLength, UserTier


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_study_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

class QuizQuestion(BaseModel):
    """One multiple-choice question. Accepts the short keys (q/o/a) models tend to emit."""

    question: str = Field(validation_alias=AliasChoices("question", "q"))
    options: List[str] = Field(validation_alias=AliasChoices("options", "o"))
    correct_answer_index: int = Field(
        validation_alias=AliasChoices("correct_answer_index", "correctAnswerIndex", "correctAnswer", "a"),
        serialization_alias="correctAnswerIndex",
    )
    explanation: Optional[str] = None

    @field_validator("question")
    @classmethod
    def question_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError("Question text must not be empty")
        return v

    @field_validator("options")
    @classmethod
    def exactly_four_options(cls, v):
        if len(v) != 4:
            raise ValueError("A quiz question needs exactly 4 options")
        return v

    @field_validator("correct_answer_index")
    @classmethod
    def index_in_range(cls, v):
        if not 0 <= v <= 3:
            raise ValueError("correctAnswerIndex must be between 0 and 3")
        return v


# ---------------------------------------------------------------------------
# Study aggregate
# ---------------------------------------------------------------------------

class StudyStats(BaseModel):
    views: int = 0
    likes: int = 0
    shares: int = 0
    clones: int = 0

    def popularity(self) -> int:
        return self.views + self.likes * 2 + self.shares * 3


class StudyMetadata(BaseModel):
    title: str
    theme: str = ""
    passages: str = ""
    difficulty: StudyDifficulty = StudyDifficulty.introductory
    length: StudyLength = StudyLength.standard
    created_at: datetime = Field(default_factory=_utcnow)
    is_public: bool = False
    is_locked: bool = False
    image_url: Optional[str] = DEFAULT_STUDY_IMAGE_URL
    stats: StudyStats = Field(default_factory=StudyStats)


class Section(BaseModel):
    section_id: str
    title: str = ""
    # Markup for every section except the quiz, which holds a JSON-encoded question list
    content: str = ""
    needs_regeneration: bool = False


class Study(BaseModel):
    id: str = Field(default_factory=new_study_id)
    owner_id: str = GUEST_OWNER_ID
    metadata: StudyMetadata
    sections: List[Section] = Field(default_factory=list)

    @property
    def is_guest_owned(self) -> bool:
        return self.owner_id == GUEST_OWNER_ID


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class StudyContext(BaseModel):
    """What a regeneration prompt needs to know about the study."""

    title: str
    theme: str = ""
    passages: str = ""


class GenerateStudyRequest(BaseModel):
    topic: str
    difficulty: StudyDifficulty = StudyDifficulty.introductory
    length: StudyLength = StudyLength.standard
    owner_id: Optional[str] = None
    tier: UserTier = UserTier.seeker

    @field_validator("topic")
    @classmethod
    def topic_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError("Topic must not be empty")
        return v.strip()


class UpdateSectionRequest(BaseModel):
    content: str


class RegenerateSectionRequest(BaseModel):
    tier: UserTier = UserTier.seeker


class ClaimStudiesRequest(BaseModel):
    owner_id: str
    study_ids: List[str] = Field(default_factory=list)


class CloneStudyRequest(BaseModel):
    owner_id: str


class LockStudyRequest(BaseModel):
    image_url: Optional[str] = None
