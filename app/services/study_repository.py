"""
Persistence of studies.

Rows are mapped back through ``normalize_study`` so callers always get the
canonical shape, whatever an older writer stored. Section replacement runs in
its own read-modify-write transaction on the row, so two regenerations of
different sections of one study cannot overwrite each other.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.study import StudyRecord
from app.schemas import Section, Study
from app.services.section_store import SectionStore
from app.utils.study_migration import normalize_study

logger = logging.getLogger(__name__)

ENGAGEMENT_COLUMNS = ("views", "likes", "shares", "clones")


class StudyNotFoundError(LookupError):
    def __init__(self, study_id: str):
        super().__init__(f"Study {study_id} not found")
        self.study_id = study_id


def _record_to_study(record: StudyRecord) -> Study:
    return normalize_study({
        "id": record.id,
        "owner_id": record.owner_id,
        "metadata": {
            "title": record.title,
            "theme": record.theme,
            "passages": record.passages,
            "difficulty": record.difficulty,
            "length": record.length,
            "created_at": record.created_at,
            "is_public": record.is_public,
            "is_locked": record.is_locked,
            "image_url": record.image_url,
            "stats": {name: getattr(record, name) or 0 for name in ENGAGEMENT_COLUMNS},
        },
        "sections": record.sections or [],
    })


def _dump_sections(study: Study) -> list:
    return [section.model_dump() for section in study.sections]


def _apply_study(record: StudyRecord, study: Study) -> None:
    meta = study.metadata
    record.owner_id = study.owner_id
    record.title = meta.title
    record.theme = meta.theme
    record.passages = meta.passages
    record.difficulty = meta.difficulty.value
    record.length = meta.length.value
    record.is_public = meta.is_public
    record.is_locked = meta.is_locked
    record.image_url = meta.image_url
    record.created_at = meta.created_at
    for name in ENGAGEMENT_COLUMNS:
        setattr(record, name, getattr(meta.stats, name))
    record.sections = _dump_sections(study)


class StudyRepository:
    """Study storage on a SQLAlchemy session. Every write commits."""

    def __init__(self, db: Session):
        self.db = db

    def _record(self, study_id: str, for_update: bool = False) -> StudyRecord:
        query = self.db.query(StudyRecord).filter(StudyRecord.id == study_id)
        if for_update:
            query = query.with_for_update()
        record = query.first()
        if record is None:
            raise StudyNotFoundError(study_id)
        return record

    def find(self, study_id: str) -> Optional[Study]:
        record = self.db.query(StudyRecord).filter(StudyRecord.id == study_id).first()
        return _record_to_study(record) if record is not None else None

    def get(self, study_id: str) -> Study:
        return _record_to_study(self._record(study_id))

    def save(self, study: Study) -> Study:
        """Insert or fully overwrite a study."""
        record = self.db.query(StudyRecord).filter(StudyRecord.id == study.id).first()
        if record is None:
            record = StudyRecord(id=study.id)
            self.db.add(record)
        _apply_study(record, study)
        self.db.commit()
        logger.info("Saved study %s (%s)", study.id, study.metadata.title)
        return study

    def delete(self, study_id: str) -> None:
        record = self._record(study_id)
        self.db.delete(record)
        self.db.commit()
        logger.info("Deleted study %s", study_id)

    def list_by_owner(self, owner_id: str) -> List[Study]:
        records = (
            self.db.query(StudyRecord)
            .filter(StudyRecord.owner_id == owner_id)
            .order_by(StudyRecord.created_at.desc())
            .all()
        )
        return [_record_to_study(r) for r in records]

    def list_public(self, limit: int = 50) -> List[Study]:
        """Public studies, most popular first (views + 2*likes + 3*shares)."""
        popularity = StudyRecord.views + StudyRecord.likes * 2 + StudyRecord.shares * 3
        records = (
            self.db.query(StudyRecord)
            .filter(StudyRecord.is_public.is_(True))
            .order_by(popularity.desc(), StudyRecord.created_at.desc())
            .limit(limit)
            .all()
        )
        return [_record_to_study(r) for r in records]

    def update_section(self, study_id: str, section_id: str, content: str) -> Section:
        """Replace one section against the latest stored state of the study."""
        record = self._record(study_id, for_update=True)
        try:
            store = SectionStore(_record_to_study(record))
            section = store.replace_content(section_id, content)
        except Exception:
            self.db.rollback()
            raise
        record.sections = _dump_sections(store.study)
        self.db.commit()
        return section

    def update_fields(self, study_id: str, **fields) -> Study:
        """Set metadata columns (is_public, is_locked, image_url, owner_id)."""
        record = self._record(study_id, for_update=True)
        for name, value in fields.items():
            setattr(record, name, value)
        self.db.commit()
        self.db.refresh(record)
        return _record_to_study(record)

    def increment(self, study_id: str, counter: str) -> Study:
        if counter not in ENGAGEMENT_COLUMNS:
            raise ValueError(f"Unknown engagement counter '{counter}'")
        updated = (
            self.db.query(StudyRecord)
            .filter(StudyRecord.id == study_id)
            .update({counter: getattr(StudyRecord, counter) + 1}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise StudyNotFoundError(study_id)
        self.db.commit()
        return self.get(study_id)

    def reassign_owner(self, study_ids: List[str], from_owner: str, to_owner: str) -> int:
        """Move the listed studies still held by ``from_owner`` to ``to_owner``."""
        if not study_ids:
            return 0
        updated = (
            self.db.query(StudyRecord)
            .filter(StudyRecord.id.in_(study_ids), StudyRecord.owner_id == from_owner)
            .update({StudyRecord.owner_id: to_owner}, synchronize_session=False)
        )
        self.db.commit()
        return updated
