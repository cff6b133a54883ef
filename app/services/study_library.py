"""
Study library operations: ownership, visibility, locking, engagement, cloning
and import of stored studies.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.config import GUEST_OWNER_ID
from app.models.enums import EngagementKind
from app.schemas import Study, StudyStats, new_study_id
from app.services.study_repository import StudyRepository
from app.utils.study_migration import normalize_study

logger = logging.getLogger(__name__)


def claim_guest_studies(repository: StudyRepository, owner_id: str, study_ids: List[str]) -> int:
    """Give the guest studies this client created to the user who just signed in.

    Only ids that are still guest-owned move; studies another user already
    claimed, or that were never guest drafts, are left alone.
    """
    if not owner_id or owner_id == GUEST_OWNER_ID:
        raise ValueError("Guest studies must be claimed by a signed-in owner")
    claimed = repository.reassign_owner(list(dict.fromkeys(study_ids)), GUEST_OWNER_ID, owner_id)
    logger.info("Owner %s claimed %d guest studies", owner_id, claimed)
    return claimed


def toggle_visibility(repository: StudyRepository, study_id: str) -> Study:
    study = repository.get(study_id)
    return repository.update_fields(study_id, is_public=not study.metadata.is_public)


def lock_study(repository: StudyRepository, study_id: str, image_url: Optional[str] = None) -> Study:
    """Finalise a study when the reader starts it; sections become read-only."""
    fields: Dict[str, Any] = {"is_locked": True}
    if image_url:
        fields["image_url"] = image_url
    study = repository.update_fields(study_id, **fields)
    logger.info("Locked study %s", study_id)
    return study


def record_engagement(repository: StudyRepository, study_id: str, kind: EngagementKind) -> int:
    """Increment one counter and return its new value."""
    kind = EngagementKind(kind)
    stats = repository.increment(study_id, kind.value).metadata.stats
    return getattr(stats, kind.value)


def record_view(repository: StudyRepository, study_id: str) -> int:
    return record_engagement(repository, study_id, EngagementKind.views)


def record_like(repository: StudyRepository, study_id: str) -> int:
    return record_engagement(repository, study_id, EngagementKind.likes)


def record_share(repository: StudyRepository, study_id: str) -> int:
    return record_engagement(repository, study_id, EngagementKind.shares)


def clone_study(repository: StudyRepository, study_id: str, owner_id: str) -> Study:
    """Copy a study for another owner: new id, unlocked, private, fresh stats."""
    source = repository.get(study_id)
    metadata = source.metadata.model_copy(update={
        "created_at": datetime.now(timezone.utc),
        "is_public": False,
        "is_locked": False,
        "stats": StudyStats(),
    })
    clone = Study(
        id=new_study_id(),
        owner_id=owner_id,
        metadata=metadata,
        sections=[section.model_copy() for section in source.sections],
    )
    repository.save(clone)
    repository.increment(study_id, EngagementKind.clones.value)
    logger.info("Cloned study %s into %s for %s", study_id, clone.id, owner_id)
    return clone


def import_study(repository: StudyRepository, raw: Dict[str, Any], owner_id: Optional[str] = None) -> Study:
    """Store a study given in any stored shape (current, browser storage, editor).

    An import never overwrites: when the id is already taken the study is
    stored under a fresh id.
    """
    study = normalize_study(raw)
    update: Dict[str, Any] = {}
    if owner_id:
        update["owner_id"] = owner_id
    if repository.find(study.id) is not None:
        update["id"] = new_study_id()
        logger.warning("Imported study id %s is taken; storing as %s", study.id, update["id"])
    if update:
        study = study.model_copy(update=update)
    return repository.save(study)
