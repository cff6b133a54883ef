import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.enums import EngagementKind
from app.schemas import (
    ClaimStudiesRequest,
    CloneStudyRequest,
    GenerateStudyRequest,
    LockStudyRequest,
    RegenerateSectionRequest,
    Section,
    Study,
    UpdateSectionRequest,
)
from app.services import study_library
from app.services.llm_service import generate_text
from app.services.section_store import InvalidQuizContentError, SectionStore, StudyLockedError, UnknownSectionError
from app.services.study_generator import TextGenerator, generate_study, regenerate_section
from app.services.study_repository import StudyNotFoundError, StudyRepository
from app.utils.study_response_validator import GenerationError, GenerationErrorKind

logger = logging.getLogger(__name__)

router = APIRouter()


# Dependency to get the database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Dependency to get the text generator (overridden in tests)
def get_text_generator() -> TextGenerator:
    return generate_text


def get_repository(db: Session = Depends(get_db)) -> StudyRepository:
    return StudyRepository(db)


def _check_study_id(study_id: str) -> None:
    if not study_id.strip() or len(study_id) > 64 or any(c.isspace() for c in study_id):
        raise HTTPException(status_code=400, detail="Invalid study ID format")


def _http_error(e: Exception) -> HTTPException:
    """Translate service errors into HTTP errors."""
    if isinstance(e, StudyNotFoundError):
        return HTTPException(status_code=404, detail="Study not found")
    if isinstance(e, UnknownSectionError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StudyLockedError):
        return HTTPException(status_code=409, detail="Study is locked and can no longer be edited")
    if isinstance(e, GenerationError):
        if e.kind == GenerationErrorKind.SERVICE_UNAVAILABLE:
            return HTTPException(status_code=503, detail="Text generation service is unavailable. Please try again later.")
        return HTTPException(status_code=502, detail="AI generated invalid format. Please try again.")
    if isinstance(e, (InvalidQuizContentError, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.exception("Unexpected error", exc_info=e)
    return HTTPException(status_code=500, detail="Internal server error")


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------

@router.post("/generate", response_model=Study)
def generate(
    request: GenerateStudyRequest,
    repository: StudyRepository = Depends(get_repository),
    generator: TextGenerator = Depends(get_text_generator),
):
    """
    Generate a complete study for a topic and store it.
    """
    try:
        study = generate_study(
            request.topic,
            request.difficulty,
            request.length,
            owner_id=request.owner_id,
            tier=request.tier,
            generate=generator,
        )
    except GenerationError as e:
        logger.exception("Study generation failed for %r", request.topic)
        raise _http_error(e)
    return repository.save(study)


@router.post("/import", response_model=Study)
async def import_study(
    raw: Dict[str, Any],
    owner_id: Optional[str] = None,
    repository: StudyRepository = Depends(get_repository),
):
    """
    Store a study given in any stored shape (current or legacy browser storage).
    """
    try:
        return study_library.import_study(repository, raw, owner_id=owner_id)
    except ValueError as e:
        raise _http_error(e)


@router.post("/claim")
async def claim_guest_studies(request: ClaimStudiesRequest, repository: StudyRepository = Depends(get_repository)):
    """
    Give the guest studies held by this client to the owner who just signed in.
    """
    try:
        claimed = study_library.claim_guest_studies(repository, request.owner_id, request.study_ids)
    except ValueError as e:
        raise _http_error(e)
    return {"owner_id": request.owner_id, "claimed": claimed}


@router.get("/public", response_model=List[Study])
async def list_public_studies(limit: int = 50, repository: StudyRepository = Depends(get_repository)):
    """
    Public studies, most popular first.
    """
    if not 1 <= limit <= 200:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 200")
    return repository.list_public(limit=limit)


@router.get("/owner/{owner_id}", response_model=List[Study])
async def list_owner_studies(owner_id: str, repository: StudyRepository = Depends(get_repository)):
    """
    All studies of one owner, newest first.
    """
    return repository.list_by_owner(owner_id)


# ---------------------------------------------------------------------------
# Single study
# ---------------------------------------------------------------------------

@router.get("/{study_id}", response_model=Study)
async def get_study(study_id: str, repository: StudyRepository = Depends(get_repository)):
    _check_study_id(study_id)
    try:
        return repository.get(study_id)
    except StudyNotFoundError as e:
        raise _http_error(e)


@router.delete("/{study_id}")
async def delete_study(study_id: str, repository: StudyRepository = Depends(get_repository)):
    _check_study_id(study_id)
    try:
        repository.delete(study_id)
    except StudyNotFoundError as e:
        raise _http_error(e)
    return {"deleted": study_id}


@router.post("/{study_id}/lock", response_model=Study)
async def lock_study(
    study_id: str,
    request: Optional[LockStudyRequest] = None,
    repository: StudyRepository = Depends(get_repository),
):
    """
    Finalise a study when the reader starts it.
    """
    _check_study_id(study_id)
    try:
        return study_library.lock_study(repository, study_id, image_url=request.image_url if request else None)
    except StudyNotFoundError as e:
        raise _http_error(e)


@router.post("/{study_id}/visibility", response_model=Study)
async def toggle_visibility(study_id: str, repository: StudyRepository = Depends(get_repository)):
    _check_study_id(study_id)
    try:
        return study_library.toggle_visibility(repository, study_id)
    except StudyNotFoundError as e:
        raise _http_error(e)


def _record(repository: StudyRepository, study_id: str, kind: EngagementKind) -> Dict[str, Any]:
    _check_study_id(study_id)
    try:
        count = study_library.record_engagement(repository, study_id, kind)
    except StudyNotFoundError as e:
        raise _http_error(e)
    return {"study_id": study_id, kind.value: count}


@router.post("/{study_id}/view")
async def record_view(study_id: str, repository: StudyRepository = Depends(get_repository)):
    return _record(repository, study_id, EngagementKind.views)


@router.post("/{study_id}/like")
async def record_like(study_id: str, repository: StudyRepository = Depends(get_repository)):
    return _record(repository, study_id, EngagementKind.likes)


@router.post("/{study_id}/share")
async def record_share(study_id: str, repository: StudyRepository = Depends(get_repository)):
    return _record(repository, study_id, EngagementKind.shares)


@router.post("/{study_id}/clone", response_model=Study)
async def clone_study(study_id: str, request: CloneStudyRequest, repository: StudyRepository = Depends(get_repository)):
    _check_study_id(study_id)
    try:
        return study_library.clone_study(repository, study_id, request.owner_id)
    except StudyNotFoundError as e:
        raise _http_error(e)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@router.get("/{study_id}/sections", response_model=List[Section])
async def list_sections(study_id: str, repository: StudyRepository = Depends(get_repository)):
    """
    All sections of a study in canonical order.
    """
    _check_study_id(study_id)
    try:
        return SectionStore(repository.get(study_id)).ordered_view()
    except StudyNotFoundError as e:
        raise _http_error(e)


@router.get("/{study_id}/sections/{section_id}/document")
async def get_section_document(study_id: str, section_id: str, repository: StudyRepository = Depends(get_repository)):
    """
    One section's content parsed into the document tree.
    """
    _check_study_id(study_id)
    try:
        document = SectionStore(repository.get(study_id)).document(section_id)
    except (StudyNotFoundError, UnknownSectionError, ValueError) as e:
        raise _http_error(e)
    return document.to_dict()


@router.put("/{study_id}/sections/{section_id}", response_model=Section)
async def update_section(
    study_id: str,
    section_id: str,
    request: UpdateSectionRequest,
    repository: StudyRepository = Depends(get_repository),
):
    """
    Replace one section with manually edited content.
    """
    _check_study_id(study_id)
    try:
        return repository.update_section(study_id, section_id, request.content)
    except (StudyNotFoundError, UnknownSectionError, StudyLockedError, InvalidQuizContentError) as e:
        raise _http_error(e)


@router.post("/{study_id}/sections/{section_id}/regenerate", response_model=Section)
def regenerate(
    study_id: str,
    section_id: str,
    request: Optional[RegenerateSectionRequest] = None,
    repository: StudyRepository = Depends(get_repository),
    generator: TextGenerator = Depends(get_text_generator),
):
    """
    Regenerate one section; the other sections are left untouched.
    """
    _check_study_id(study_id)
    request = request or RegenerateSectionRequest()
    try:
        study = repository.get(study_id)
        content = regenerate_section(study, section_id, tier=request.tier, generate=generator)
        return repository.update_section(study_id, section_id, content)
    except GenerationError as e:
        logger.exception("Regeneration of %s failed for study %s", section_id, study_id)
        raise _http_error(e)
    except (StudyNotFoundError, UnknownSectionError, StudyLockedError, InvalidQuizContentError) as e:
        raise _http_error(e)
