# Study model definition

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base


class StudyRecord(Base):
    """Persisted study: metadata as columns, sections as one JSON document."""

    __tablename__ = "studies"

    id = Column(String(64), primary_key=True)

    # Signed-in user id, or the guest owner id before sign-in
    owner_id = Column(String(255), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    theme = Column(String(255), nullable=False, default="")
    passages = Column(String(1024), nullable=False, default="")
    difficulty = Column(String(32), nullable=False)
    length = Column(String(32), nullable=False)

    is_public = Column(Boolean, nullable=False, default=False, index=True)
    is_locked = Column(Boolean, nullable=False, default=False)
    image_url = Column(String(1024), nullable=True)

    # Engagement counters
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    clones = Column(Integer, nullable=False, default=0)

    # [{"section_id", "title", "content", "needs_regeneration"}, ...] in canonical order
    sections = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<StudyRecord id={self.id} owner_id={self.owner_id} locked={self.is_locked}>"
