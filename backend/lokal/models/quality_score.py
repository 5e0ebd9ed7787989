"""Translation quality score ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, IdMixin

if TYPE_CHECKING:
    from lokal.models.translation import Translation


class TranslationQualityScore(Base, IdMixin):
    """Cached quality evaluation; exactly one row per translation."""

    __tablename__ = "translation_quality_scores"
    __table_args__ = (CheckConstraint("score >= 0 AND score <= 100", name="ck_translation_quality_scores_score_range"),)

    translation_id: Mapped[int] = mapped_column(
        ForeignKey("translations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    accuracy_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fluency_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    terminology_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    format_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    issues_json: Mapped[list[dict[str, object]]] = mapped_column(JSON, default=list, nullable=False)
    evaluation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # AI evaluation was requested but failed; the stored score is the heuristic one.
    ai_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    evaluated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    translation: Mapped[Translation] = relationship(back_populates="quality_score")
