"""Per-project quality scoring configuration model."""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lokal.models.base import Base, IdMixin, UpdatedAtMixin


class QualityScoringConfig(Base, IdMixin, UpdatedAtMixin):
    """Quality scoring switches and thresholds for one project."""

    __tablename__ = "quality_scoring_configs"

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    score_after_ai_translation: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    score_before_merge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_approve_threshold: Mapped[int] = mapped_column(Integer, default=80, nullable=False)
    flag_threshold: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    ai_evaluation_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_evaluation_provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ai_evaluation_model: Mapped[str | None] = mapped_column(String(128), nullable=True)
