"""Translation ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from lokal.models.quality_score import TranslationQualityScore
    from lokal.models.translation_key import TranslationKey

TRANSLATION_STATUSES = ("PENDING", "APPROVED", "REJECTED")


class Translation(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """One language value of a translation key."""

    __tablename__ = "translations"
    __table_args__ = (UniqueConstraint("key_id", "language", name="uq_translations_key_language"),)

    key_id: Mapped[int] = mapped_column(
        ForeignKey("translation_keys.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    language: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="PENDING", nullable=False)

    key: Mapped[TranslationKey] = relationship(back_populates="translations")
    quality_score: Mapped[TranslationQualityScore | None] = relationship(
        back_populates="translation",
        cascade="all, delete-orphan",
        uselist=False,
    )
