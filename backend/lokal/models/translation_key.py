"""Translation key ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, CreatedAtMixin, IdMixin
from lokal.models.branch import Branch

if TYPE_CHECKING:
    from lokal.models.translation import Translation


class TranslationKey(Base, IdMixin, CreatedAtMixin):
    """Named message identifier owned by one branch."""

    __tablename__ = "translation_keys"
    __table_args__ = (UniqueConstraint("branch_id", "name", name="uq_translation_keys_branch_name"),)

    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False)

    branch: Mapped[Branch] = relationship()
    translations: Mapped[list[Translation]] = relationship(
        back_populates="key",
        cascade="all, delete-orphan",
        order_by="Translation.language",
    )
