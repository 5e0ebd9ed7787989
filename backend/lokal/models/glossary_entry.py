"""Project glossary entry model."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lokal.models.base import Base, CreatedAtMixin, IdMixin


class GlossaryEntry(Base, IdMixin, CreatedAtMixin):
    """Expected target-language rendering of a source term."""

    __tablename__ = "glossary_entries"
    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "source_term",
            "target_language",
            name="uq_glossary_entries_project_term_language",
        ),
    )

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    source_term: Mapped[str] = mapped_column(String(255), nullable=False)
    target_language: Mapped[str] = mapped_column(String(16), nullable=False)
    target_term: Mapped[str] = mapped_column(String(255), nullable=False)
