"""Branch ORM model."""

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, CreatedAtMixin, IdMixin, UpdatedAtMixin
from lokal.models.space import Space


class Branch(Base, IdMixin, CreatedAtMixin, UpdatedAtMixin):
    """Versioned copy-on-write container of translation keys."""

    __tablename__ = "branches"
    __table_args__ = (UniqueConstraint("space_id", "slug", name="uq_branches_space_slug"),)

    space_id: Mapped[int] = mapped_column(ForeignKey("spaces.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    source_branch_id: Mapped[int | None] = mapped_column(
        ForeignKey("branches.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    # Common-ancestor state shared with source_branch_id: {key_name: {language: value}}.
    base_snapshot_json: Mapped[dict[str, dict[str, str]]] = mapped_column(JSON, default=dict, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    space: Mapped[Space] = relationship()
