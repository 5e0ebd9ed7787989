"""Space ORM model."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, CreatedAtMixin, IdMixin
from lokal.models.project import Project


class Space(Base, IdMixin, CreatedAtMixin):
    """Group of branches inside a project."""

    __tablename__ = "spaces"
    __table_args__ = (UniqueConstraint("project_id", "slug", name="uq_spaces_project_slug"),)

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)

    project: Mapped[Project] = relationship()
