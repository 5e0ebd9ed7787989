"""Project, language, and membership ORM models."""

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lokal.models.base import Base, CreatedAtMixin, IdMixin

PROJECT_ROLES = ("OWNER", "MANAGER", "DEVELOPER")


class Project(Base, IdMixin, CreatedAtMixin):
    """Tenant-owned localization project."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    default_language: Mapped[str] = mapped_column(String(16), nullable=False)

    languages: Mapped[list["ProjectLanguage"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectLanguage.id",
    )
    members: Mapped[list["ProjectMember"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )


class ProjectLanguage(Base, IdMixin):
    """Language enabled for a project."""

    __tablename__ = "project_languages"
    __table_args__ = (UniqueConstraint("project_id", "code", name="uq_project_languages_project_code"),)

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    project: Mapped[Project] = relationship(back_populates="languages")


class ProjectMember(Base, IdMixin, CreatedAtMixin):
    """User role within one project."""

    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),)

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)

    project: Mapped[Project] = relationship(back_populates="members")
