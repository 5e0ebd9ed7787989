"""Project membership lookups and role checks."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from lokal.errors import ForbiddenError, NotFoundError
from lokal.models.branch import Branch
from lokal.models.project import Project, ProjectMember
from lokal.models.space import Space
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey

MANAGER_ROLES = ("OWNER", "MANAGER")


def get_project_role(db: Session, project_id: int, user_id: int) -> str | None:
    return db.scalar(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )


def require_project_member(db: Session, project_id: int, actor_id: int) -> str:
    """Return the actor's role, raising ForbiddenError for non-members."""

    role = get_project_role(db, project_id, actor_id)
    if role is None:
        raise ForbiddenError("You are not a member of this project")
    return role


def require_project_role(db: Session, project_id: int, actor_id: int, roles: Iterable[str]) -> str:
    allowed = tuple(roles)
    role = require_project_member(db, project_id, actor_id)
    if role not in allowed:
        raise ForbiddenError(f"This action requires one of the roles: {', '.join(allowed)}")
    return role


def get_project(db: Session, project_id: int) -> Project:
    project = db.scalar(select(Project).where(Project.id == project_id))
    if project is None:
        raise NotFoundError("Project")
    return project


def get_space(db: Session, space_id: int) -> Space:
    space = db.scalar(select(Space).where(Space.id == space_id))
    if space is None:
        raise NotFoundError("Space")
    return space


def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.scalar(select(Branch).where(Branch.id == branch_id))
    if branch is None:
        raise NotFoundError("Branch")
    return branch


def get_translation_key(db: Session, key_id: int) -> TranslationKey:
    key = db.scalar(select(TranslationKey).where(TranslationKey.id == key_id))
    if key is None:
        raise NotFoundError("Translation key")
    return key


def get_translation(db: Session, translation_id: int) -> Translation:
    translation = db.scalar(select(Translation).where(Translation.id == translation_id))
    if translation is None:
        raise NotFoundError("Translation")
    return translation


def project_id_for_branch(db: Session, branch_id: int) -> int:
    project_id = db.scalar(
        select(Space.project_id).join(Branch, Branch.space_id == Space.id).where(Branch.id == branch_id)
    )
    if project_id is None:
        raise NotFoundError("Branch")
    return project_id


def project_id_for_key(db: Session, key_id: int) -> int:
    project_id = db.scalar(
        select(Space.project_id)
        .join(Branch, Branch.space_id == Space.id)
        .join(TranslationKey, TranslationKey.branch_id == Branch.id)
        .where(TranslationKey.id == key_id)
    )
    if project_id is None:
        raise NotFoundError("Translation key")
    return project_id


def project_id_for_translation(db: Session, translation_id: int) -> int:
    project_id = db.scalar(
        select(Space.project_id)
        .join(Branch, Branch.space_id == Space.id)
        .join(TranslationKey, TranslationKey.branch_id == Branch.id)
        .join(Translation, Translation.key_id == TranslationKey.id)
        .where(Translation.id == translation_id)
    )
    if project_id is None:
        raise NotFoundError("Translation")
    return project_id
