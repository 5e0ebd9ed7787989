"""Branch, key, and translation mutations."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from lokal.branching.diff import TranslationMap
from lokal.errors import ValidationError
from lokal.models.branch import Branch
from lokal.models.project import ProjectLanguage
from lokal.models.translation import TRANSLATION_STATUSES, Translation
from lokal.models.translation_key import TranslationKey
from lokal.services.access import get_branch, get_space, get_translation
from lokal.services.activity import record_activity

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.strip().lower()).strip("-")


def project_language_codes(db: Session, project_id: int) -> set[str]:
    return set(db.scalars(select(ProjectLanguage.code).where(ProjectLanguage.project_id == project_id)).all())


def load_branch_map(db: Session, branch_id: int) -> dict[str, TranslationMap]:
    """Return ``{key_name: {language: value}}`` for one branch; empty values are omitted."""

    keys = db.scalars(
        select(TranslationKey)
        .where(TranslationKey.branch_id == branch_id)
        .options(selectinload(TranslationKey.translations))
        .order_by(TranslationKey.name)
    ).all()
    return {
        key.name: {translation.language: translation.value for translation in key.translations if translation.value}
        for key in keys
    }


def bump_branch_version(branch: Branch) -> int:
    branch.version = (branch.version or 0) + 1
    return branch.version


def create_branch(
    db: Session,
    *,
    space_id: int,
    name: str,
    actor_id: int | None,
    source_branch_id: int | None = None,
) -> Branch:
    """Create a branch, forking keys and the ancestor snapshot from ``source_branch_id``."""

    clean_name = name.strip()
    slug = slugify(clean_name)
    if not clean_name or not slug:
        raise ValidationError("Branch name must contain letters or digits")
    space = get_space(db, space_id)
    existing = db.scalar(select(Branch.id).where(Branch.space_id == space_id, Branch.slug == slug))
    if existing is not None:
        raise ValidationError(f"Branch '{clean_name}' already exists in this space")

    branch_count = db.scalar(select(func.count(Branch.id)).where(Branch.space_id == space_id)) or 0
    snapshot: dict[str, TranslationMap] = {}
    if source_branch_id is not None:
        parent = get_branch(db, source_branch_id)
        if parent.space_id != space_id:
            raise ValidationError("Source branch belongs to a different space")
        snapshot = load_branch_map(db, parent.id)

    branch = Branch(
        space_id=space_id,
        name=clean_name,
        slug=slug,
        is_default=branch_count == 0,
        source_branch_id=source_branch_id,
        base_snapshot_json=snapshot,
        version=1,
    )
    db.add(branch)
    db.flush()

    for key_name, values in snapshot.items():
        _add_key(db, branch.id, key_name, values)

    record_activity(
        db,
        type="branch_create",
        project_id=space.project_id,
        actor_id=actor_id,
        branch_id=branch.id,
        metadata={"name": branch.name, "source_branch_id": source_branch_id, "key_count": len(snapshot)},
    )
    db.commit()
    db.refresh(branch)
    logger.info(
        "branch.created branch_id=%s space_id=%s source_branch_id=%s keys=%s",
        branch.id,
        space_id,
        source_branch_id,
        len(snapshot),
    )
    return branch


def create_key(
    db: Session,
    *,
    branch_id: int,
    name: str,
    translations: Mapping[str, str],
) -> TranslationKey:
    clean_name = name.strip()
    if not clean_name:
        raise ValidationError("Key name must not be empty")
    branch = get_branch(db, branch_id)
    existing = db.scalar(
        select(TranslationKey.id).where(TranslationKey.branch_id == branch_id, TranslationKey.name == clean_name)
    )
    if existing is not None:
        raise ValidationError(f"Key '{clean_name}' already exists on this branch")
    _ensure_languages(db, branch.space.project_id, translations)

    key = _add_key(db, branch_id, clean_name, translations)
    bump_branch_version(branch)
    db.commit()
    db.refresh(key)
    return key


def set_translation_value(
    db: Session,
    *,
    translation_id: int,
    value: str,
    actor_id: int | None,
    status: str | None = None,
) -> Translation:
    """Update one translation value and bump its branch version."""

    translation = get_translation(db, translation_id)
    if status is not None and status not in TRANSLATION_STATUSES:
        raise ValidationError(f"Unknown translation status '{status}'")
    branch = translation.key.branch
    previous = translation.value
    translation.value = value
    if status is not None:
        translation.status = status
    elif previous != value:
        translation.status = "PENDING"
    bump_branch_version(branch)
    record_activity(
        db,
        type="translation_update",
        project_id=branch.space.project_id,
        actor_id=actor_id,
        branch_id=branch.id,
        metadata={"key": translation.key.name, "language": translation.language},
    )
    db.commit()
    db.refresh(translation)
    return translation


def list_branch_keys(db: Session, branch_id: int) -> list[TranslationKey]:
    get_branch(db, branch_id)
    return list(
        db.scalars(
            select(TranslationKey)
            .where(TranslationKey.branch_id == branch_id)
            .options(selectinload(TranslationKey.translations))
            .order_by(TranslationKey.name)
        ).all()
    )


def _add_key(db: Session, branch_id: int, name: str, translations: Mapping[str, str]) -> TranslationKey:
    key = TranslationKey(branch_id=branch_id, name=name)
    key.translations = [
        Translation(language=language, value=value, status="PENDING")
        for language, value in sorted(translations.items())
    ]
    db.add(key)
    db.flush()
    return key


def _ensure_languages(db: Session, project_id: int, translations: Mapping[str, str]) -> None:
    allowed = project_language_codes(db, project_id)
    unknown = sorted(set(translations) - allowed)
    if unknown:
        raise ValidationError(f"Languages not enabled for this project: {', '.join(unknown)}")
