"""Atomic application of a branch diff onto its target branch."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from time import perf_counter

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from lokal.branching.diff import TranslationMap, merge_modified_values, translations_equal
from lokal.branching.resolution import CustomFallback, ResolutionChoice, ResolutionSet, resolve_conflict_values
from lokal.errors import MergeConflictStaleError, UnresolvedConflictError, ValidationError
from lokal.models.branch import Branch
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey
from lokal.services.access import MANAGER_ROLES, require_project_member, require_project_role
from lokal.services.activity import record_activity
from lokal.services.branches import project_language_codes
from lokal.services.diff import diff_loaded_branches, load_branch_pair

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeOutcome:
    success: bool
    merged: int
    added: int
    modified: int
    deleted: int
    conflicts_resolved: int
    target_version: int


def authorize_merge(db: Session, target: Branch, actor_id: int) -> str:
    """Members may merge into feature branches; the default branch needs a manager."""

    project_id = target.space.project_id
    if target.is_default:
        return require_project_role(db, project_id, actor_id, MANAGER_ROLES)
    return require_project_member(db, project_id, actor_id)


def merge_branches(
    db: Session,
    *,
    source_branch_id: int,
    target_branch_id: int,
    resolutions: ResolutionSet | Mapping[str, ResolutionChoice] | None,
    actor_id: int | None,
    expected_target_version: int | None = None,
    delete_removed_keys: bool = False,
    custom_fallback: CustomFallback = "reject",
) -> MergeOutcome:
    """Apply source changes to the target branch in one transaction.

    Nothing is written unless every conflict has a resolution, the target
    branch still has the version the caller diffed against, and every
    resolution refers to a current conflict.
    """

    started_at = perf_counter()
    try:
        outcome = _merge(
            db,
            source_branch_id=source_branch_id,
            target_branch_id=target_branch_id,
            resolutions=resolutions,
            actor_id=actor_id,
            expected_target_version=expected_target_version,
            delete_removed_keys=delete_removed_keys,
            custom_fallback=custom_fallback,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning(
            "branch.merge.rolled_back source_branch_id=%s target_branch_id=%s",
            source_branch_id,
            target_branch_id,
        )
        raise

    logger.info(
        "branch.merge.completed source_branch_id=%s target_branch_id=%s merged=%s conflicts_resolved=%s target_version=%s duration_ms=%.2f",
        source_branch_id,
        target_branch_id,
        outcome.merged,
        outcome.conflicts_resolved,
        outcome.target_version,
        (perf_counter() - started_at) * 1000,
    )
    return outcome


def _merge(
    db: Session,
    *,
    source_branch_id: int,
    target_branch_id: int,
    resolutions: ResolutionSet | Mapping[str, ResolutionChoice] | None,
    actor_id: int | None,
    expected_target_version: int | None,
    delete_removed_keys: bool,
    custom_fallback: CustomFallback,
) -> MergeOutcome:
    resolution_set = resolutions if isinstance(resolutions, ResolutionSet) else ResolutionSet(resolutions)
    source, target = load_branch_pair(db, source_branch_id, target_branch_id)
    target = db.scalar(
        select(Branch)
        .where(Branch.id == target.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    seen_version = target.version
    if expected_target_version is not None and expected_target_version != seen_version:
        raise MergeConflictStaleError(
            "Target branch changed since the diff was computed",
            details={"expected_version": expected_target_version, "current_version": seen_version},
        )

    diff = diff_loaded_branches(db, source, target)
    changes = diff.changes
    conflict_keys = {conflict.key for conflict in changes.conflicts}
    stale_keys = sorted(key for key in resolution_set if key not in conflict_keys)
    if stale_keys:
        raise MergeConflictStaleError(
            "Resolutions refer to keys that are no longer in conflict",
            details={"keys": stale_keys},
        )
    unresolved = resolution_set.unresolved(changes.conflicts)
    if unresolved:
        raise UnresolvedConflictError(unresolved)

    resolved_values: dict[str, TranslationMap] = {}
    if changes.conflicts:
        allowed_languages = project_language_codes(db, target.space.project_id)
        for conflict in changes.conflicts:
            values = resolve_conflict_values(conflict, resolution_set.get(conflict.key), fallback=custom_fallback)
            unknown = sorted(set(values) - allowed_languages)
            if unknown:
                raise ValidationError(
                    f"Resolution for '{conflict.key}' uses languages not enabled for this project: {', '.join(unknown)}",
                    details={"key": conflict.key, "languages": unknown},
                )
            resolved_values[conflict.key] = values

    result = db.execute(
        update(Branch)
        .where(Branch.id == target.id, Branch.version == seen_version)
        .values(version=seen_version + 1)
    )
    if result.rowcount != 1:
        raise MergeConflictStaleError("Target branch was modified concurrently")

    target_keys = {
        key.name: key
        for key in db.scalars(
            select(TranslationKey)
            .where(TranslationKey.branch_id == target.id)
            .options(selectinload(TranslationKey.translations))
        ).all()
    }

    for change in changes.added:
        key = TranslationKey(branch_id=target.id, name=change.key)
        db.add(key)
        _apply_values(key, change.translations)
    modified = 0
    for change in changes.modified:
        ancestor = None if diff.base_map is None else diff.base_map.get(change.key) or {}
        values = merge_modified_values(change.source, change.target, ancestor)
        if not translations_equal(values, change.target):
            _apply_values(target_keys[change.key], values)
            modified += 1
    for key_name, values in resolved_values.items():
        _apply_values(target_keys[key_name], values)
    deleted = 0
    if delete_removed_keys:
        for change in changes.deleted:
            db.delete(target_keys[change.key])
            deleted += 1
    db.flush()

    # The fork's ancestor becomes the source state just merged, so resolutions
    # that kept target values are not offered again as source edits.
    snapshot = {key: dict(values) for key, values in diff.source_map.items()}
    if source.source_branch_id == target.id:
        source.base_snapshot_json = snapshot
    elif target.source_branch_id == source.id:
        target.base_snapshot_json = snapshot

    outcome = MergeOutcome(
        success=True,
        merged=len(changes.added) + modified + len(resolved_values) + deleted,
        added=len(changes.added),
        modified=modified,
        deleted=deleted,
        conflicts_resolved=len(resolved_values),
        target_version=seen_version + 1,
    )
    record_activity(
        db,
        type="merge",
        project_id=target.space.project_id,
        actor_id=actor_id,
        branch_id=target.id,
        metadata={
            "source_branch": source.name,
            "target_branch": target.name,
            "conflicts_resolved": outcome.conflicts_resolved,
            "added": outcome.added,
            "modified": outcome.modified,
            "deleted": outcome.deleted,
        },
    )
    return outcome


def _apply_values(key: TranslationKey, values: TranslationMap) -> None:
    """Make the key's non-empty translations exactly ``values``."""

    existing = {translation.language: translation for translation in key.translations}
    for language, value in sorted(values.items()):
        translation = existing.get(language)
        if translation is None:
            key.translations.append(Translation(language=language, value=value, status="PENDING"))
        elif translation.value != value:
            translation.value = value
            translation.status = "PENDING"
    for language, translation in existing.items():
        if language not in values and translation.value:
            translation.value = ""
            translation.status = "PENDING"
