"""Branch diff loading on top of the pure classifier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter

from sqlalchemy.orm import Session

from lokal.branching.diff import BranchChanges, TranslationMap, classify_branch_changes
from lokal.errors import InvalidMergeError
from lokal.models.branch import Branch
from lokal.services.access import get_branch
from lokal.services.branches import load_branch_map

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BranchDiff:
    source: Branch
    target: Branch
    changes: BranchChanges
    source_map: dict[str, TranslationMap]
    target_map: dict[str, TranslationMap]
    base_map: dict[str, TranslationMap] | None = None


def load_branch_pair(db: Session, source_branch_id: int, target_branch_id: int) -> tuple[Branch, Branch]:
    if source_branch_id == target_branch_id:
        raise InvalidMergeError("Cannot diff a branch with itself")
    source = get_branch(db, source_branch_id)
    target = get_branch(db, target_branch_id)
    if source.space_id != target.space_id:
        raise InvalidMergeError("Branches must belong to the same space")
    return source, target


def common_ancestor_snapshot(source: Branch, target: Branch) -> dict[str, TranslationMap] | None:
    """Return the ancestor snapshot when one branch was forked from the other."""

    if source.source_branch_id == target.id:
        return dict(source.base_snapshot_json or {})
    if target.source_branch_id == source.id:
        return dict(target.base_snapshot_json or {})
    return None


def diff_loaded_branches(db: Session, source: Branch, target: Branch) -> BranchDiff:
    source_map = load_branch_map(db, source.id)
    target_map = load_branch_map(db, target.id)
    base_map = common_ancestor_snapshot(source, target)
    changes = classify_branch_changes(source_map, target_map, base_map)
    return BranchDiff(
        source=source,
        target=target,
        changes=changes,
        source_map=source_map,
        target_map=target_map,
        base_map=base_map,
    )


def compute_branch_diff(db: Session, source_branch_id: int, target_branch_id: int) -> BranchDiff:
    """Compare two branches of one space from the source branch's perspective."""

    started_at = perf_counter()
    source, target = load_branch_pair(db, source_branch_id, target_branch_id)
    diff = diff_loaded_branches(db, source, target)
    logger.info(
        "branch.diff.completed source_branch_id=%s target_branch_id=%s added=%s modified=%s deleted=%s conflicts=%s duration_ms=%.2f",
        source.id,
        target.id,
        len(diff.changes.added),
        len(diff.changes.modified),
        len(diff.changes.deleted),
        len(diff.changes.conflicts),
        (perf_counter() - started_at) * 1000,
    )
    return diff
