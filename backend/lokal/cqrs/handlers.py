"""Command and query handlers; each authorizes the actor before any side effect."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from lokal.config import Settings
from lokal.cqrs.messages import (
    CreateBranch,
    CreateTranslationKey,
    EvaluateKeyQuality,
    EvaluateQuality,
    GetBranchDiff,
    GetBranchQualitySummary,
    GetCachedQualityScore,
    GetKeyQualityIssues,
    GetQualityConfig,
    ListProjectActivity,
    MergeBranches,
    QueueBatchEvaluation,
    UpdateQualityConfig,
    UpdateTranslation,
    ValidateIcuSyntax,
)
from lokal.models.activity_event import ActivityEvent
from lokal.models.branch import Branch
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey
from lokal.quality.icu import IcuValidationResult, validate_icu_syntax
from lokal.services import access
from lokal.services.activity import list_project_activity
from lokal.services.branches import create_branch, create_key, set_translation_value
from lokal.services.diff import BranchDiff, compute_branch_diff
from lokal.services.merge import MergeOutcome, authorize_merge, merge_branches
from lokal.services.quality import BatchQueueResult, QualityEstimationService, QualityScoreResult
from lokal.services.quality_summary import BranchQualitySummary, get_branch_quality_summary


class LokalHandlers:
    """Handler functions bound to the services they delegate to."""

    def __init__(self, *, settings: Settings, quality: QualityEstimationService) -> None:
        self.settings = settings
        self.quality = quality

    # Commands

    def create_branch(self, db: Session, command: CreateBranch) -> Branch:
        space = access.get_space(db, command.space_id)
        access.require_project_member(db, space.project_id, command.actor_id)
        return create_branch(
            db,
            space_id=command.space_id,
            name=command.name,
            actor_id=command.actor_id,
            source_branch_id=command.source_branch_id,
        )

    def create_translation_key(self, db: Session, command: CreateTranslationKey) -> TranslationKey:
        project_id = access.project_id_for_branch(db, command.branch_id)
        access.require_project_member(db, project_id, command.actor_id)
        return create_key(db, branch_id=command.branch_id, name=command.name, translations=command.translations)

    def update_translation(self, db: Session, command: UpdateTranslation) -> Translation:
        project_id = access.project_id_for_translation(db, command.translation_id)
        access.require_project_member(db, project_id, command.actor_id)
        return set_translation_value(
            db,
            translation_id=command.translation_id,
            value=command.value,
            status=command.status,
            actor_id=command.actor_id,
        )

    def merge_branches(self, db: Session, command: MergeBranches) -> MergeOutcome:
        target = access.get_branch(db, command.target_branch_id)
        authorize_merge(db, target, command.actor_id)
        return merge_branches(
            db,
            source_branch_id=command.source_branch_id,
            target_branch_id=command.target_branch_id,
            resolutions=command.resolutions,
            actor_id=command.actor_id,
            expected_target_version=command.expected_target_version,
            delete_removed_keys=command.delete_removed_keys,
            custom_fallback=self.settings.merge_custom_resolution_fallback,
        )

    def evaluate_quality(self, db: Session, command: EvaluateQuality) -> QualityScoreResult:
        project_id = access.project_id_for_translation(db, command.translation_id)
        access.require_project_member(db, project_id, command.actor_id)
        return self.quality.evaluate(db, command.translation_id, force_ai=command.force_ai, actor_id=command.actor_id)

    def evaluate_key_quality(self, db: Session, command: EvaluateKeyQuality) -> dict[str, QualityScoreResult]:
        project_id = access.project_id_for_key(db, command.key_id)
        access.require_project_member(db, project_id, command.actor_id)
        return self.quality.evaluate_key(db, command.key_id, force_ai=command.force_ai, actor_id=command.actor_id)

    def queue_batch_evaluation(self, db: Session, command: QueueBatchEvaluation) -> BatchQueueResult:
        project_id = access.project_id_for_branch(db, command.branch_id)
        access.require_project_member(db, project_id, command.actor_id)
        return self.quality.queue_batch(
            db,
            command.branch_id,
            translation_ids=list(command.translation_ids) if command.translation_ids is not None else None,
            actor_id=command.actor_id,
            force_ai=command.force_ai,
        )

    def update_quality_config(self, db: Session, command: UpdateQualityConfig) -> dict[str, Any]:
        access.get_project(db, command.project_id)
        access.require_project_role(db, command.project_id, command.actor_id, access.MANAGER_ROLES)
        return self.quality.update_config(db, command.project_id, dict(command.changes), actor_id=command.actor_id)

    # Queries

    def get_branch_diff(self, db: Session, query: GetBranchDiff) -> BranchDiff:
        project_id = access.project_id_for_branch(db, query.source_branch_id)
        access.require_project_member(db, project_id, query.actor_id)
        return compute_branch_diff(db, query.source_branch_id, query.target_branch_id)

    def get_cached_quality_score(self, db: Session, query: GetCachedQualityScore) -> QualityScoreResult | None:
        project_id = access.project_id_for_translation(db, query.translation_id)
        access.require_project_member(db, project_id, query.actor_id)
        return self.quality.get_cached_score(db, query.translation_id)

    def get_branch_quality_summary(self, db: Session, query: GetBranchQualitySummary) -> BranchQualitySummary:
        project_id = access.project_id_for_branch(db, query.branch_id)
        access.require_project_member(db, project_id, query.actor_id)
        return get_branch_quality_summary(db, query.branch_id)

    def get_key_quality_issues(self, db: Session, query: GetKeyQualityIssues) -> dict[str, list[dict[str, Any]]]:
        project_id = access.project_id_for_key(db, query.key_id)
        access.require_project_member(db, project_id, query.actor_id)
        return self.quality.get_key_issues(db, query.key_id)

    def get_quality_config(self, db: Session, query: GetQualityConfig) -> dict[str, Any]:
        access.get_project(db, query.project_id)
        access.require_project_member(db, query.project_id, query.actor_id)
        return self.quality.get_config(db, query.project_id)

    def validate_icu_syntax(self, db: Session, query: ValidateIcuSyntax) -> IcuValidationResult:
        return validate_icu_syntax(query.text)

    def list_project_activity(self, db: Session, query: ListProjectActivity) -> list[ActivityEvent]:
        access.get_project(db, query.project_id)
        access.require_project_member(db, query.project_id, query.actor_id)
        return list_project_activity(db, query.project_id, type=query.type, limit=query.limit)
