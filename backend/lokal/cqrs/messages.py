"""Command and query messages dispatched through the buses.

Every message carries ``actor_id``; handlers authorize against it before
touching state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lokal.branching.resolution import ResolutionChoice


@dataclass(frozen=True, slots=True)
class Command:
    actor_id: int


@dataclass(frozen=True, slots=True)
class Query:
    actor_id: int


@dataclass(frozen=True, slots=True)
class CreateBranch(Command):
    space_id: int
    name: str
    source_branch_id: int | None = None


@dataclass(frozen=True, slots=True)
class CreateTranslationKey(Command):
    branch_id: int
    name: str
    translations: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UpdateTranslation(Command):
    translation_id: int
    value: str
    status: str | None = None


@dataclass(frozen=True, slots=True)
class MergeBranches(Command):
    source_branch_id: int
    target_branch_id: int
    resolutions: dict[str, ResolutionChoice] = field(default_factory=dict)
    expected_target_version: int | None = None
    delete_removed_keys: bool = False


@dataclass(frozen=True, slots=True)
class EvaluateQuality(Command):
    translation_id: int
    force_ai: bool = False


@dataclass(frozen=True, slots=True)
class EvaluateKeyQuality(Command):
    key_id: int
    force_ai: bool = False


@dataclass(frozen=True, slots=True)
class QueueBatchEvaluation(Command):
    branch_id: int
    translation_ids: tuple[int, ...] | None = None
    force_ai: bool = False


@dataclass(frozen=True, slots=True)
class UpdateQualityConfig(Command):
    project_id: int
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GetBranchDiff(Query):
    source_branch_id: int
    target_branch_id: int


@dataclass(frozen=True, slots=True)
class GetCachedQualityScore(Query):
    translation_id: int


@dataclass(frozen=True, slots=True)
class GetBranchQualitySummary(Query):
    branch_id: int


@dataclass(frozen=True, slots=True)
class GetKeyQualityIssues(Query):
    key_id: int


@dataclass(frozen=True, slots=True)
class GetQualityConfig(Query):
    project_id: int


@dataclass(frozen=True, slots=True)
class ValidateIcuSyntax(Query):
    text: str


@dataclass(frozen=True, slots=True)
class ListProjectActivity(Query):
    project_id: int
    type: str | None = None
    limit: int = 50
