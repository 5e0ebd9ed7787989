"""Quality estimation schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QualityIssueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    severity: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class QualityScoreRead(BaseModel):
    """Stored score plus the flags derived from it at read time."""

    model_config = ConfigDict(from_attributes=True)

    translation_id: int
    score: int = Field(ge=0, le=100)
    passed: bool
    cached: bool
    needs_ai_evaluation: bool
    accuracy_score: int | None = None
    fluency_score: int | None = None
    terminology_score: int | None = None
    format_score: int | None = None
    issues: list[QualityIssueRead] = Field(default_factory=list)
    evaluation_type: str
    provider: str | None = None
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    ai_fallback: bool = False
    content_hash: str | None = None
    evaluated_at: datetime | None = None


class EvaluateRequest(BaseModel):
    force_ai: bool = False


class KeyQualityScoresRead(BaseModel):
    key_id: int
    scores: dict[str, QualityScoreRead] = Field(default_factory=dict)


class BatchEvaluationRequest(BaseModel):
    translation_ids: list[int] | None = None
    force_ai: bool = False


class BatchStats(BaseModel):
    total: int
    cached: int
    queued: int


class BatchEvaluationResult(BaseModel):
    job_id: str
    stats: BatchStats


class ScoreDistributionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    excellent: int
    good: int
    needs_review: int


class LanguageQualityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int
    average: int


class BranchQualitySummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    branch_id: int
    average_score: int
    total_scored: int
    total_translations: int
    distribution: ScoreDistributionRead
    by_language: dict[str, LanguageQualityRead]


class KeyQualityIssuesRead(BaseModel):
    key_id: int
    issues: dict[str, list[QualityIssueRead]]


class QualityConfigRead(BaseModel):
    project_id: int
    score_after_ai_translation: bool
    score_before_merge: bool
    auto_approve_threshold: int
    flag_threshold: int
    ai_evaluation_enabled: bool
    ai_evaluation_provider: str | None = None
    ai_evaluation_model: str | None = None


class QualityConfigUpdate(BaseModel):
    score_after_ai_translation: bool | None = None
    score_before_merge: bool | None = None
    auto_approve_threshold: int | None = Field(default=None, ge=0, le=100)
    flag_threshold: int | None = Field(default=None, ge=0, le=100)
    ai_evaluation_enabled: bool | None = None
    ai_evaluation_provider: str | None = Field(default=None, min_length=1, max_length=64)
    ai_evaluation_model: str | None = Field(default=None, min_length=1, max_length=128)

    @model_validator(mode="after")
    def validate_non_empty_update(self) -> "QualityConfigUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided.")
        cleared = sorted(
            name
            for name in self.model_fields_set - {"ai_evaluation_provider", "ai_evaluation_model"}
            if getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class IcuValidationRequest(BaseModel):
    text: str


class IcuValidationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    valid: bool
    error: str | None = None
