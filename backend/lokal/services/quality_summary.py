"""Branch-level aggregation of stored quality scores."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lokal.models.quality_score import TranslationQualityScore
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey
from lokal.services.access import get_branch

EXCELLENT_THRESHOLD = 80
GOOD_THRESHOLD = 60


@dataclass(slots=True)
class ScoreDistribution:
    excellent: int = 0
    good: int = 0
    needs_review: int = 0


@dataclass(slots=True)
class LanguageQuality:
    count: int
    average: int


@dataclass(slots=True)
class BranchQualitySummary:
    branch_id: int
    average_score: int
    total_scored: int
    total_translations: int
    distribution: ScoreDistribution = field(default_factory=ScoreDistribution)
    by_language: dict[str, LanguageQuality] = field(default_factory=dict)


def _mean(scores: Iterable[int]) -> int:
    values = list(scores)
    if not values:
        return 0
    # Halves round up.
    return math.floor(sum(values) / len(values) + 0.5)


def summarize_scores(scores_by_language: list[tuple[str, int]]) -> tuple[int, ScoreDistribution, dict[str, LanguageQuality]]:
    """Average, bucket distribution, and per-language breakdown of ``(language, score)`` pairs."""

    distribution = ScoreDistribution()
    per_language: dict[str, list[int]] = {}
    for language, score in scores_by_language:
        if score >= EXCELLENT_THRESHOLD:
            distribution.excellent += 1
        elif score >= GOOD_THRESHOLD:
            distribution.good += 1
        else:
            distribution.needs_review += 1
        per_language.setdefault(language, []).append(score)

    average = _mean(score for _, score in scores_by_language)
    by_language = {
        language: LanguageQuality(count=len(scores), average=_mean(scores))
        for language, scores in sorted(per_language.items())
    }
    return average, distribution, by_language


def get_branch_quality_summary(db: Session, branch_id: int) -> BranchQualitySummary:
    get_branch(db, branch_id)
    total_translations = db.scalar(
        select(func.count(Translation.id))
        .join(TranslationKey, Translation.key_id == TranslationKey.id)
        .where(TranslationKey.branch_id == branch_id, Translation.value != "")
    ) or 0
    rows = db.execute(
        select(Translation.language, TranslationQualityScore.score)
        .join(TranslationQualityScore, TranslationQualityScore.translation_id == Translation.id)
        .join(TranslationKey, Translation.key_id == TranslationKey.id)
        .where(TranslationKey.branch_id == branch_id, Translation.value != "")
    ).all()
    average, distribution, by_language = summarize_scores([(language, score) for language, score in rows])
    return BranchQualitySummary(
        branch_id=branch_id,
        average_score=average,
        total_scored=len(rows),
        total_translations=total_translations,
        distribution=distribution,
        by_language=by_language,
    )
