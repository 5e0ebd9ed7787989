"""Tiered translation quality estimation with a content-hash score cache."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from time import perf_counter
from typing import Any
from weakref import WeakValueDictionary

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from lokal.errors import EvaluationError, ValidationError
from lokal.models.glossary_entry import GlossaryEntry
from lokal.models.quality_config import QualityScoringConfig
from lokal.models.quality_score import TranslationQualityScore
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey
from lokal.quality.ai_evaluator import AIEvaluator, TextGenerationClient
from lokal.quality.checks import GlossaryTerm, QualityIssue, run_quality_checks
from lokal.quality.circuit_breaker import CircuitBreaker
from lokal.quality.scoring import (
    generate_content_hash,
    heuristic_result,
    is_passing,
    needs_ai_evaluation,
)
from lokal.services.access import get_branch, get_translation, get_translation_key
from lokal.services.activity import record_activity

logger = logging.getLogger(__name__)

TextClientFactory = Callable[[str, str], TextGenerationClient | None]

DEFAULT_QUALITY_CONFIG: dict[str, Any] = {
    "score_after_ai_translation": True,
    "score_before_merge": False,
    "auto_approve_threshold": 80,
    "flag_threshold": 60,
    "ai_evaluation_enabled": False,
    "ai_evaluation_provider": None,
    "ai_evaluation_model": None,
}
_NULLABLE_CONFIG_FIELDS = frozenset({"ai_evaluation_provider", "ai_evaluation_model"})

# Entries disappear once no thread holds or waits on the lock.
_translation_locks: WeakValueDictionary[int, Lock] = WeakValueDictionary()
_translation_locks_guard = Lock()


@contextmanager
def _translation_lock(translation_id: int) -> Iterator[None]:
    with _translation_locks_guard:
        lock = _translation_locks.get(translation_id)
        if lock is None:
            lock = Lock()
            _translation_locks[translation_id] = lock
    with lock:
        yield


@dataclass(slots=True)
class QualityScoreResult:
    translation_id: int
    score: int
    evaluation_type: str
    content_hash: str | None
    evaluated_at: datetime | None
    accuracy_score: int | None = None
    fluency_score: int | None = None
    terminology_score: int | None = None
    format_score: int | None = None
    issues: list[QualityIssue] = field(default_factory=list)
    provider: str | None = None
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    ai_fallback: bool = False
    cached: bool = False

    @property
    def passed(self) -> bool:
        return is_passing(self.score)

    @property
    def needs_ai_evaluation(self) -> bool:
        return needs_ai_evaluation(self.score, self.issues)

    @classmethod
    def from_record(cls, record: TranslationQualityScore, *, cached: bool = False) -> "QualityScoreResult":
        return cls(
            translation_id=record.translation_id,
            score=record.score,
            evaluation_type=record.evaluation_type,
            content_hash=record.content_hash,
            evaluated_at=record.evaluated_at,
            accuracy_score=record.accuracy_score,
            fluency_score=record.fluency_score,
            terminology_score=record.terminology_score,
            format_score=record.format_score,
            issues=[QualityIssue.from_dict(item) for item in record.issues_json or []],
            provider=record.provider,
            model=record.model,
            input_tokens=record.input_tokens or 0,
            output_tokens=record.output_tokens or 0,
            ai_fallback=bool(record.ai_fallback),
            cached=cached,
        )


@dataclass(slots=True)
class BatchQueueResult:
    job_id: str
    total: int
    cached: int
    queued: int
    translation_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class _EvaluationContext:
    translation: Translation
    key_name: str
    project_id: int
    source_language: str
    source_text: str | None
    content_hash: str


class QualityEstimationService:
    """Scores translations heuristically and escalates to AI when configured."""

    def __init__(
        self,
        *,
        text_client_factory: TextClientFactory | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        ai_max_retries: int = 2,
        ai_retry_backoff_seconds: float = 0.5,
    ) -> None:
        self._text_client_factory = text_client_factory
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.ai_max_retries = ai_max_retries
        self.ai_retry_backoff_seconds = ai_retry_backoff_seconds

    def evaluate(
        self,
        db: Session,
        translation_id: int,
        *,
        force_ai: bool = False,
        actor_id: int | None = None,
    ) -> QualityScoreResult:
        """Return the cached score for unchanged content, otherwise score and persist it."""

        started_at = perf_counter()
        context = self._load_context(db, translation_id)
        translation = context.translation

        stored = translation.quality_score
        if stored is not None and stored.content_hash == context.content_hash:
            logger.debug(
                "quality.cache_hit translation_id=%s key=%s language=%s score=%s",
                translation.id,
                context.key_name,
                translation.language,
                stored.score,
            )
            return QualityScoreResult.from_record(stored, cached=True)

        glossary = self._glossary_terms(db, context.project_id, translation.language) if context.source_text else []
        checks = run_quality_checks(context.source_text, translation.value, glossary=glossary)
        heuristic = heuristic_result(checks)
        needs_ai = heuristic.needs_ai_evaluation or any(issue.type == "glossary_missing" for issue in checks)

        values: dict[str, Any] = {
            "score": heuristic.score,
            "accuracy_score": None,
            "fluency_score": None,
            "terminology_score": None,
            "format_score": heuristic.score,
            "issues_json": [issue.to_dict() for issue in heuristic.issues],
            "evaluation_type": "heuristic",
            "provider": None,
            "model": None,
            "input_tokens": 0,
            "output_tokens": 0,
            "ai_fallback": False,
            "content_hash": context.content_hash,
        }

        if context.source_text and (force_ai or needs_ai or not heuristic.passed):
            evaluator = self._build_evaluator(db, context.project_id)
            if evaluator is not None:
                try:
                    ai = evaluator.evaluate(
                        key_name=context.key_name,
                        source_text=context.source_text,
                        source_language=context.source_language,
                        target_text=translation.value,
                        target_language=translation.language,
                        format_score=heuristic.score,
                        glossary=glossary,
                    )
                except EvaluationError as exc:
                    logger.warning(
                        "quality.ai_evaluate.failed translation_id=%s error=%s; using heuristic score",
                        translation.id,
                        exc,
                    )
                    values["ai_fallback"] = True
                else:
                    values.update(
                        score=ai.score,
                        accuracy_score=ai.accuracy,
                        fluency_score=ai.fluency,
                        terminology_score=ai.terminology,
                        format_score=ai.format_score,
                        issues_json=[issue.to_dict() for issue in [*heuristic.issues, *ai.issues]],
                        evaluation_type="ai",
                        provider=ai.provider,
                        model=ai.model,
                        input_tokens=ai.input_tokens,
                        output_tokens=ai.output_tokens,
                    )

        with _translation_lock(translation.id):
            record = self._upsert_score(db, translation.id, values)
            if actor_id is not None:
                record_activity(
                    db,
                    type="quality_evaluate",
                    project_id=context.project_id,
                    actor_id=actor_id,
                    branch_id=translation.key.branch_id,
                    metadata={
                        "key": context.key_name,
                        "language": translation.language,
                        "score": record.score,
                        "evaluation_type": record.evaluation_type,
                    },
                )
            db.commit()
            db.refresh(record)

        logger.info(
            "quality.evaluate.completed translation_id=%s language=%s score=%s evaluation_type=%s issues=%s duration_ms=%.2f",
            translation.id,
            translation.language,
            record.score,
            record.evaluation_type,
            len(record.issues_json or []),
            (perf_counter() - started_at) * 1000,
        )
        return QualityScoreResult.from_record(record)

    def get_cached_score(self, db: Session, translation_id: int) -> QualityScoreResult | None:
        translation = get_translation(db, translation_id)
        record = translation.quality_score
        if record is None:
            return None
        return QualityScoreResult.from_record(record, cached=True)

    def is_cached(self, db: Session, translation: Translation) -> bool:
        """True when a stored score matches the translation's current content."""

        record = translation.quality_score
        if record is None or not translation.value:
            return False
        return record.content_hash == self._content_hash(db, translation)

    def queue_batch(
        self,
        db: Session,
        branch_id: int,
        *,
        translation_ids: list[int] | None = None,
        actor_id: int | None = None,
        force_ai: bool = False,
    ) -> BatchQueueResult:
        """Split branch translations into cached and to-be-evaluated sets."""

        branch = get_branch(db, branch_id)
        stmt = (
            select(Translation)
            .join(TranslationKey, Translation.key_id == TranslationKey.id)
            .where(TranslationKey.branch_id == branch_id, Translation.value != "")
            .options(selectinload(Translation.quality_score))
            .order_by(TranslationKey.name, Translation.language)
        )
        if translation_ids is not None:
            stmt = stmt.where(Translation.id.in_(translation_ids))
        translations = list(db.scalars(stmt).all())

        queued_ids = [translation.id for translation in translations if not self.is_cached(db, translation)]
        result = BatchQueueResult(
            job_id=uuid.uuid4().hex,
            total=len(translations),
            cached=len(translations) - len(queued_ids),
            queued=len(queued_ids),
            translation_ids=queued_ids,
        )
        if result.queued:
            record_activity(
                db,
                type="quality_batch_queued",
                project_id=branch.space.project_id,
                actor_id=actor_id,
                branch_id=branch.id,
                metadata={"job_id": result.job_id, "queued": result.queued, "force_ai": force_ai},
            )
            db.commit()
        logger.info(
            "quality.batch.queued job_id=%s branch_id=%s total=%s cached=%s queued=%s",
            result.job_id,
            branch_id,
            result.total,
            result.cached,
            result.queued,
        )
        return result

    def evaluate_key(
        self,
        db: Session,
        key_id: int,
        *,
        force_ai: bool = False,
        actor_id: int | None = None,
    ) -> dict[str, QualityScoreResult]:
        """Score every non-empty target-language translation of one key."""

        key = get_translation_key(db, key_id)
        source_language = key.branch.space.project.default_language
        translation_ids = [
            (translation.language, translation.id)
            for translation in sorted(key.translations, key=lambda item: item.language)
            if translation.value and translation.language != source_language
        ]
        results = {
            language: self.evaluate(db, translation_id, force_ai=force_ai, actor_id=actor_id)
            for language, translation_id in translation_ids
        }
        logger.info(
            "quality.evaluate_key.completed key_id=%s languages=%s fallbacks=%s",
            key_id,
            len(results),
            sum(1 for result in results.values() if result.ai_fallback),
        )
        return results

    def get_key_issues(self, db: Session, key_id: int) -> dict[str, list[dict[str, Any]]]:
        """Stored issues grouped by language; languages without issues are omitted."""

        key = get_translation_key(db, key_id)
        issues_by_language: dict[str, list[dict[str, Any]]] = {}
        for translation in key.translations:
            record = translation.quality_score
            if record is not None and record.issues_json:
                issues_by_language[translation.language] = list(record.issues_json)
        return issues_by_language

    def get_config(self, db: Session, project_id: int) -> dict[str, Any]:
        record = db.scalar(select(QualityScoringConfig).where(QualityScoringConfig.project_id == project_id))
        if record is None:
            return {"project_id": project_id, **DEFAULT_QUALITY_CONFIG}
        return {"project_id": project_id, **{name: getattr(record, name) for name in DEFAULT_QUALITY_CONFIG}}

    def update_config(
        self,
        db: Session,
        project_id: int,
        changes: dict[str, Any],
        *,
        actor_id: int | None = None,
    ) -> dict[str, Any]:
        unknown = sorted(set(changes) - set(DEFAULT_QUALITY_CONFIG))
        if unknown:
            raise ValidationError(f"Unknown quality config fields: {', '.join(unknown)}")
        cleared = sorted(name for name, value in changes.items() if value is None and name not in _NULLABLE_CONFIG_FIELDS)
        if cleared:
            raise ValidationError(f"Quality config fields cannot be null: {', '.join(cleared)}")
        merged = {**self.get_config(db, project_id), **changes}
        for name in ("auto_approve_threshold", "flag_threshold"):
            if not 0 <= int(merged[name]) <= 100:
                raise ValidationError(f"{name} must be between 0 and 100")
        if merged["flag_threshold"] > merged["auto_approve_threshold"]:
            raise ValidationError("flag_threshold must not exceed auto_approve_threshold")

        record = db.scalar(select(QualityScoringConfig).where(QualityScoringConfig.project_id == project_id))
        if record is None:
            record = QualityScoringConfig(project_id=project_id, **DEFAULT_QUALITY_CONFIG)
            db.add(record)
        for name, value in changes.items():
            setattr(record, name, value)
        record_activity(
            db,
            type="quality_config_update",
            project_id=project_id,
            actor_id=actor_id,
            metadata={"changes": dict(sorted(changes.items()))},
        )
        db.commit()
        return self.get_config(db, project_id)

    def _load_context(self, db: Session, translation_id: int) -> _EvaluationContext:
        translation = get_translation(db, translation_id)
        if not translation.value:
            raise ValidationError("Translation value is empty")
        key = translation.key
        project = key.branch.space.project
        source_text = self._source_text(db, translation, project.default_language)
        return _EvaluationContext(
            translation=translation,
            key_name=key.name,
            project_id=project.id,
            source_language=project.default_language,
            source_text=source_text,
            content_hash=generate_content_hash(source_text, translation.value),
        )

    def _content_hash(self, db: Session, translation: Translation) -> str:
        source_language = translation.key.branch.space.project.default_language
        return generate_content_hash(self._source_text(db, translation, source_language), translation.value)

    @staticmethod
    def _source_text(db: Session, translation: Translation, source_language: str) -> str | None:
        if translation.language == source_language:
            return None
        value = db.scalar(
            select(Translation.value).where(
                Translation.key_id == translation.key_id,
                Translation.language == source_language,
            )
        )
        return value or None

    @staticmethod
    def _glossary_terms(db: Session, project_id: int, language: str) -> list[GlossaryTerm]:
        entries = db.scalars(
            select(GlossaryEntry)
            .where(GlossaryEntry.project_id == project_id, GlossaryEntry.target_language == language)
            .order_by(GlossaryEntry.source_term)
        ).all()
        return [GlossaryTerm(source_term=entry.source_term, target_term=entry.target_term) for entry in entries]

    def _build_evaluator(self, db: Session, project_id: int) -> AIEvaluator | None:
        config = self.get_config(db, project_id)
        provider = config["ai_evaluation_provider"]
        model = config["ai_evaluation_model"]
        if not (config["ai_evaluation_enabled"] and provider and model and self._text_client_factory):
            return None
        client = self._text_client_factory(provider, model)
        if client is None:
            logger.info("quality.ai_unavailable project_id=%s provider=%s", project_id, provider)
            return None
        return AIEvaluator(
            client,
            provider=provider,
            model=model,
            circuit_breaker=self.circuit_breaker,
            max_retries=self.ai_max_retries,
            backoff_seconds=self.ai_retry_backoff_seconds,
        )

    @staticmethod
    def _find_score(db: Session, translation_id: int) -> TranslationQualityScore | None:
        return db.scalar(
            select(TranslationQualityScore)
            .where(TranslationQualityScore.translation_id == translation_id)
            .execution_options(populate_existing=True)
        )

    def _upsert_score(self, db: Session, translation_id: int, values: dict[str, Any]) -> TranslationQualityScore:
        values = {**values, "evaluated_at": datetime.now(timezone.utc)}
        record = self._find_score(db, translation_id)
        if record is None:
            try:
                with db.begin_nested():
                    record = TranslationQualityScore(translation_id=translation_id, **values)
                    db.add(record)
                return record
            except IntegrityError:
                # Another writer inserted the row first; update it instead.
                record = self._find_score(db, translation_id)
                if record is None:
                    raise
                logger.info("quality.upsert.retried translation_id=%s", translation_id)
        for name, value in values.items():
            setattr(record, name, value)
        db.flush()
        return record

