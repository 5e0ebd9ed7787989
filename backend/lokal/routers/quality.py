"""Quality estimation routes."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Request
from sqlalchemy.orm import Session

from lokal.config import get_settings
from lokal.cqrs.bus import Buses
from lokal.cqrs.messages import (
    EvaluateKeyQuality,
    EvaluateQuality,
    GetBranchQualitySummary,
    GetCachedQualityScore,
    GetKeyQualityIssues,
    GetQualityConfig,
    QueueBatchEvaluation,
    UpdateQualityConfig,
    ValidateIcuSyntax,
)
from lokal.db.dependencies import get_actor_id, get_buses, get_db
from lokal.errors import NotFoundError
from lokal.schemas.common import ApiResponse
from lokal.schemas.quality import (
    BatchEvaluationRequest,
    BatchEvaluationResult,
    BatchStats,
    BranchQualitySummaryRead,
    EvaluateRequest,
    IcuValidationRead,
    IcuValidationRequest,
    KeyQualityIssuesRead,
    KeyQualityScoresRead,
    QualityConfigRead,
    QualityConfigUpdate,
    QualityScoreRead,
)
from lokal.services.background_jobs import run_quality_batch_job

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/translations/{translation_id}/quality-evaluate", response_model=ApiResponse[QualityScoreRead])
def post_quality_evaluate(
    payload: EvaluateRequest | None = None,
    translation_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[QualityScoreRead]:
    """Score one translation, returning the cached score when content is unchanged."""

    force_ai = payload.force_ai if payload is not None else False
    result = buses.commands.execute(
        db,
        EvaluateQuality(actor_id=actor_id, translation_id=translation_id, force_ai=force_ai),
    )
    return ApiResponse(data=QualityScoreRead.model_validate(result))


@router.post("/keys/{key_id}/quality-evaluate", response_model=ApiResponse[KeyQualityScoresRead])
def post_key_quality_evaluate(
    payload: EvaluateRequest | None = None,
    key_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[KeyQualityScoresRead]:
    """Score every target-language translation of a key."""

    force_ai = payload.force_ai if payload is not None else False
    results = buses.commands.execute(db, EvaluateKeyQuality(actor_id=actor_id, key_id=key_id, force_ai=force_ai))
    scores = {language: QualityScoreRead.model_validate(result) for language, result in results.items()}
    return ApiResponse(data=KeyQualityScoresRead(key_id=key_id, scores=scores))


@router.get("/translations/{translation_id}/quality", response_model=ApiResponse[QualityScoreRead])
def get_quality_score(
    translation_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[QualityScoreRead]:
    result = buses.queries.ask(db, GetCachedQualityScore(actor_id=actor_id, translation_id=translation_id))
    if result is None:
        raise NotFoundError("Quality score")
    return ApiResponse(data=QualityScoreRead.model_validate(result))


@router.post(
    "/branches/{branch_id}/quality/batch",
    response_model=ApiResponse[BatchEvaluationResult],
    status_code=202,
)
def post_quality_batch(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: BatchEvaluationRequest | None = None,
    branch_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[BatchEvaluationResult]:
    """Count cached translations and schedule evaluation of the rest."""

    payload = payload or BatchEvaluationRequest()
    queued = buses.commands.execute(
        db,
        QueueBatchEvaluation(
            actor_id=actor_id,
            branch_id=branch_id,
            translation_ids=tuple(payload.translation_ids) if payload.translation_ids is not None else None,
            force_ai=payload.force_ai,
        ),
    )
    if queued.translation_ids:
        background_tasks.add_task(
            run_quality_batch_job,
            queued.job_id,
            list(queued.translation_ids),
            service=buses.quality,
            session_factory=request.app.state.session_factory,
            force_ai=payload.force_ai,
            batch_size=get_settings().quality_batch_size,
        )
        logger.info("quality.batch.scheduled job_id=%s queued=%s", queued.job_id, queued.queued)
    return ApiResponse(
        data=BatchEvaluationResult(
            job_id=queued.job_id,
            stats=BatchStats(total=queued.total, cached=queued.cached, queued=queued.queued),
        )
    )


@router.get("/branches/{branch_id}/quality-summary", response_model=ApiResponse[BranchQualitySummaryRead])
def get_quality_summary(
    branch_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[BranchQualitySummaryRead]:
    summary = buses.queries.ask(db, GetBranchQualitySummary(actor_id=actor_id, branch_id=branch_id))
    return ApiResponse(data=BranchQualitySummaryRead.model_validate(summary))


@router.get("/keys/{key_id}/quality/issues", response_model=ApiResponse[KeyQualityIssuesRead])
def get_key_quality_issues(
    key_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[KeyQualityIssuesRead]:
    issues = buses.queries.ask(db, GetKeyQualityIssues(actor_id=actor_id, key_id=key_id))
    return ApiResponse(data=KeyQualityIssuesRead(key_id=key_id, issues=issues))


@router.get("/projects/{project_id}/quality/config", response_model=ApiResponse[QualityConfigRead])
def get_quality_config(
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[QualityConfigRead]:
    config = buses.queries.ask(db, GetQualityConfig(actor_id=actor_id, project_id=project_id))
    return ApiResponse(data=QualityConfigRead(**config))


@router.put("/projects/{project_id}/quality/config", response_model=ApiResponse[QualityConfigRead])
def put_quality_config(
    payload: QualityConfigUpdate,
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[QualityConfigRead]:
    """Update quality settings; requires the MANAGER or OWNER role."""

    config = buses.commands.execute(
        db,
        UpdateQualityConfig(
            actor_id=actor_id,
            project_id=project_id,
            changes=payload.model_dump(exclude_unset=True),
        ),
    )
    return ApiResponse(data=QualityConfigRead(**config))


@router.post("/quality/validate-icu", response_model=ApiResponse[IcuValidationRead])
def post_validate_icu(
    payload: IcuValidationRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[IcuValidationRead]:
    result = buses.queries.ask(db, ValidateIcuSyntax(actor_id=actor_id, text=payload.text))
    return ApiResponse(data=IcuValidationRead.model_validate(result))
