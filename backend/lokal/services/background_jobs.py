"""Background jobs for batch quality evaluation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from time import perf_counter

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lokal.errors import LokalError
from lokal.services.quality import QualityEstimationService

logger = logging.getLogger(__name__)


def run_quality_batch_job(
    job_id: str,
    translation_ids: list[int],
    *,
    service: QualityEstimationService,
    session_factory: Callable[[], Session],
    force_ai: bool = False,
    batch_size: int = 10,
) -> dict[str, int]:
    """Evaluate queued translations in a dedicated session; failures are logged and skipped."""

    total_started = perf_counter()
    evaluated = 0
    failed = 0
    db = session_factory()
    try:
        for offset in range(0, len(translation_ids), max(1, batch_size)):
            chunk = translation_ids[offset : offset + max(1, batch_size)]
            for translation_id in chunk:
                try:
                    service.evaluate(db, translation_id, force_ai=force_ai)
                    evaluated += 1
                except (LokalError, SQLAlchemyError) as exc:
                    db.rollback()
                    failed += 1
                    logger.error(
                        "quality.batch.item_failed job_id=%s translation_id=%s error=%s",
                        job_id,
                        translation_id,
                        exc,
                    )
            # Release identity-map state between chunks.
            db.expunge_all()
        logger.info(
            "quality.batch.completed job_id=%s evaluated=%d failed=%d total_ms=%.2f",
            job_id,
            evaluated,
            failed,
            (perf_counter() - total_started) * 1000.0,
        )
    except Exception:
        logger.exception(
            "quality.batch.failed job_id=%s elapsed_ms=%.2f",
            job_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()
    return {"evaluated": evaluated, "failed": failed}
