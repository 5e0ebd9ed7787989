"""Append-only activity log."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from lokal.models.activity_event import ActivityEvent

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = (
    "merge",
    "branch_create",
    "translation_update",
    "quality_config_update",
    "quality_batch_queued",
    "quality_evaluate",
)


def record_activity(
    db: Session,
    *,
    type: str,
    project_id: int,
    actor_id: int | None,
    branch_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> ActivityEvent:
    """Stage one activity event in the caller's transaction."""

    if type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {type}")
    event = ActivityEvent(
        project_id=project_id,
        branch_id=branch_id,
        user_id=actor_id,
        type=type,
        metadata_json=dict(metadata or {}),
    )
    db.add(event)
    logger.debug("activity.recorded type=%s project_id=%s branch_id=%s", type, project_id, branch_id)
    return event


def list_project_activity(
    db: Session,
    project_id: int,
    *,
    type: str | None = None,
    limit: int = 50,
) -> list[ActivityEvent]:
    stmt = select(ActivityEvent).where(ActivityEvent.project_id == project_id)
    if type is not None:
        stmt = stmt.where(ActivityEvent.type == type)
    stmt = stmt.order_by(ActivityEvent.id.desc()).limit(max(1, min(limit, 500)))
    return list(db.scalars(stmt).all())
