"""Project activity routes."""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from lokal.cqrs.bus import Buses
from lokal.cqrs.messages import ListProjectActivity
from lokal.db.dependencies import get_actor_id, get_buses, get_db
from lokal.schemas.activity import ActivityEventRead
from lokal.schemas.common import ApiResponse

router = APIRouter()


@router.get("/projects/{project_id}/activity", response_model=ApiResponse[list[ActivityEventRead]])
def get_activity(
    project_id: int = Path(..., ge=1),
    type: str | None = Query(default=None, min_length=1),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[list[ActivityEventRead]]:
    """Return recent activity events, newest first."""

    events = buses.queries.ask(
        db,
        ListProjectActivity(actor_id=actor_id, project_id=project_id, type=type, limit=limit),
    )
    return ApiResponse(data=[ActivityEventRead.model_validate(event) for event in events])
