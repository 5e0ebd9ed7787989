"""Translation value routes."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from lokal.cqrs.bus import Buses
from lokal.cqrs.messages import UpdateTranslation
from lokal.db.dependencies import get_actor_id, get_buses, get_db
from lokal.schemas.common import ApiResponse
from lokal.schemas.translation import TranslationRead, TranslationUpdate

router = APIRouter()


@router.put("/translations/{translation_id}", response_model=ApiResponse[TranslationRead])
def put_translation(
    payload: TranslationUpdate,
    translation_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[TranslationRead]:
    """Set one translation value; bumps the branch version."""

    translation = buses.commands.execute(
        db,
        UpdateTranslation(
            actor_id=actor_id,
            translation_id=translation_id,
            value=payload.value,
            status=payload.status,
        ),
    )
    return ApiResponse(data=TranslationRead.model_validate(translation))
