"""Branch, diff, and merge routes."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from lokal.cqrs.bus import Buses
from lokal.cqrs.messages import CreateBranch, CreateTranslationKey, GetBranchDiff, MergeBranches
from lokal.db.dependencies import get_actor_id, get_buses, get_db
from lokal.schemas.branch import BranchCreate, BranchDiffResult, BranchRead, DiffRequest, MergeRequest, MergeResult
from lokal.schemas.common import ApiResponse
from lokal.schemas.translation import KeyCreate, KeyRead

router = APIRouter()


@router.post("/spaces/{space_id}/branches", response_model=ApiResponse[BranchRead], status_code=201)
def post_branch(
    payload: BranchCreate,
    space_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[BranchRead]:
    """Create a branch, optionally forked from another branch of the space."""

    branch = buses.commands.execute(
        db,
        CreateBranch(
            actor_id=actor_id,
            space_id=space_id,
            name=payload.name,
            source_branch_id=payload.source_branch_id,
        ),
    )
    return ApiResponse(data=BranchRead.model_validate(branch))


@router.post("/branches/{branch_id}/keys", response_model=ApiResponse[KeyRead], status_code=201)
def post_key(
    payload: KeyCreate,
    branch_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[KeyRead]:
    key = buses.commands.execute(
        db,
        CreateTranslationKey(
            actor_id=actor_id,
            branch_id=branch_id,
            name=payload.name,
            translations=dict(payload.translations),
        ),
    )
    return ApiResponse(data=KeyRead.model_validate(key))


@router.post("/branches/{branch_id}/diff", response_model=ApiResponse[BranchDiffResult])
def post_diff(
    payload: DiffRequest,
    branch_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[BranchDiffResult]:
    """Diff this branch (source) against the target branch."""

    diff = buses.queries.ask(
        db,
        GetBranchDiff(actor_id=actor_id, source_branch_id=branch_id, target_branch_id=payload.target_branch_id),
    )
    return ApiResponse(data=BranchDiffResult.from_diff(diff))


@router.post("/branches/{branch_id}/merge", response_model=ApiResponse[MergeResult])
def post_merge(
    payload: MergeRequest,
    branch_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
    buses: Buses = Depends(get_buses),
) -> ApiResponse[MergeResult]:
    """Merge this branch into the target branch."""

    outcome = buses.commands.execute(
        db,
        MergeBranches(
            actor_id=actor_id,
            source_branch_id=branch_id,
            target_branch_id=payload.target_branch_id,
            resolutions=payload.resolution_map(),
            expected_target_version=payload.expected_target_version,
            delete_removed_keys=payload.delete_removed_keys,
        ),
    )
    return ApiResponse(data=MergeResult.model_validate(outcome))
