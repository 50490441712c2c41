"""
Incentive claim endpoints: submission, drafts, staged approval and payment status.
"""
import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from backend.api.deps import AsyncSessionDep, CurrentUser, require_module
from backend.core.exceptions import AuthorizationError
from backend.core.permissions import has_module
from backend.models import ClaimStatus, ClaimType, User
from backend.schemas.common import ActionResult, DataResponse, ListResponse, list_response
from backend.schemas.incentives import (
    ClaimActionRequest,
    ClaimStatusUpdate,
    ClaimSubmitResult,
    IncentiveClaimCreate,
    IncentiveClaimResponse,
)
from backend.services.incentives import IncentiveService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/incentives", tags=["Incentive Claims"])

ClaimManager = Annotated[User, Depends(require_module("manage-incentive-claims"))]


def _submit_result(claim) -> ClaimSubmitResult:
    return ClaimSubmitResult(
        id=claim.id,
        claim_id=claim.claim_id,
        status=claim.status,
        calculated_incentive=claim.calculated_incentive,
    )


@router.get("/mine", response_model=ListResponse[IncentiveClaimResponse], summary="My claims")
async def my_claims(db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    claims = await IncentiveService(db).list_for_user(current_user.id)
    return list_response([IncentiveClaimResponse.model_validate(c) for c in claims])


@router.get(
    "/co-authored",
    response_model=ListResponse[IncentiveClaimResponse],
    summary="Claims listing me as a co-author",
)
async def co_authored_claims(db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    claims = await IncentiveService(db).list_co_authored(current_user)
    return list_response([IncentiveClaimResponse.model_validate(c) for c in claims])


@router.get("", response_model=ListResponse[IncentiveClaimResponse], summary="All submitted claims")
async def list_claims(
    db: AsyncSessionDep,
    current_user: CurrentUser,
    status_filter: Optional[ClaimStatus] = Query(None, alias="status"),
    claim_type: Optional[ClaimType] = Query(None),
) -> dict:
    if not (has_module(current_user, "manage-incentive-claims") or has_module(current_user, "incentive-approvals")):
        raise AuthorizationError("You do not have permission to view all claims.")
    claims = await IncentiveService(db).list_all(status_filter, claim_type)
    return list_response([IncentiveClaimResponse.model_validate(c) for c in claims])


@router.post(
    "",
    response_model=ClaimSubmitResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a claim or save a draft",
)
async def submit_claim(data: IncentiveClaimCreate, db: AsyncSessionDep, current_user: CurrentUser) -> ClaimSubmitResult:
    claim = await IncentiveService(db).submit(current_user, data)
    return _submit_result(claim)


@router.get("/{claim_id}", response_model=DataResponse[IncentiveClaimResponse], summary="Get a claim")
async def get_claim(claim_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    claim = await IncentiveService(db).get(claim_id)
    uid = str(current_user.id)
    allowed = (
        claim.user_id == current_user.id
        or any(str(author.get("uid") or "") == uid for author in claim.authors or [])
        or has_module(current_user, "manage-incentive-claims")
        or has_module(current_user, "incentive-approvals")
    )
    if not allowed:
        raise AuthorizationError("You do not have permission to view this claim.")
    return {"success": True, "data": IncentiveClaimResponse.model_validate(claim)}


@router.put("/{claim_id}", response_model=ClaimSubmitResult, summary="Edit or submit a draft")
async def update_draft(
    claim_id: UUID,
    data: IncentiveClaimCreate,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> ClaimSubmitResult:
    claim = await IncentiveService(db).submit(current_user, data, claim_pk=claim_id)
    return _submit_result(claim)


@router.delete("/{claim_id}", response_model=ActionResult, summary="Delete a draft")
async def delete_claim(claim_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> ActionResult:
    await IncentiveService(db).delete(claim_id, current_user)
    return ActionResult(message="Draft deleted.")


@router.post("/{claim_id}/action", response_model=DataResponse[IncentiveClaimResponse], summary="Approve or reject")
async def process_action(
    claim_id: UUID,
    request: ClaimActionRequest,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    """The caller must be the approver configured for the requested stage."""
    claim = await IncentiveService(db).process_action(claim_id, current_user, request)
    logger.info(f"Claim {claim_id} {request.action} at stage {request.stage_index + 1} by {current_user.id}")
    return {"success": True, "data": IncentiveClaimResponse.model_validate(claim)}


@router.patch("/{claim_id}/status", response_model=DataResponse[IncentiveClaimResponse], summary="Payment status")
async def update_status(
    claim_id: UUID,
    data: ClaimStatusUpdate,
    db: AsyncSessionDep,
    _manager: ClaimManager,
) -> dict:
    claim = await IncentiveService(db).update_status(claim_id, data.status)
    return {"success": True, "data": IncentiveClaimResponse.model_validate(claim)}
