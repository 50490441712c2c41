"""
Document generation endpoints; every response carries the file base64 encoded.
"""
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from backend.api.deps import AsyncSessionDep, CurrentUser, require_module
from backend.core.exceptions import AuthorizationError
from backend.core.permissions import has_module, is_admin
from backend.models import User
from backend.schemas.documents import DocumentResult, OfficeNotingRequest, PaymentSheetRequest
from backend.services.documents import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])

ClaimManager = Annotated[User, Depends(require_module("manage-incentive-claims"))]
Reviewer = Annotated[User, Depends(require_module("pending-reviews"))]


@router.get("/projects/{project_id}/recommendation-form", response_model=DocumentResult)
async def recommendation_form(project_id: UUID, db: AsyncSessionDep, _reviewer: Reviewer) -> DocumentResult:
    return await DocumentService(db).generate_recommendation_form(project_id)


@router.post("/projects/{project_id}/office-noting", response_model=DocumentResult)
async def office_noting_form(
    project_id: UUID,
    request: OfficeNotingRequest,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> DocumentResult:
    """Office notings may be prepared by the PI or by an admin."""
    service = DocumentService(db)
    project = await service.projects.get(project_id)
    if project.pi_id != current_user.id and not is_admin(current_user):
        raise AuthorizationError("You do not have permission to generate this form.")
    return await service.generate_office_noting_form(project_id, request.project_duration, request.phases)


@router.get("/claims/{claim_id}/form", response_model=DocumentResult)
async def claim_form(claim_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> DocumentResult:
    service = DocumentService(db)
    claim = await service.claims.get(claim_id)
    if claim.user_id != current_user.id and not has_module(current_user, "manage-incentive-claims"):
        raise AuthorizationError("You do not have permission to generate this form.")
    return await service.generate_claim_form(claim_id)


@router.get("/claims/{claim_id}/export", response_model=DocumentResult)
async def export_claim(claim_id: UUID, db: AsyncSessionDep, _manager: ClaimManager) -> DocumentResult:
    return await DocumentService(db).export_claim_to_excel(claim_id)


@router.post("/payment-sheet", response_model=DocumentResult)
async def payment_sheet(request: PaymentSheetRequest, db: AsyncSessionDep, manager: ClaimManager) -> DocumentResult:
    result = await DocumentService(db).generate_incentive_payment_sheet(
        request.claim_ids,
        request.remarks,
        request.reference_number,
    )
    logger.info(f"Payment sheet {request.reference_number} generated by {manager.id}")
    if request.file_name:
        result.file_name = request.file_name
    return result
