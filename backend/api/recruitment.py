"""
Project staff recruitment endpoints. Listing open positions and applying are public.
"""
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from backend.api.deps import AsyncSessionDep, CurrentUser, require_module
from backend.core.rate_limit import RateLimitAuth
from backend.models import RecruitmentStatus, User
from backend.schemas.common import DataResponse, ListResponse, list_response
from backend.schemas.recruitment import (
    ApplicationCreate,
    ApplicationResponse,
    PostingCreate,
    PostingResponse,
    PostingStatusUpdate,
)
from backend.services.recruitment import RecruitmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recruitment", tags=["Recruitment"])

Poster = Annotated[User, Depends(require_module("post-a-job"))]
Approver = Annotated[User, Depends(require_module("recruitment-approvals"))]


@router.get("/postings", response_model=ListResponse[PostingResponse], summary="Open positions")
async def list_public(db: AsyncSessionDep) -> dict:
    postings = await RecruitmentService(db).list_public()
    return list_response([PostingResponse.model_validate(p) for p in postings])


@router.post(
    "/postings",
    response_model=DataResponse[PostingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Post a job for approval",
)
async def create_posting(data: PostingCreate, db: AsyncSessionDep, poster: Poster) -> dict:
    posting = await RecruitmentService(db).create_posting(poster, data)
    return {"success": True, "data": PostingResponse.model_validate(posting)}


@router.get("/postings/mine", response_model=ListResponse[PostingResponse], summary="My postings")
async def list_my_postings(db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    postings = await RecruitmentService(db).list_my_postings(current_user)
    return list_response([PostingResponse.model_validate(p) for p in postings])


@router.get("/postings/pending", response_model=ListResponse[PostingResponse], summary="Postings awaiting approval")
async def list_pending(db: AsyncSessionDep, _approver: Approver) -> dict:
    postings = await RecruitmentService(db).list_pending()
    return list_response([PostingResponse.model_validate(p) for p in postings])


@router.patch("/postings/{posting_id}/status", response_model=DataResponse[PostingResponse])
async def set_status(
    posting_id: UUID,
    data: PostingStatusUpdate,
    db: AsyncSessionDep,
    _approver: Approver,
) -> dict:
    posting = await RecruitmentService(db).set_status(posting_id, RecruitmentStatus(data.status))
    return {"success": True, "data": PostingResponse.model_validate(posting)}


@router.post(
    "/postings/{posting_id}/applications",
    response_model=DataResponse[ApplicationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Apply for a position",
)
async def apply(
    posting_id: UUID,
    data: ApplicationCreate,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> dict:
    application = await RecruitmentService(db).apply(posting_id, data)
    return {"success": True, "data": ApplicationResponse.model_validate(application)}


@router.get("/postings/{posting_id}/applications", response_model=ListResponse[ApplicationResponse])
async def list_applications(posting_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    applications = await RecruitmentService(db).list_applications(posting_id, current_user)
    return list_response([ApplicationResponse.model_validate(a) for a in applications])
