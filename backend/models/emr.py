"""
Extramural (EMR) funding calls, registrations of interest and evaluations.
"""
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Date,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, utcnow
from backend.models.enums import EmrInterestStatus, FundingCallStatus


class FundingCall(Base):
    """An external grant opportunity announced by the RDC."""

    __tablename__ = "funding_calls"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    call_identifier: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        unique=True,
        doc="Human readable id, RDC/EMR/CALL/00001",
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    agency: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    call_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    apply_deadline: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    interest_deadline: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        index=True,
        doc="Last moment faculty can register interest",
    )
    details_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=FundingCallStatus.OPEN.value)
    is_announced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    meeting_details: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="{date, time, venue, mode, assigned_evaluators, absent_evaluators}",
    )
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    interests = relationship("EmrInterest", back_populates="call", lazy="noload")

    @property
    def absent_evaluators(self) -> list[str]:
        return list((self.meeting_details or {}).get("absent_evaluators") or [])

    def __repr__(self) -> str:
        return f"<FundingCall(id={self.id}, identifier='{self.call_identifier}', status='{self.status}')>"


class EmrInterest(Base):
    """
    A faculty member's registration of interest in a funding call.

    The (call_id, user_id) unique constraint makes registration an
    insert-if-absent; admin-added sanctioned projects carry no call.
    """

    __tablename__ = "emr_interests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    interest_id: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        unique=True,
        doc="Human readable id, RDC/EMR/INTEREST/00001",
    )
    call_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("funding_calls.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    call_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agency: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    user_email: Mapped[str] = mapped_column(Text, nullable=False)
    faculty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    co_pi_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    co_pi_names: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    co_pi_details: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=EmrInterestStatus.REGISTERED.value,
        index=True,
    )
    ppt_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ppt_submission_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    meeting_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    ppt_deadline: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        index=True,
    )
    meeting_slot: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="{time, venue, mode} of the applicant's presentation slot",
    )
    assigned_evaluators: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    evaluated_by: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    was_absent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    admin_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registered_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    endorsement_form_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    endorsement_signed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    agency_reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    agency_acknowledgement_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_to_agency_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    sanction_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    duration_amount: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Free text such as 'Duration: 3 Years, Amount: 25,00,000'",
    )
    final_proof_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_bulk_uploaded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    registered_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    call = relationship("FundingCall", back_populates="interests", lazy="selectin")
    evaluations = relationship(
        "EmrEvaluation",
        back_populates="interest",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (UniqueConstraint("call_id", "user_id", name="uq_emr_interests_call_user"),)

    def __repr__(self) -> str:
        return f"<EmrInterest(id={self.id}, call_id={self.call_id}, user_id={self.user_id}, status='{self.status}')>"


class EmrEvaluation(Base):
    """One evaluator's verdict on an EMR presentation."""

    __tablename__ = "emr_evaluations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    interest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("emr_interests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    evaluator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    evaluator_name: Mapped[str] = mapped_column(Text, nullable=False)
    recommendation: Mapped[str] = mapped_column(String(30), nullable=False)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    evaluation_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    interest = relationship("EmrInterest", back_populates="evaluations")

    __table_args__ = (UniqueConstraint("interest_id", "evaluator_id", name="uq_emr_evaluations_evaluator"),)
