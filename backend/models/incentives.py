"""
Incentive claims.

A claim is a tagged union over ``ClaimType``. Fields that drive scoring,
payment or duplicate detection are real columns; the long tail of
per-category form fields is kept in ``details``.
"""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, utcnow
from backend.models.enums import ClaimStatus


class IncentiveClaim(Base):
    __tablename__ = "incentive_claims"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_id: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        unique=True,
        doc="Human readable id, RDC/IC/PAPER/0001; drafts have none",
    )
    claim_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=ClaimStatus.DRAFT.value,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    user_email: Mapped[str] = mapped_column(Text, nullable=False)
    faculty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submission_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    authors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="[{uid, name, email, role, is_external}] in author order",
    )

    # ===== Research papers =====
    paper_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    journal_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    doi: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    publication_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    journal_classification: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    index_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    wos_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    author_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    author_position: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    is_pu_name_in_publication: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # ===== Books and chapters =====
    book_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    publication_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    book_application_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    is_scopus_indexed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    publisher_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    author_role: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    book_total_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    book_chapter_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    chapters_in_same_book: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # ===== Patents =====
    patent_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    patent_locale: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    patent_filed_in_pu_name: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_pu_sole_applicant: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # ===== Conferences =====
    conference_paper_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    conference_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    conference_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    conference_venue: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    conference_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    presentation_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    online_presentation_order: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    organizer_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registration_fee: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    travel_fare: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # ===== Memberships =====
    professional_body_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    membership_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    membership_amount_paid: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # ===== APC =====
    apc_paper_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    apc_indexing_status: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    apc_q_rating: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    details: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Remaining category-specific form fields",
    )

    # ===== Amounts and approvals =====
    calculated_incentive: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    final_approved_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    approvals: Mapped[list[Optional[dict[str, Any]]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Per-stage approval records, indexed by stage - 1",
    )

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_incentive_claims_user_type", "user_id", "claim_type"),
    )

    @property
    def title(self) -> str:
        """Best available title for notifications and emails."""
        return (
            self.paper_title
            or self.publication_title
            or self.patent_title
            or self.conference_paper_title
            or self.professional_body_name
            or self.apc_paper_title
            or f"{self.claim_type} Claim"
        )

    def __repr__(self) -> str:
        return f"<IncentiveClaim(id={self.id}, claim_id='{self.claim_id}', status='{self.status}')>"
