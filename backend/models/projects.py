"""
Intramural (IMR) research projects and their evaluations.
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
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, utcnow
from backend.models.enums import ProjectStatus


class Project(Base):
    """
    An IMR project proposal.

    Meeting scheduling writes ``meeting_date`` / ``meeting_details`` and the
    evaluator committee; evaluations accumulate in ``evaluated_by``. Grant
    disbursement phases live in ``grant`` once the project is sanctioned.
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    abstract: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Project category, e.g. 'Unidisciplinary' or 'Multi-Disciplinary'",
    )
    faculty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    institute: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pi_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Principal investigator",
    )
    pi_name: Mapped[str] = mapped_column(Text, nullable=False)
    pi_email: Mapped[str] = mapped_column(Text, nullable=False)
    co_pi_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    co_pi_details: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="[{uid, name, email}] for each co-investigator",
    )

    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=ProjectStatus.DRAFT.value,
        index=True,
    )
    submission_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    meeting_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        index=True,
        doc="Calendar date of the evaluation meeting",
    )
    meeting_details: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="{time, venue, mode, absent_evaluators} of the evaluation meeting",
    )
    assigned_evaluators: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    evaluated_by: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    has_had_mid_term_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    was_absent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    revision_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    grant: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="{total_amount, phases: [{name, amount, status}]}",
    )
    project_duration: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    evaluations = relationship(
        "ProjectEvaluation",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_projects_status_meeting_date", "status", "meeting_date"),)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title='{self.title[:40]}', status='{self.status}')>"


class ProjectEvaluation(Base):
    """One evaluator's verdict on an IMR project."""

    __tablename__ = "project_evaluations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
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

    project = relationship("Project", back_populates="evaluations")

    __table_args__ = (UniqueConstraint("project_id", "evaluator_id", name="uq_project_evaluations_evaluator"),)
