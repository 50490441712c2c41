"""
Project job postings and the applications they receive.
"""
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, TIMESTAMP, Date, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, utcnow
from backend.models.enums import RecruitmentStatus


class ProjectRecruitment(Base):
    """A job posting for a funded project; public once approved."""

    __tablename__ = "project_recruitments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_name: Mapped[str] = mapped_column(Text, nullable=False)
    position_title: Mapped[str] = mapped_column(Text, nullable=False)
    position_type: Mapped[str] = mapped_column(String(50), nullable=False)
    job_description: Mapped[str] = mapped_column(Text, nullable=False)
    qualifications: Mapped[str] = mapped_column(Text, nullable=False)
    salary: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    application_deadline: Mapped[date] = mapped_column(Date, nullable=False)
    target_departments: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    posted_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    posted_by_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=RecruitmentStatus.PENDING_APPROVAL.value,
        index=True,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    applications = relationship(
        "RecruitmentApplication",
        back_populates="recruitment",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<ProjectRecruitment(id={self.id}, position='{self.position_title}', status='{self.status}')>"


class RecruitmentApplication(Base):
    __tablename__ = "recruitment_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recruitment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("project_recruitments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    applicant_name: Mapped[str] = mapped_column(Text, nullable=False)
    applicant_email: Mapped[str] = mapped_column(Text, nullable=False)
    applicant_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    applicant_mis_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    institute: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cv_url: Mapped[str] = mapped_column(Text, nullable=False)
    cover_letter_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    recruitment = relationship("ProjectRecruitment", back_populates="applications")
