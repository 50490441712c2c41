"""
User accounts and affiliation metadata.
"""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, TIMESTAMP, Boolean, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, utcnow
from backend.models.enums import UserRole


class User(Base):
    """
    A portal user: faculty member, evaluator or administrator.

    ``allowed_modules`` is the list of portal feature ids the user may open;
    it is seeded from the role defaults and edited by Super-admins.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier for the user",
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
        doc="Institutional email address (used for login)",
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Bcrypt hashed password",
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.FACULTY.value,
        index=True,
        doc="One of UserRole",
    )
    designation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    faculty: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    institute: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mis_id: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        index=True,
        doc="Employee id in the university MIS",
    )
    phone_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    allowed_modules: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Portal module ids this user may access",
    )
    bank_details: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="Beneficiary name, account number, IFSC, branch and bank name",
    )
    profile_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
