from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uniadmin.db.base import Base
from uniadmin.models.enums import (
    DocumentStatus,
    DocumentType,
    ExtensionStatus,
    GuestStatus,
    TranslationStatus,
    VisaStatus,
)


def _status_column(enum_cls, default):
    return mapped_column(
        Enum(enum_cls, native_enum=False, length=20, validate_strings=True),
        default=default,
        nullable=False,
        index=True,
    )


class WorkflowColumns:
    """
    Columns every workflow entity carries.

    `status` is written only by the workflow engine. `unit_id` is the creator's
    unit at creation time and drives unit-level visibility.
    """

    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    unit_id: Mapped[int | None] = mapped_column(ForeignKey("units.id"), nullable=True, index=True)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class Document(WorkflowColumns, Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[DocumentStatus] = _status_column(DocumentStatus, DocumentStatus.DRAFT)

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType, native_enum=False, length=20),
        default=DocumentType.MOU,
        nullable=False,
    )
    partner_name: Mapped[str] = mapped_column(String(300), nullable=False)
    partner_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class Guest(WorkflowColumns, Base):
    __tablename__ = "guests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[GuestStatus] = _status_column(GuestStatus, GuestStatus.REGISTERED)

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    nationality: Mapped[str] = mapped_column(String(100), nullable=False)
    passport_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    organization: Mapped[str | None] = mapped_column(String(300), nullable=True)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)

    arrival_date: Mapped[date] = mapped_column(Date, nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_arrival_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_departure_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    members: Mapped[list["GuestMember"]] = relationship(
        back_populates="guest",
        cascade="all, delete-orphan",
        order_by="GuestMember.id",
    )


class GuestMember(Base):
    __tablename__ = "guest_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guest_id: Mapped[int] = mapped_column(ForeignKey("guests.id"), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    passport_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    guest: Mapped[Guest] = relationship(back_populates="members")


class Visa(WorkflowColumns, Base):
    __tablename__ = "visas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[VisaStatus] = _status_column(VisaStatus, VisaStatus.ACTIVE)

    holder_name: Mapped[str] = mapped_column(String(200), nullable=False)
    holder_country: Mapped[str] = mapped_column(String(100), nullable=False)
    passport_number: Mapped[str] = mapped_column(String(50), nullable=False)
    visa_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    sponsor_unit: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    extensions: Mapped[list["VisaExtension"]] = relationship(
        back_populates="visa",
        order_by="VisaExtension.id.desc()",
    )


class VisaExtension(WorkflowColumns, Base):
    __tablename__ = "visa_extensions"
    __table_args__ = (
        # At most one PENDING extension per visa.
        Index(
            "uq_visa_extensions_pending",
            "visa_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[ExtensionStatus] = _status_column(ExtensionStatus, ExtensionStatus.PENDING)

    visa_id: Mapped[int] = mapped_column(ForeignKey("visas.id"), nullable=False, index=True)
    new_expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    visa: Mapped[Visa] = relationship(back_populates="extensions")


class Translation(WorkflowColumns, Base):
    __tablename__ = "translations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[TranslationStatus] = _status_column(TranslationStatus, TranslationStatus.PENDING)

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    source_language: Mapped[str] = mapped_column(String(20), nullable=False)
    target_language: Mapped[str] = mapped_column(String(20), nullable=False)
    original_file_url: Mapped[str] = mapped_column(String(500), nullable=False)
    translated_file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
