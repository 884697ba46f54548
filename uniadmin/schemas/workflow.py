from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from uniadmin.models.enums import (
    DocumentStatus,
    DocumentType,
    ExtensionStatus,
    GuestStatus,
    TranslationStatus,
    VisaStatus,
)


class _EntityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_by_id: int
    unit_id: int | None
    approved_by_id: int | None
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ReasonIn(BaseModel):
    reason: str | None = None


# ---- Documents -----------------------------------------------------------------------


class DocumentIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    partner_name: str = Field(min_length=1, max_length=300)
    document_type: DocumentType = DocumentType.MOU
    partner_country: str | None = None
    content: str | None = None
    effective_date: date | None = None
    expiration_date: date | None = None


class DocumentOut(_EntityOut):
    status: DocumentStatus
    title: str
    document_type: DocumentType
    partner_name: str
    partner_country: str | None
    content: str | None
    effective_date: date | None
    expiration_date: date | None
    submitted_at: datetime | None
    signed_at: datetime | None
    rejection_reason: str | None


# ---- Guests --------------------------------------------------------------------------


class GuestMemberIn(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    nationality: str | None = None
    passport_number: str | None = None


class GuestMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    nationality: str | None
    passport_number: str | None


class GuestIn(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    nationality: str = Field(min_length=1, max_length=100)
    purpose: str = Field(min_length=1)
    arrival_date: date
    departure_date: date
    passport_number: str | None = None
    organization: str | None = None
    members: list[GuestMemberIn] = []


class GuestOut(_EntityOut):
    status: GuestStatus
    full_name: str
    nationality: str
    passport_number: str | None
    organization: str | None
    purpose: str
    arrival_date: date
    departure_date: date
    actual_arrival_at: datetime | None
    actual_departure_at: datetime | None
    rejection_reason: str | None
    members: list[GuestMemberOut]


# ---- Visas ---------------------------------------------------------------------------


class VisaIn(BaseModel):
    holder_name: str = Field(min_length=1, max_length=200)
    holder_country: str = Field(min_length=1, max_length=100)
    passport_number: str = Field(min_length=1, max_length=50)
    visa_number: str = Field(min_length=1, max_length=50)
    issue_date: date
    expiration_date: date
    purpose: str | None = None
    sponsor_unit: str | None = None


class VisaOut(_EntityOut):
    status: VisaStatus
    holder_name: str
    holder_country: str
    passport_number: str
    visa_number: str
    issue_date: date
    expiration_date: date
    purpose: str | None
    sponsor_unit: str | None
    reminder_sent: bool


class ExtensionIn(BaseModel):
    new_expiration_date: date
    reason: str | None = None


class ExtensionOut(_EntityOut):
    status: ExtensionStatus
    visa_id: int
    new_expiration_date: date
    reason: str | None
    rejection_reason: str | None


# ---- Translations --------------------------------------------------------------------


class TranslationIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    source_language: str = Field(min_length=1, max_length=20)
    target_language: str = Field(min_length=1, max_length=20)
    original_file_url: str = Field(min_length=1, max_length=500)
    notes: str | None = None


class CompleteIn(BaseModel):
    translated_file_url: str = Field(min_length=1, max_length=500)


class TranslationOut(_EntityOut):
    status: TranslationStatus
    title: str
    source_language: str
    target_language: str
    original_file_url: str
    translated_file_url: str | None
    notes: str | None
    rejection_reason: str | None
    completed_at: datetime | None


class StatisticsOut(BaseModel):
    total: int
    by_status: dict[str, int]


# ---- Partial updates (only the keys sent are changed; unknown keys are rejected) ---


class DocumentEditIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=300)
    document_type: DocumentType | None = None
    partner_name: str | None = Field(default=None, min_length=1, max_length=300)
    partner_country: str | None = None
    content: str | None = None
    effective_date: date | None = None
    expiration_date: date | None = None


class GuestEditIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    nationality: str | None = Field(default=None, min_length=1, max_length=100)
    passport_number: str | None = None
    organization: str | None = None
    purpose: str | None = Field(default=None, min_length=1)
    arrival_date: date | None = None
    departure_date: date | None = None


class VisaEditIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    holder_name: str | None = Field(default=None, min_length=1, max_length=200)
    holder_country: str | None = Field(default=None, min_length=1, max_length=100)
    passport_number: str | None = Field(default=None, min_length=1, max_length=50)
    issue_date: date | None = None
    purpose: str | None = None
    sponsor_unit: str | None = None


class TranslationEditIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=300)
    source_language: str | None = Field(default=None, min_length=1, max_length=20)
    target_language: str | None = Field(default=None, min_length=1, max_length=20)
    original_file_url: str | None = Field(default=None, min_length=1, max_length=500)
    notes: str | None = None
