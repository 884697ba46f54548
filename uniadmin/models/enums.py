from __future__ import annotations

from enum import Enum


class EntityKind(str, Enum):
    DOCUMENT = "document"
    VISA = "visa"
    VISA_EXTENSION = "visa_extension"
    GUEST = "guest"
    TRANSLATION = "translation"


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REVIEWING = "REVIEWING"
    APPROVED = "APPROVED"
    SIGNED = "SIGNED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class DocumentType(str, Enum):
    MOU = "MOU"
    AGREEMENT = "AGREEMENT"
    CONTRACT = "CONTRACT"
    OTHER = "OTHER"


class GuestStatus(str, Enum):
    REGISTERED = "REGISTERED"
    APPROVED = "APPROVED"
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"
    CANCELLED = "CANCELLED"


class VisaStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class ExtensionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TranslationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class Operation(str, Enum):
    """Named workflow operations. Each entity's transition table uses a subset."""

    UPDATE = "update"
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    APPROVE = "approve"
    REJECT = "reject"
    SIGN = "sign"
    ACTIVATE = "activate"
    EXPIRE = "expire"
    CANCEL = "cancel"
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    DELETE = "delete"
    COMPLETE = "complete"
