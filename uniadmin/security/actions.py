"""
Catalogue of action codes.

Every operation that needs authorization names exactly one member of
`ActionCode`; transition tables and services reference these members, never
free-form strings. The identity seed (`config/identity_seed.yaml`) must only
grant codes listed here.
"""

from __future__ import annotations

from enum import Enum


class ActionCode(str, Enum):
    # Documents (MOU / cooperation agreements)
    DOCUMENT_CREATE = "document.create"
    DOCUMENT_VIEW_OWN = "document.view_own"
    DOCUMENT_VIEW_UNIT = "document.view_unit"
    DOCUMENT_VIEW_ALL = "document.view_all"
    DOCUMENT_UPDATE = "document.update"
    DOCUMENT_REVIEW = "document.review"
    DOCUMENT_APPROVE = "document.approve"
    DOCUMENT_REJECT = "document.reject"
    DOCUMENT_SIGN = "document.sign"
    DOCUMENT_ACTIVATE = "document.activate"
    DOCUMENT_EXPIRE = "document.expire"
    DOCUMENT_CANCEL = "document.cancel"
    DOCUMENT_DELETE = "document.delete"

    # Guests
    GUEST_CREATE = "guest.create"
    GUEST_VIEW_OWN = "guest.view_own"
    GUEST_VIEW_UNIT = "guest.view_unit"
    GUEST_VIEW_ALL = "guest.view_all"
    GUEST_UPDATE = "guest.update"
    GUEST_APPROVE = "guest.approve"
    GUEST_REJECT = "guest.reject"
    GUEST_CHECKIN = "guest.checkin"
    GUEST_CHECKOUT = "guest.checkout"
    GUEST_DELETE = "guest.delete"

    # Visas and extensions
    VISA_CREATE = "visa.create"
    VISA_VIEW_OWN = "visa.view_own"
    VISA_VIEW_ALL = "visa.view_all"
    VISA_UPDATE = "visa.update"
    VISA_DELETE = "visa.delete"
    VISA_EXTEND = "visa.extend"
    VISA_APPROVE = "visa.approve"
    VISA_REJECT = "visa.reject"
    VISA_EXPIRE = "visa.expire"
    VISA_REMIND = "visa.remind"

    # Translations
    TRANSLATION_CREATE = "translation.create"
    TRANSLATION_VIEW_OWN = "translation.view_own"
    TRANSLATION_VIEW_ALL = "translation.view_all"
    TRANSLATION_UPDATE = "translation.update"
    TRANSLATION_APPROVE = "translation.approve"
    TRANSLATION_REJECT = "translation.reject"
    TRANSLATION_COMPLETE = "translation.complete"
    TRANSLATION_DELETE = "translation.delete"

    # Identity graph administration
    RBAC_VIEW = "rbac.view"
    RBAC_MANAGE = "rbac.manage"

    @property
    def category(self) -> str:
        return self.value.split(".", 1)[0].upper()


ALL_ACTION_CODES: frozenset[str] = frozenset(code.value for code in ActionCode)
