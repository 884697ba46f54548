from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import exists, select

from uniadmin.errors import Conflict, InvalidTransition, NotFound, ValidationFailed
from uniadmin.models.enums import EntityKind, ExtensionStatus, Operation, VisaStatus
from uniadmin.models.workflow import Visa, VisaExtension
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal
from uniadmin.services.base import EntityService

logger = logging.getLogger(__name__)


class VisaService(EntityService):
    """Visas and their extension requests."""

    kind = EntityKind.VISA
    model = Visa
    create_action = ActionCode.VISA_CREATE

    def create(
        self,
        principal: Principal,
        *,
        holder_name: str,
        holder_country: str,
        passport_number: str,
        visa_number: str,
        issue_date: date,
        expiration_date: date,
        purpose: str | None = None,
        sponsor_unit: str | None = None,
    ) -> Visa:
        self.gate.check(self.create_action, principal)

        if expiration_date <= issue_date:
            raise ValidationFailed("Expiration date must be after the issue date")
        if issue_date > self.clock().date():
            raise ValidationFailed("Issue date cannot be in the future")

        taken = self.db.scalar(select(exists().where(Visa.visa_number == visa_number)))
        if taken:
            raise Conflict(f"Visa number {visa_number!r} already exists")

        visa = Visa(
            holder_name=holder_name,
            holder_country=holder_country,
            passport_number=passport_number,
            visa_number=visa_number,
            issue_date=issue_date,
            expiration_date=expiration_date,
            purpose=purpose,
            sponsor_unit=sponsor_unit,
        )
        self._stamp(visa, principal)
        return self._insert(
            visa,
            principal,
            on_integrity_error=lambda exc: Conflict(f"Visa number {visa_number!r} already exists"),
        )

    # ---- Extensions ------------------------------------------------------------------

    def request_extension(
        self,
        principal: Principal,
        visa_id: int,
        *,
        new_expiration_date: date,
        reason: str | None = None,
    ) -> VisaExtension:
        """
        Open a PENDING extension request for an ACTIVE visa.

        At most one PENDING request per visa: a pre-check reports the common
        case, and the partial unique index catches two requests racing past it.
        """

        self.gate.check(ActionCode.VISA_EXTEND, principal)

        visa = self.db.get(Visa, visa_id)
        if visa is None:
            raise NotFound(f"{self.kind.value} {visa_id} not found")
        if visa.status != VisaStatus.ACTIVE:
            raise InvalidTransition(self.kind.value, visa_id, visa.status.value, "extend")
        if new_expiration_date <= visa.expiration_date:
            raise ValidationFailed("New expiration date must be after the current expiration date")

        pending = self.db.scalar(
            select(
                exists().where(
                    VisaExtension.visa_id == visa_id,
                    VisaExtension.status == ExtensionStatus.PENDING,
                )
            )
        )
        if pending:
            raise Conflict(f"Visa {visa_id} already has a pending extension")

        extension = VisaExtension(visa_id=visa_id, new_expiration_date=new_expiration_date, reason=reason)
        self._stamp(extension, principal)
        return self._insert(
            extension,
            principal,
            on_integrity_error=lambda exc: Conflict(f"Visa {visa_id} already has a pending extension"),
            kind=EntityKind.VISA_EXTENSION,
        )

    def list_extensions(self, principal: Principal, visa_id: int) -> list[VisaExtension]:
        # Visibility of extensions follows visibility of the parent visa.
        self.get(principal, visa_id)
        stmt = select(VisaExtension).where(VisaExtension.visa_id == visa_id).order_by(VisaExtension.id.desc())
        return list(self.db.scalars(stmt).all())

    def transition_extension(
        self,
        principal: Principal,
        extension_id: int,
        operation: Operation,
        params: dict[str, Any] | None = None,
    ) -> VisaExtension:
        engine = self.registry[EntityKind.VISA_EXTENSION]
        return engine.transition(self.db, extension_id, operation, principal, params)
