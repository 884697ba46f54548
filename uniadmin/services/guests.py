from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from uniadmin.errors import ValidationFailed
from uniadmin.models.enums import EntityKind
from uniadmin.models.workflow import Guest, GuestMember
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal
from uniadmin.services.base import EntityService


class GuestService(EntityService):
    """
    International guest registrations.

    A guest and its accompanying members are inserted in one transaction;
    either all rows exist afterwards or none do.
    """

    kind = EntityKind.GUEST
    model = Guest
    create_action = ActionCode.GUEST_CREATE

    def create(
        self,
        principal: Principal,
        *,
        full_name: str,
        nationality: str,
        purpose: str,
        arrival_date: date,
        departure_date: date,
        passport_number: str | None = None,
        organization: str | None = None,
        members: Iterable[Mapping[str, Any]] = (),
    ) -> Guest:
        self.gate.check(self.create_action, principal)

        if arrival_date >= departure_date:
            raise ValidationFailed("Arrival date must be before departure date")
        if arrival_date < self.clock().date():
            raise ValidationFailed("Arrival date cannot be in the past")

        guest = Guest(
            full_name=full_name,
            nationality=nationality,
            purpose=purpose,
            arrival_date=arrival_date,
            departure_date=departure_date,
            passport_number=passport_number,
            organization=organization,
        )
        for member in members:
            if not str(member.get("full_name") or "").strip():
                raise ValidationFailed("Every guest member needs a full_name")
            guest.members.append(
                GuestMember(
                    full_name=member["full_name"],
                    nationality=member.get("nationality"),
                    passport_number=member.get("passport_number"),
                )
            )

        self._stamp(guest, principal)
        return self._insert(guest, principal)
