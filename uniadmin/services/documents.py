from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import delete

from uniadmin.errors import InvalidTransition, NotFound, ValidationFailed
from uniadmin.models.enums import DocumentStatus, DocumentType, EntityKind
from uniadmin.models.workflow import Document
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal
from uniadmin.services.base import EntityService

logger = logging.getLogger(__name__)


class DocumentService(EntityService):
    """Cooperation documents (MOUs, agreements). Created as DRAFT by their author."""

    kind = EntityKind.DOCUMENT
    model = Document
    create_action = ActionCode.DOCUMENT_CREATE

    def create(
        self,
        principal: Principal,
        *,
        title: str,
        partner_name: str,
        document_type: DocumentType = DocumentType.MOU,
        partner_country: str | None = None,
        content: str | None = None,
        effective_date: date | None = None,
        expiration_date: date | None = None,
    ) -> Document:
        self.gate.check(self.create_action, principal)

        if effective_date is not None and expiration_date is not None and expiration_date <= effective_date:
            raise ValidationFailed("Expiration date must be after the effective date")

        document = Document(
            title=title,
            partner_name=partner_name,
            document_type=document_type,
            partner_country=partner_country,
            content=content,
            effective_date=effective_date,
            expiration_date=expiration_date,
        )
        self._stamp(document, principal)
        return self._insert(document, principal)

    def hard_delete(self, principal: Principal, document_id: int) -> None:
        """Physically remove a DRAFT document. Any other status is an invalid transition."""

        self.gate.check(ActionCode.DOCUMENT_DELETE, principal)

        document = self.db.get(Document, document_id)
        if document is None:
            raise NotFound(f"{self.kind.value} {document_id} not found")
        if document.status != DocumentStatus.DRAFT:
            raise InvalidTransition(self.kind.value, document_id, document.status.value, "delete")

        result = self.db.execute(
            delete(Document)
            .where(Document.id == document_id, Document.status == DocumentStatus.DRAFT)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            # Lost a race: the document left DRAFT after it was loaded.
            raise InvalidTransition(self.kind.value, document_id, document.status.value, "delete")
        self.db.commit()
        self.db.expunge(document)
        logger.info("Hard-deleted document id=%s user_id=%s", document_id, principal.id)

    def statistics(self, principal: Principal) -> dict[str, Any]:
        by_status = self.status_counts(principal)
        return {"total": sum(by_status.values()), "by_status": by_status}
