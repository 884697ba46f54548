from __future__ import annotations

from uniadmin.models.enums import EntityKind, Operation
from uniadmin.models.workflow import Translation
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal
from uniadmin.services.base import EntityService


class TranslationService(EntityService):
    kind = EntityKind.TRANSLATION
    model = Translation
    create_action = ActionCode.TRANSLATION_CREATE

    def create(
        self,
        principal: Principal,
        *,
        title: str,
        source_language: str,
        target_language: str,
        original_file_url: str,
        notes: str | None = None,
    ) -> Translation:
        self.gate.check(self.create_action, principal)

        translation = Translation(
            title=title,
            source_language=source_language,
            target_language=target_language,
            original_file_url=original_file_url,
            notes=notes,
        )
        self._stamp(translation, principal)
        return self._insert(translation, principal)

    def complete(self, principal: Principal, translation_id: int, translated_file_url: str) -> Translation:
        return self.transition(
            principal,
            translation_id,
            Operation.COMPLETE,
            {"translated_file_url": translated_file_url},
        )
