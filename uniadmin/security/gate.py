from __future__ import annotations

import logging

from uniadmin.errors import Forbidden
from uniadmin.security.actions import ActionCode
from uniadmin.security.principal import Principal

logger = logging.getLogger(__name__)


class ActionGate:
    """
    Membership check of a required action code against the caller's cached action set.

    - No required action -> allow.
    - Required action present in `principal.action_codes` -> allow.
    - Otherwise raise `Forbidden` carrying the missing code (for audit logs;
      whether the HTTP response shows it is decided in `uniadmin.main`).

    The set comes from the caller's access token; the graph is not re-resolved here.
    """

    def check(self, required: ActionCode | str | None, principal: Principal) -> None:
        if required is None:
            return

        code = required.value if isinstance(required, ActionCode) else str(required)
        if code in principal.action_codes:
            return

        logger.info("Action gate denied user_id=%s missing_action=%s", principal.id, code)
        raise Forbidden("Missing required action", missing_action=code)

    def allows(self, required: ActionCode | str | None, principal: Principal) -> bool:
        if required is None:
            return True
        code = required.value if isinstance(required, ActionCode) else str(required)
        return code in principal.action_codes
