from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller.

    Built once at the authentication boundary from a verified access token and
    passed explicitly to services and workflow engines. `action_codes` is the
    effective action set resolved when the token was issued; it is not
    re-resolved per request.
    """

    id: int
    unit_id: int | None
    action_codes: frozenset[str]

    def has(self, action_code: str) -> bool:
        return action_code in self.action_codes
