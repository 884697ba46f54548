"""
Permission resolver: user -> effective action codes.

An action code is effective for a user iff the user is active and there is at
least one path

    User -> UserRole -> Role(active) -> RolePermission -> Permission(active)
         -> PermissionAction -> Action(active)

Deactivating any node on every path revokes the code. Nothing is cached in the
graph store; callers (the token issuer) decide when to resolve.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from uniadmin.errors import StorageUnavailable, Unauthenticated
from uniadmin.models.identity import Action, Permission, PermissionAction, Role, RolePermission, User, UserRole

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class PermissionResolver:
    def __init__(self, db: Session) -> None:
        self._db = db

    def resolve_actions(self, user_id: int) -> frozenset[str]:
        """
        Return the closed set of active action codes reachable from `user_id`.

        Raises:
            Unauthenticated: the user does not exist or is inactive.
            StorageUnavailable: the graph could not be read (retryable).
        """

        try:
            user = self._db.get(User, user_id)
            if user is None or not user.is_active:
                logger.info("Action resolution refused for unknown or inactive user_id=%s", user_id)
                raise Unauthenticated("Invalid or inactive user")

            stmt = (
                select(Action.code)
                .join(PermissionAction, PermissionAction.action_id == Action.id)
                .join(Permission, Permission.id == PermissionAction.permission_id)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .join(Role, Role.id == RolePermission.role_id)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(
                    UserRole.user_id == user_id,
                    Role.is_active.is_(True),
                    Permission.is_active.is_(True),
                    Action.is_active.is_(True),
                )
                .distinct()
            )
            codes = frozenset(self._db.scalars(stmt).all())
        except _STORAGE_ERRORS as exc:
            logger.error("Identity graph unavailable while resolving user_id=%s: %s", user_id, type(exc).__name__)
            raise StorageUnavailable("Identity graph storage unavailable") from exc

        logger.debug("Resolved %d action codes for user_id=%s", len(codes), user_id)
        return codes

    def has_action(self, user_id: int, action_code: str) -> bool:
        return action_code in self.resolve_actions(user_id)
