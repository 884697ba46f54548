"""
Administration of the identity graph (roles, permissions, actions and the links between them).

Every method takes the acting `Principal` and gates on `rbac.view` (reads) or
`rbac.manage` (writes). Changes take effect for affected users at their next
login or token refresh; see `uniadmin.security.tokens`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from uniadmin.errors import Conflict, NotFound
from uniadmin.models.identity import Action, Permission, PermissionAction, Role, RolePermission, User, UserRole
from uniadmin.security.actions import ActionCode
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.security.resolver import PermissionResolver

logger = logging.getLogger(__name__)


class Node(str, Enum):
    ROLE = "role"
    PERMISSION = "permission"
    ACTION = "action"


_NODE_MODELS: dict[Node, type] = {
    Node.ROLE: Role,
    Node.PERMISSION: Permission,
    Node.ACTION: Action,
}


@dataclass(frozen=True)
class _Link:
    """One junction table: `parent` -> `child` through `junction`."""

    name: str
    junction: type
    parent_model: type
    parent_column: str
    child_model: type
    child_column: str


USER_ROLES = _Link("user_role", UserRole, User, "user_id", Role, "role_id")
ROLE_PERMISSIONS = _Link("role_permission", RolePermission, Role, "role_id", Permission, "permission_id")
PERMISSION_ACTIONS = _Link("permission_action", PermissionAction, Permission, "permission_id", Action, "action_id")


class IdentityGraphService:
    def __init__(self, db: Session, gate: ActionGate | None = None) -> None:
        self.db = db
        self.gate = gate or ActionGate()

    # ---- Nodes -----------------------------------------------------------------------

    def list_nodes(self, principal: Principal, node: Node, *, active_only: bool = False) -> list[Any]:
        self.gate.check(ActionCode.RBAC_VIEW, principal)
        model = _NODE_MODELS[node]
        stmt = select(model).order_by(model.code)
        if active_only:
            stmt = stmt.where(model.is_active.is_(True))
        return list(self.db.scalars(stmt).all())

    def get_node(self, principal: Principal, node: Node, node_id: int) -> Any:
        self.gate.check(ActionCode.RBAC_VIEW, principal)
        return self._load(_NODE_MODELS[node], node_id)

    def create_node(
        self,
        principal: Principal,
        node: Node,
        *,
        code: str,
        name: str,
        description: str | None = None,
        category: str | None = None,
    ) -> Any:
        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        model = _NODE_MODELS[node]

        if self.db.scalars(select(model.id).where(model.code == code)).first() is not None:
            raise Conflict(f"{node.value} {code!r} already exists")

        fields: dict[str, Any] = {"code": code, "name": name, "description": description}
        if node is Node.ACTION:
            fields["category"] = category or code.split(".", 1)[0].upper()
        instance = model(**fields)
        self.db.add(instance)
        self._commit(f"{node.value} {code!r} already exists")
        self.db.refresh(instance)
        logger.info("Created %s code=%s by user_id=%s", node.value, code, principal.id)
        return instance

    def update_node(
        self,
        principal: Principal,
        node: Node,
        node_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Any:
        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        instance = self._load(_NODE_MODELS[node], node_id)
        if name is not None:
            instance.name = name
        if description is not None:
            instance.description = description
        self.db.commit()
        self.db.refresh(instance)
        return instance

    def set_active(self, principal: Principal, node: Node, node_id: int, active: bool) -> Any:
        """Activate or deactivate a node. Deactivation revokes every path through it."""

        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        instance = self._load(_NODE_MODELS[node], node_id)
        instance.is_active = active
        self.db.commit()
        self.db.refresh(instance)
        logger.info(
            "%s %s code=%s by user_id=%s",
            "Activated" if active else "Deactivated",
            node.value,
            instance.code,
            principal.id,
        )
        return instance

    def delete_node(self, principal: Principal, node: Node, node_id: int) -> None:
        """Remove a node together with every link that references it."""

        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        instance = self._load(_NODE_MODELS[node], node_id)
        code = instance.code
        self.db.delete(instance)
        self.db.commit()
        logger.info("Deleted %s code=%s by user_id=%s", node.value, code, principal.id)

    # ---- Links -----------------------------------------------------------------------

    def assign_role(self, principal: Principal, user_id: int, role_id: int) -> UserRole:
        return self._assign(principal, USER_ROLES, user_id, role_id)

    def unassign_role(self, principal: Principal, user_id: int, role_id: int) -> None:
        self._unassign(principal, USER_ROLES, user_id, role_id)

    def replace_user_roles(self, principal: Principal, user_id: int, role_ids: Iterable[int]) -> list[int]:
        return self._replace(principal, USER_ROLES, user_id, role_ids)

    def assign_permission(self, principal: Principal, role_id: int, permission_id: int) -> RolePermission:
        return self._assign(principal, ROLE_PERMISSIONS, role_id, permission_id)

    def unassign_permission(self, principal: Principal, role_id: int, permission_id: int) -> None:
        self._unassign(principal, ROLE_PERMISSIONS, role_id, permission_id)

    def replace_role_permissions(self, principal: Principal, role_id: int, permission_ids: Iterable[int]) -> list[int]:
        return self._replace(principal, ROLE_PERMISSIONS, role_id, permission_ids)

    def assign_action(self, principal: Principal, permission_id: int, action_id: int) -> PermissionAction:
        return self._assign(principal, PERMISSION_ACTIONS, permission_id, action_id)

    def unassign_action(self, principal: Principal, permission_id: int, action_id: int) -> None:
        self._unassign(principal, PERMISSION_ACTIONS, permission_id, action_id)

    def replace_permission_actions(self, principal: Principal, permission_id: int, action_ids: Iterable[int]) -> list[int]:
        return self._replace(principal, PERMISSION_ACTIONS, permission_id, action_ids)

    # ---- Queries ---------------------------------------------------------------------

    def user_actions(self, principal: Principal, user_id: int) -> frozenset[str]:
        self.gate.check(ActionCode.RBAC_VIEW, principal)
        self._load(User, user_id)
        return PermissionResolver(self.db).resolve_actions(user_id)

    def check_user_action(self, principal: Principal, user_id: int, action_code: str) -> bool:
        self.gate.check(ActionCode.RBAC_VIEW, principal)
        self._load(User, user_id)
        return PermissionResolver(self.db).has_action(user_id, action_code)

    def actions_by_category(self, principal: Principal) -> dict[str, list[Action]]:
        grouped: dict[str, list[Action]] = {}
        for action in self.list_nodes(principal, Node.ACTION):
            grouped.setdefault(action.category or "OTHER", []).append(action)
        return grouped

    def statistics(self, principal: Principal) -> dict[str, Any]:
        self.gate.check(ActionCode.RBAC_VIEW, principal)
        stats: dict[str, Any] = {}
        for node, model in _NODE_MODELS.items():
            total = self.db.scalar(select(func.count()).select_from(model)) or 0
            active = self.db.scalar(select(func.count()).select_from(model).where(model.is_active.is_(True))) or 0
            stats[f"{node.value}s"] = {"total": total, "active": active}
        stats["users"] = {
            "total": self.db.scalar(select(func.count()).select_from(User)) or 0,
            "active": self.db.scalar(select(func.count()).select_from(User).where(User.is_active.is_(True))) or 0,
        }
        for link in (USER_ROLES, ROLE_PERMISSIONS, PERMISSION_ACTIONS):
            stats[f"{link.name}_links"] = self.db.scalar(select(func.count()).select_from(link.junction)) or 0
        return stats

    # ---- Internals -------------------------------------------------------------------

    def _load(self, model: type, ident: int) -> Any:
        instance = self.db.get(model, ident)
        if instance is None:
            raise NotFound(f"{model.__name__} {ident} not found")
        return instance

    def _commit(self, conflict_message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise Conflict(conflict_message) from exc

    def _existing(self, link: _Link, parent_id: int, child_id: int) -> Any:
        stmt = select(link.junction).where(
            getattr(link.junction, link.parent_column) == parent_id,
            getattr(link.junction, link.child_column) == child_id,
        )
        return self.db.scalars(stmt).first()

    def _assign(self, principal: Principal, link: _Link, parent_id: int, child_id: int) -> Any:
        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        self._load(link.parent_model, parent_id)
        self._load(link.child_model, child_id)

        if self._existing(link, parent_id, child_id) is not None:
            raise Conflict(f"{link.name} link {parent_id}->{child_id} already exists")

        row = link.junction(**{link.parent_column: parent_id, link.child_column: child_id})
        self.db.add(row)
        self._commit(f"{link.name} link {parent_id}->{child_id} already exists")
        logger.info("Assigned %s %s->%s by user_id=%s", link.name, parent_id, child_id, principal.id)
        return row

    def _unassign(self, principal: Principal, link: _Link, parent_id: int, child_id: int) -> None:
        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        row = self._existing(link, parent_id, child_id)
        if row is None:
            raise NotFound(f"{link.name} link {parent_id}->{child_id} not found")
        self.db.delete(row)
        self.db.commit()
        logger.info("Unassigned %s %s->%s by user_id=%s", link.name, parent_id, child_id, principal.id)

    def _replace(self, principal: Principal, link: _Link, parent_id: int, child_ids: Iterable[int]) -> list[int]:
        """Make `child_ids` the complete set of links for `parent_id`, in one transaction."""

        self.gate.check(ActionCode.RBAC_MANAGE, principal)
        self._load(link.parent_model, parent_id)
        wanted = sorted(set(child_ids))
        for child_id in wanted:
            self._load(link.child_model, child_id)

        parent_col = getattr(link.junction, link.parent_column)
        self.db.execute(delete(link.junction).where(parent_col == parent_id))
        self.db.add_all(link.junction(**{link.parent_column: parent_id, link.child_column: c}) for c in wanted)
        self._commit(f"{link.name} links for {parent_id} changed concurrently")
        logger.info("Replaced %s links for %s with %s by user_id=%s", link.name, parent_id, wanted, principal.id)
        return wanted
