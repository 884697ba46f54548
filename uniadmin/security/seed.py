"""
Identity seed: YAML definition of units, permissions, roles and users.

Load once at startup, validate, then write the graph into an empty database.

Key ideas:
- Every `ActionCode` becomes an Action row; permissions may only reference those codes.
- Roles may `extends` another role and inherit its permissions (cycles rejected).
- Users carry plain passwords in the file; only bcrypt hashes are stored.

This module has no FastAPI dependency.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml
from sqlalchemy.orm import Session

from uniadmin.models.identity import Action, Permission, PermissionAction, Role, RolePermission, Unit, User, UserRole
from uniadmin.security.actions import ALL_ACTION_CODES, ActionCode
from uniadmin.security.tokens import hash_password

logger = logging.getLogger(__name__)


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class UnitDef:
    code: str
    name: str


@dataclass(frozen=True)
class PermissionDef:
    code: str
    name: str
    actions: frozenset[str]
    description: str | None = None


@dataclass(frozen=True)
class RoleDef:
    code: str
    name: str
    permissions: frozenset[str]
    extends: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class UserDef:
    email: str
    full_name: str
    password: str
    roles: frozenset[str]
    unit: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class IdentitySeed:
    units: Mapping[str, UnitDef]
    permissions: Mapping[str, PermissionDef]
    roles: Mapping[str, RoleDef]
    users: tuple[UserDef, ...]


class SeedConfigError(ValueError):
    """Raised when the identity seed YAML is invalid."""


# ---- Loader --------------------------------------------------------------------------


def _require_mapping(value: object, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SeedConfigError(f"{what} must be a mapping")
    return value


def _str_list(value: object, what: str) -> frozenset[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, list):
        raise SeedConfigError(f"{what} must be a list when present")
    return frozenset(str(v) for v in value)


def load_identity_seed(path: Path) -> IdentitySeed:
    """
    Load and validate the identity seed YAML.

    Expected shape (simplified):

        units:
          INTL: {name: International Relations Office}

        permissions:
          document_authoring:
            name: Document authoring
            actions: [document.create, document.view_own, document.update]

        roles:
          STAFF:
            name: Staff
            permissions: [document_authoring]
          ADMIN:
            extends: STAFF
            permissions: [identity_admin]

        users:
          - email: staff@uni.example
            full_name: Sam Staff
            password: change-me
            unit: INTL
            roles: [STAFF]
    """

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise SeedConfigError("identity seed must be a mapping")

    units_raw = _require_mapping(raw.get("units"), "units")
    perms_raw = _require_mapping(raw.get("permissions"), "permissions")
    roles_raw = _require_mapping(raw.get("roles"), "roles")
    users_raw = raw.get("users") or []
    if not isinstance(users_raw, list):
        raise SeedConfigError("users must be a list when present")

    units: dict[str, UnitDef] = {}
    for code, val in units_raw.items():
        val = _require_mapping(val, f"unit {code!r}")
        units[str(code)] = UnitDef(code=str(code), name=str(val.get("name") or code))

    permissions: dict[str, PermissionDef] = {}
    for code, val in perms_raw.items():
        val = _require_mapping(val, f"permission {code!r}")
        actions = _str_list(val.get("actions"), f"permission {code!r}.actions")
        unknown = actions - ALL_ACTION_CODES
        if unknown:
            raise SeedConfigError(f"permission {code!r} references unknown actions: {sorted(unknown)}")
        description = val.get("description")
        permissions[str(code)] = PermissionDef(
            code=str(code),
            name=str(val.get("name") or code),
            actions=actions,
            description=str(description) if description is not None else None,
        )

    roles: dict[str, RoleDef] = {}
    for code, val in roles_raw.items():
        val = _require_mapping(val, f"role {code!r}")
        extends = val.get("extends")
        if extends is not None:
            extends = str(extends).strip() or None
        perms = _str_list(val.get("permissions"), f"role {code!r}.permissions")
        unknown = perms - permissions.keys()
        if unknown:
            raise SeedConfigError(f"role {code!r} references unknown permissions: {sorted(unknown)}")
        description = val.get("description")
        roles[str(code)] = RoleDef(
            code=str(code),
            name=str(val.get("name") or code),
            permissions=perms,
            extends=extends,
            description=str(description) if description is not None else None,
        )

    for role in roles.values():
        if role.extends and role.extends not in roles:
            raise SeedConfigError(f"role {role.code!r} extends unknown role {role.extends!r}")

    users: list[UserDef] = []
    seen_emails: set[str] = set()
    for entry in users_raw:
        if not isinstance(entry, dict):
            raise SeedConfigError("users entries must be mappings")
        email = str(entry.get("email") or "").strip().lower()
        password = entry.get("password")
        if not email or not password:
            raise SeedConfigError("every user needs an email and a password")
        if email in seen_emails:
            raise SeedConfigError(f"duplicate user email {email!r}")
        seen_emails.add(email)

        user_roles = _str_list(entry.get("roles"), f"user {email!r}.roles")
        unknown = user_roles - roles.keys()
        if unknown:
            raise SeedConfigError(f"user {email!r} references unknown roles: {sorted(unknown)}")
        unit = entry.get("unit")
        if unit is not None and str(unit) not in units:
            raise SeedConfigError(f"user {email!r} references unknown unit {unit!r}")

        users.append(
            UserDef(
                email=email,
                full_name=str(entry.get("full_name") or email),
                password=str(password),
                roles=user_roles,
                unit=str(unit) if unit is not None else None,
                is_active=bool(entry.get("is_active", True)),
            )
        )

    seed = IdentitySeed(units=units, permissions=permissions, roles=roles, users=tuple(users))
    effective_role_permissions(seed)  # rejects inheritance cycles early
    return seed


def effective_role_permissions(seed: IdentitySeed) -> dict[str, frozenset[str]]:
    """
    Resolve role inheritance and compute the permissions each role ends up with.

    Detect cycles in extends and raise SeedConfigError if found.
    """

    effective: dict[str, frozenset[str]] = {}
    visiting: set[str] = set()

    def dfs(role_code: str) -> frozenset[str]:
        if role_code in effective:
            return effective[role_code]
        if role_code in visiting:
            raise SeedConfigError(f"cycle detected in role inheritance at {role_code!r}")
        visiting.add(role_code)
        role = seed.roles[role_code]
        perms = set(role.permissions)
        if role.extends:
            perms.update(dfs(role.extends))
        result = frozenset(perms)
        effective[role_code] = result
        visiting.remove(role_code)
        return result

    for code in seed.roles:
        dfs(code)
    return effective


# ---- Writer --------------------------------------------------------------------------


def _action_name(code: ActionCode) -> str:
    return code.value.replace(".", " ").replace("_", " ").capitalize()


def apply_identity_seed(db: Session, seed: IdentitySeed, *, bcrypt_rounds: int = 12) -> None:
    """Write `seed` into an empty identity graph and commit."""

    actions = {code.value: Action(code=code.value, name=_action_name(code), category=code.category) for code in ActionCode}
    units = {code: Unit(code=code, name=u.name) for code, u in seed.units.items()}
    permissions = {
        code: Permission(code=code, name=p.name, description=p.description) for code, p in seed.permissions.items()
    }
    roles = {code: Role(code=code, name=r.name, description=r.description) for code, r in seed.roles.items()}
    db.add_all([*actions.values(), *units.values(), *permissions.values(), *roles.values()])
    db.flush()

    for code, perm in seed.permissions.items():
        for action_code in sorted(perm.actions):
            db.add(PermissionAction(permission_id=permissions[code].id, action_id=actions[action_code].id))

    for code, perm_codes in effective_role_permissions(seed).items():
        for perm_code in sorted(perm_codes):
            db.add(RolePermission(role_id=roles[code].id, permission_id=permissions[perm_code].id))

    for u in seed.users:
        user = User(
            email=u.email,
            full_name=u.full_name,
            password_hash=hash_password(u.password, bcrypt_rounds),
            unit_id=units[u.unit].id if u.unit else None,
            is_active=u.is_active,
        )
        db.add(user)
        db.flush()
        for role_code in sorted(u.roles):
            db.add(UserRole(user_id=user.id, role_id=roles[role_code].id))

    db.commit()
    logger.info(
        "Identity seed applied: units=%s actions=%s permissions=%s roles=%s users=%s",
        len(units),
        len(actions),
        len(permissions),
        len(roles),
        len(seed.users),
    )
