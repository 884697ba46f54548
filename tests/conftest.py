"""
Pytest fixtures for the test suite.

Every test gets a fresh in-memory SQLite database (one shared connection via
StaticPool), so tests do not affect each other. Code under test commits, so
there is no outer transaction to roll back; the engine is simply discarded.
"""
from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from uniadmin.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from uniadmin.models.enums import EntityKind, VisaStatus
from uniadmin.models.identity import Action, Permission, PermissionAction, Role, RolePermission, Unit, User, UserRole
from uniadmin.models.workflow import Document, Guest, Translation, Visa, VisaExtension
from uniadmin.security.actions import ALL_ACTION_CODES
from uniadmin.security.gate import ActionGate
from uniadmin.security.principal import Principal
from uniadmin.security.resolver import PermissionResolver
from uniadmin.security.tokens import hash_password
from uniadmin.workflow import EventBus, TransitionEvent, build_registry


TEST_DB_URL = "sqlite:///:memory:"

FIXED_NOW = datetime(2026, 3, 2, 9, 0, 0)
TODAY = FIXED_NOW.date()


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from uniadmin.db.base import Base
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# ---- Identity graph ------------------------------------------------------------------


class IdentityBuilder:
    """Small helpers to build users and role/permission/action paths in tests."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._seq = itertools.count(1)

    def unit(self, code: str = "ENG") -> Unit:
        unit = self.db.scalars(select(Unit).where(Unit.code == code)).first()
        if unit is None:
            unit = Unit(code=code, name=f"Unit {code}")
            self.db.add(unit)
            self.db.commit()
        return unit

    def action(self, code: str) -> Action:
        action = self.db.scalars(select(Action).where(Action.code == code)).first()
        if action is None:
            action = Action(code=code, name=code, category=code.split(".", 1)[0].upper())
            self.db.add(action)
            self.db.commit()
        return action

    def permission(self, code: str, *action_codes: str) -> Permission:
        permission = Permission(code=code, name=code)
        self.db.add(permission)
        self.db.flush()
        for action_code in action_codes:
            self.db.add(PermissionAction(permission_id=permission.id, action_id=self.action(action_code).id))
        self.db.commit()
        return permission

    def role(self, code: str, *permissions: Permission) -> Role:
        role = Role(code=code, name=code)
        self.db.add(role)
        self.db.flush()
        for permission in permissions:
            self.db.add(RolePermission(role_id=role.id, permission_id=permission.id))
        self.db.commit()
        return role

    def user(
        self,
        email: str | None = None,
        *,
        unit: Unit | None = None,
        roles: tuple[Role, ...] = (),
        password: str = "secret-password",
        is_active: bool = True,
    ) -> User:
        n = next(self._seq)
        user = User(
            email=email or f"user{n}@uni.example",
            full_name=f"User {n}",
            password_hash=hash_password(password, rounds=4),
            unit_id=unit.id if unit else None,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.flush()
        for role in roles:
            self.db.add(UserRole(user_id=user.id, role_id=role.id))
        self.db.commit()
        return user

    def user_with_actions(self, *action_codes: str, unit: Unit | None = None, email: str | None = None) -> User:
        n = next(self._seq)
        permission = self.permission(f"perm_{n}", *action_codes)
        role = self.role(f"ROLE_{n}", permission)
        return self.user(email, unit=unit, roles=(role,))

    def principal(self, user: User) -> Principal:
        actions = PermissionResolver(self.db).resolve_actions(user.id)
        return Principal(id=user.id, unit_id=user.unit_id, action_codes=actions)


@pytest.fixture
def identity(db_session):
    return IdentityBuilder(db_session)


@pytest.fixture
def superuser(identity):
    """A user holding every action code."""
    user = identity.user_with_actions(*sorted(ALL_ACTION_CODES), unit=identity.unit("INTL"))
    return identity.principal(user)


# ---- Workflow ------------------------------------------------------------------------


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    """Every TransitionEvent published on `bus`, in order."""
    received: list[TransitionEvent] = []
    bus.subscribe(TransitionEvent, received.append)
    return received


@pytest.fixture
def registry(bus):
    return build_registry(ActionGate(), bus, clock=fixed_clock)


_numbers = itertools.count(1000)


def make_entity(db: Session, kind: EntityKind, status, created_by_id: int, unit_id: int | None = None):
    """Insert a workflow entity directly in `status` (test setup only; bypasses the engine)."""

    common = {"status": status, "created_by_id": created_by_id, "unit_id": unit_id}
    if kind is EntityKind.DOCUMENT:
        entity = Document(title="MOU with Example University", partner_name="Example University", **common)
    elif kind is EntityKind.GUEST:
        entity = Guest(
            full_name="Guest Visitor",
            nationality="JP",
            purpose="Research visit",
            arrival_date=TODAY + timedelta(days=10),
            departure_date=TODAY + timedelta(days=20),
            **common,
        )
    elif kind is EntityKind.VISA:
        entity = _visa(**common)
    elif kind is EntityKind.VISA_EXTENSION:
        visa = _visa(status=VisaStatus.ACTIVE, created_by_id=created_by_id, unit_id=unit_id)
        db.add(visa)
        db.flush()
        entity = VisaExtension(visa_id=visa.id, new_expiration_date=visa.expiration_date + timedelta(days=90), **common)
    elif kind is EntityKind.TRANSLATION:
        entity = Translation(
            title="Transcript",
            source_language="vi",
            target_language="en",
            original_file_url="https://files.example/transcript.pdf",
            **common,
        )
    else:
        raise AssertionError(f"unknown kind {kind}")
    db.add(entity)
    db.commit()
    return entity


def _visa(**common) -> Visa:
    return Visa(
        holder_name="Visiting Scholar",
        holder_country="FR",
        passport_number="P1234567",
        visa_number=f"V-{next(_numbers)}",
        issue_date=date(2025, 9, 1),
        expiration_date=TODAY + timedelta(days=60),
        **common,
    )


@pytest.fixture
def entity_factory(db_session):
    def factory(kind: EntityKind, status, created_by_id: int, unit_id: int | None = None):
        return make_entity(db_session, kind, status, created_by_id, unit_id)

    return factory


@pytest.fixture
def clock():
    """The fixed clock the test registry and services run on."""
    return fixed_clock


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def services(db_session, registry, bus):
    from types import SimpleNamespace

    from uniadmin.services.documents import DocumentService
    from uniadmin.services.guests import GuestService
    from uniadmin.services.translations import TranslationService
    from uniadmin.services.visas import VisaService

    return SimpleNamespace(
        documents=DocumentService(db_session, registry, bus, clock=fixed_clock),
        guests=GuestService(db_session, registry, bus, clock=fixed_clock),
        visas=VisaService(db_session, registry, bus, clock=fixed_clock),
        translations=TranslationService(db_session, registry, bus, clock=fixed_clock),
    )
