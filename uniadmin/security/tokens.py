"""
Issue and verify access/refresh credentials.

Background:
    At login and at refresh we resolve the caller's effective action codes
    once and embed them in a signed, short-lived access token. Every request
    after that only checks set membership against the token, so the identity
    graph is off the hot path.

    The price is staleness: deactivating a role, permission or action takes
    effect for a user only when they next log in or refresh. The window is
    bounded by `access_token_ttl_seconds` (15 minutes by default). Refresh
    forces re-resolution, and logout deletes refresh credentials so no new
    access token can be minted.

    Refresh tokens are single-use: each one has a server-side row keyed by its
    `jti`. Using a refresh token deletes the row and issues a new pair, so a
    replayed (already consumed) refresh token fails.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import bcrypt
import jwt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from uniadmin.errors import Unauthenticated
from uniadmin.models.identity import RefreshToken, User
from uniadmin.security.principal import Principal
from uniadmin.security.resolver import PermissionResolver
from uniadmin.settings import Settings

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "bearer"


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash.
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _claims_to_principal(payload: dict[str, Any]) -> Principal:
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise Unauthenticated("Invalid token") from exc

    raw_unit = payload.get("unit")
    unit_id = int(raw_unit) if isinstance(raw_unit, (int, str)) and str(raw_unit).isdigit() else None

    raw_actions = payload.get("actions")
    actions: list[str] = []
    if isinstance(raw_actions, list):
        actions = [str(a) for a in raw_actions]

    return Principal(id=user_id, unit_id=unit_id, action_codes=frozenset(actions))


class TokenIssuer:
    """
    Login, refresh and logout over the identity graph.

    The session is passed in explicitly; the issuer commits the refresh-token
    rows it writes.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        resolver: PermissionResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._settings = settings
        self._resolver = resolver or PermissionResolver(db)
        self._clock = clock

    # ---- Public API ------------------------------------------------------------------

    def login(self, email: str, password: str) -> TokenPair:
        user = self._db.scalars(select(User).where(User.email == email)).first()

        # One message for every failure so callers cannot probe which emails exist.
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            logger.info("Login failed")
            raise Unauthenticated("Invalid email or password")

        user.last_login_at = _naive(self._clock())
        pair = self._issue(user)
        logger.info("Login succeeded user_id=%s", user.id)
        return pair

    def refresh(self, refresh_token: str) -> TokenPair:
        payload = self._decode(refresh_token, self._settings.jwt_refresh_secret, REFRESH)
        jti = payload.get("jti")
        user_id = payload.get("sub")

        try:
            owner_id = int(user_id)
        except (TypeError, ValueError):
            raise Unauthenticated("Invalid refresh token") from None

        # Single use: whoever deletes the row owns the refresh; a concurrent replay deletes nothing.
        now = _naive(self._clock())
        consumed = self._db.execute(
            delete(RefreshToken)
            .where(
                RefreshToken.jti == str(jti),
                RefreshToken.user_id == owner_id,
                RefreshToken.expires_at > now,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if consumed != 1:
            self._db.rollback()
            logger.info("Refresh rejected (unknown, consumed or expired) user_id=%s", user_id)
            raise Unauthenticated("Invalid refresh token")

        user = self._db.get(User, owner_id)
        if user is None or not user.is_active:
            self._db.commit()
            raise Unauthenticated("Invalid or inactive user")

        pair = self._issue(user)
        logger.info("Refresh succeeded user_id=%s", user.id)
        return pair

    def logout(self, user_id: int, refresh_token: str | None = None) -> int:
        """
        Invalidate refresh credentials for `user_id`.

        With `refresh_token`, only that device's credential is removed;
        otherwise all of the user's refresh credentials are.
        """

        stmt = delete(RefreshToken).where(RefreshToken.user_id == user_id)
        if refresh_token is not None:
            payload = self._decode(refresh_token, self._settings.jwt_refresh_secret, REFRESH, verify_exp=False)
            stmt = stmt.where(RefreshToken.jti == str(payload.get("jti")))

        removed = self._db.execute(stmt).rowcount or 0
        self._db.commit()
        logger.info("Logout user_id=%s removed_refresh_tokens=%s", user_id, removed)
        return removed

    def logout_all(self, user_id: int) -> int:
        return self.logout(user_id)

    def purge_expired(self) -> int:
        now = _naive(self._clock())
        removed = self._db.execute(delete(RefreshToken).where(RefreshToken.expires_at < now)).rowcount or 0
        self._db.commit()
        logger.info("Purged %s expired refresh tokens", removed)
        return removed

    def decode_access(self, token: str) -> Principal:
        payload = self._decode(token, self._settings.jwt_access_secret, ACCESS)
        return _claims_to_principal(payload)

    # ---- Internals -------------------------------------------------------------------

    def _issue(self, user: User) -> TokenPair:
        actions = self._resolver.resolve_actions(user.id)

        now = self._clock()
        access_exp = now + timedelta(seconds=self._settings.access_token_ttl_seconds)
        refresh_exp = now + timedelta(seconds=self._settings.refresh_token_ttl_seconds)
        refresh_jti = uuid.uuid4().hex

        access_token = jwt.encode(
            {
                "sub": str(user.id),
                "unit": user.unit_id,
                "actions": sorted(actions),
                "typ": ACCESS,
                "iat": now,
                "exp": access_exp,
                "jti": uuid.uuid4().hex,
            },
            self._settings.jwt_access_secret,
            algorithm=self._settings.jwt_algorithm,
        )
        refresh_token = jwt.encode(
            {
                "sub": str(user.id),
                "typ": REFRESH,
                "iat": now,
                "exp": refresh_exp,
                "jti": refresh_jti,
            },
            self._settings.jwt_refresh_secret,
            algorithm=self._settings.jwt_algorithm,
        )

        self._db.add(RefreshToken(user_id=user.id, jti=refresh_jti, expires_at=_naive(refresh_exp)))
        self._db.commit()

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
        )

    def _decode(self, token: str, secret: str, expected_type: str, *, verify_exp: bool = True) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self._settings.jwt_algorithm],
                leeway=self._settings.clock_skew_seconds,
                options={
                    "verify_signature": True,
                    "verify_exp": verify_exp,
                    "verify_iat": True,
                    "require": ["sub", "exp", "iat", "typ"],
                },
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Token expired")
            raise Unauthenticated("Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.info("Token invalid: %s", type(e).__name__)
            raise Unauthenticated("Invalid token") from e

        if payload.get("typ") != expected_type:
            logger.info("Token type mismatch expected=%s", expected_type)
            raise Unauthenticated("Invalid token")
        return payload
