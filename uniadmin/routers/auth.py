from __future__ import annotations

from fastapi import APIRouter, Depends

from uniadmin.schemas.identity import LoginIn, LogoutIn, PrincipalOut, RefreshIn, TokenPairOut
from uniadmin.security.dependencies import get_current_principal, get_token_issuer
from uniadmin.security.principal import Principal
from uniadmin.security.tokens import TokenIssuer, TokenPair

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenPairOut)
def login(payload: LoginIn, issuer: TokenIssuer = Depends(get_token_issuer)) -> TokenPair:
    return issuer.login(payload.email.strip().lower(), payload.password)


@router.post("/refresh", response_model=TokenPairOut)
def refresh(payload: RefreshIn, issuer: TokenIssuer = Depends(get_token_issuer)) -> TokenPair:
    return issuer.refresh(payload.refresh_token)


@router.post("/logout")
def logout(
    payload: LogoutIn | None = None,
    principal: Principal = Depends(get_current_principal),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> dict[str, int]:
    return {"revoked": issuer.logout(principal.id, payload.refresh_token if payload else None)}


@router.post("/logout-all")
def logout_all(
    principal: Principal = Depends(get_current_principal),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> dict[str, int]:
    return {"revoked": issuer.logout_all(principal.id)}


@router.get("/me", response_model=PrincipalOut)
def me(principal: Principal = Depends(get_current_principal)) -> PrincipalOut:
    return PrincipalOut(id=principal.id, unit_id=principal.unit_id, action_codes=sorted(principal.action_codes))
