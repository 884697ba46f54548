from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LoginIn(BaseModel):
    email: str
    password: str


class RefreshIn(BaseModel):
    refresh_token: str


class LogoutIn(BaseModel):
    refresh_token: str | None = None


class TokenPairOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    access_token: str
    refresh_token: str
    token_type: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class PrincipalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_id: int | None
    action_codes: list[str]


class NodeIn(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    category: str | None = None


class NodeUpdateIn(BaseModel):
    name: str | None = None
    description: str | None = None


class ActiveIn(BaseModel):
    is_active: bool


class NodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    description: str | None
    is_active: bool


class ActionOut(NodeOut):
    category: str | None


class IdsIn(BaseModel):
    ids: list[int]


class AccessCheckOut(BaseModel):
    user_id: int
    action_code: str
    allowed: bool
