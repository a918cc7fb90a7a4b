"""Caller identity taken from a validated Azure AD access token."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UserInfo(BaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    roles: list[str] = Field(default_factory=list)

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)
