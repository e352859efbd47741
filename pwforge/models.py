"""
Records exchanged with the auth/storage collaborators (Pydantic v2),
plus the Result value every collaborator call returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)


class AuthSession(BaseModel):
    """An authenticated owner identity as issued by the collaborator."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: int | None = Field(
        default=None,
        description="Unix timestamp after which the access token is rejected.",
    )
    user: User


class SavedPasswordRecord(BaseModel):
    """
    One row of the `passwords` table. Field aliases are the column names,
    so rows from the REST API and the local vault validate the same way.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    owner: str = Field(..., alias="user_id", min_length=1)
    text: str = Field(..., alias="password_text", min_length=1)
    label: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a collaborator call: a value, or an error message."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "Result[T]":
        return cls(error=error or "Unknown error.")
