"""Core types shared across composedb."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, TypeAlias

from pydantic import BaseModel

AccountNumber: TypeAlias = str
OrgId: TypeAlias = str


def parse_timestamp(value: str) -> datetime:
    """Parse a store timestamp ('YYYY-MM-DD HH:MM:SS[.fff]', UTC)."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class ComposeRecord(BaseModel):
    """A submitted build request as persisted in the `composes` table."""

    id: uuid.UUID
    account_number: AccountNumber
    org_id: OrgId | None = None
    request: Any = None
    created_at: datetime
