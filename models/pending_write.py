"""SQLModel table for writes waiting for the remote store."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class PendingWriteRow(SQLModel, table=True):
    __tablename__ = "pendingwrite"

    seq: Optional[int] = Field(default=None, primary_key=True)
    local_id: str = Field(index=True)
    collection: str = Field(index=True)
    op: str = Field(default="create")
    payload: str
    retry_count: int = Field(default=0)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


__all__ = ["PendingWriteRow"]
