"""Conversation entity."""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class Conversation(BaseEntity):
    """A titled container for an ordered sequence of messages.

    `deleted_at` is the soft-delete marker: a non-null value means the
    conversation is hidden and waiting for its purge.
    """

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    def is_deleted(self) -> bool:
        return self.deleted_at is not None
