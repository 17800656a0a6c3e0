"""Shared base entity for all database models."""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from api.shared.utils import utcnow

# Upper bound of the INTEGER id columns (int4 on Postgres).
MAX_ID = 2**31 - 1


def is_storable_id(value: int) -> bool:
    """Whether `value` could be the id of some row."""
    return 1 <= value <= MAX_ID


class BaseEntity(DeclarativeBase):
    """Base class for all database entities.

    Ids are monotonic integers and `created_at` is stamped by the application
    (microsecond precision on every backend), so `(created_at, id)` is a
    stable total order.
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Generate table name from class name."""
        return cls.__name__.lower()

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert entity instance to dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """String representation of the entity."""
        return f"<{self.__class__.__name__}(id={self.id})>"
