"""Envelope for endpoints that confirm an action and echo the affected resource."""
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    data: Optional[T] = Field(default=None, description="Affected resource")
    message: str = Field(description="Human-readable confirmation", examples=["Conversation restored"])
    status: Literal["ok"] = Field(default="ok")

    @classmethod
    def success(cls, data: Optional[T] = None, message: str = "Success") -> "ResponseModel[T]":
        return cls(data=data, message=message)
