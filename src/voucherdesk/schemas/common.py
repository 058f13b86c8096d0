"""Shared schema fragments."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CustomerSummary(BaseModel):
    """Lightweight projection of customer details."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
