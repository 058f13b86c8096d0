"""Pydantic schemas for the checkout redemption gateway."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models import CompensationType
from ..services.redemption_gateway import InstrumentKind


class InstrumentReference(BaseModel):
    kind: InstrumentKind
    id: Optional[UUID] = None
    code: Optional[str] = Field(None, min_length=1, max_length=100)

    @model_validator(mode="after")
    def _exactly_one_locator(self) -> "InstrumentReference":
        if (self.id is None) == (self.code is None):
            raise ValueError("Provide exactly one of id or code.")
        return self


class OrderContextPayload(BaseModel):
    order_id: UUID
    subtotal: Decimal
    amount: Optional[Decimal] = Field(None, description="Amount to charge to a gift card; defaults to subtotal.")


class RedemptionRequest(BaseModel):
    """Incoming payload for applying an instrument at checkout."""

    instrument: InstrumentReference
    order: OrderContextPayload
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)


class RedemptionResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    instrument_kind: InstrumentKind
    instrument_id: UUID
    code: str
    applied_amount: Optional[Decimal] = None
    remaining_balance: Optional[Decimal] = None
    compensation_type: Optional[CompensationType] = None
    replayed: bool = False
