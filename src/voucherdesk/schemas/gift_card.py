"""Pydantic schemas for gift card endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import GiftCardStatus, GiftCardTransactionType
from .common import CustomerSummary


class GiftCardIssue(BaseModel):
    code: str = Field(..., min_length=1, max_length=100)
    initial_balance: Decimal = Field(..., description="Starting balance; must be greater than zero.")
    customer_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None


class GiftCardApply(BaseModel):
    """Debit request; ``idempotency_key`` makes client retries safe."""

    amount: Decimal
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)
    order_id: Optional[UUID] = None


class GiftCardAssign(BaseModel):
    customer_id: Optional[UUID] = Field(None, description="Customer to attach; null detaches the card.")


class GiftCardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    initial_balance: Decimal
    current_balance: Decimal
    customer: Optional[CustomerSummary] = None
    status: GiftCardStatus
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class GiftCardTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: int
    transaction_type: GiftCardTransactionType
    amount_delta: Decimal
    balance_after: Decimal
    order_id: Optional[UUID] = None
    idempotency_key: Optional[str] = None
    created_at: datetime


class GiftCardApplyReceipt(BaseModel):
    """Response returned after debiting a card."""

    card: GiftCardRead
    applied_amount: Decimal
    new_balance: Decimal
    replayed: bool = Field(False, description="True when an earlier request with the same key was returned.")
