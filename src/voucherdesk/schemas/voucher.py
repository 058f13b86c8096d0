"""Pydantic schemas for voucher endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models import CompensationType, ComplaintCategory, VoucherStatus
from .common import CustomerSummary


class VoucherIssue(BaseModel):
    """Request body for issuing a compensation voucher."""

    customer_id: UUID
    policy_id: Optional[UUID] = Field(None, description="Policy to apply; takes precedence over category.")
    complaint_category: Optional[ComplaintCategory] = Field(
        None, description="Resolve the tenant's active policy for this complaint category."
    )
    complaint_summary: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _require_policy_reference(self) -> "VoucherIssue":
        if self.policy_id is None and self.complaint_category is None:
            raise ValueError("Either policy_id or complaint_category is required.")
        return self


class VoucherReview(BaseModel):
    """Approval or rejection decision."""

    reviewer: str = Field(..., min_length=1, max_length=200, description="Manager making the decision.")
    admin_notes: Optional[str] = Field(None, max_length=2000)


class VoucherRedeem(BaseModel):
    order_id: UUID
    order_subtotal: Decimal = Field(..., description="Order subtotal the discount is computed from.")


class VoucherRead(BaseModel):
    """Voucher response payload with expiry already resolved."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    customer: CustomerSummary
    policy_id: Optional[UUID] = None
    compensation_type: CompensationType
    compensation_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    complaint_category: Optional[ComplaintCategory] = None
    complaint_summary: Optional[str] = None
    status: VoucherStatus
    valid_until: Optional[datetime] = None
    approved_by: Optional[str] = None
    admin_notes: Optional[str] = None
    redeemed_at: Optional[datetime] = None
    redeemed_order_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class VoucherRedemptionReceipt(BaseModel):
    """Response returned after redeeming a voucher."""

    voucher: VoucherRead
    applied_amount: Optional[Decimal] = Field(
        None, description="Discount to apply; null when the order component prices it (free shipping/item)."
    )
