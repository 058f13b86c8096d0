"""Compensation voucher model."""

import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow
from .compensation_policy import CompensationType, ComplaintCategory, enum_values


class VoucherStatus(str, enum.Enum):
    """Voucher lifecycle states.

    ``pending_approval`` -> ``approved`` | ``rejected``;
    ``approved`` -> ``redeemed`` | ``expired``. The last three are terminal.
    """

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    REDEEMED = "redeemed"
    EXPIRED = "expired"


class Voucher(Base):
    """One-time compensation instrument issued to a customer after a complaint."""

    __tablename__ = "vouchers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="vouchers_tenant_code_unique"),
        CheckConstraint("compensation_value >= 0", name="vouchers_value_positive"),
        CheckConstraint(
            "compensation_type <> 'percent_discount' OR compensation_value <= 100",
            name="vouchers_percent_range",
        ),
        CheckConstraint(
            "(status = 'redeemed' AND redeemed_at IS NOT NULL) OR (status <> 'redeemed' AND redeemed_at IS NULL)",
            name="vouchers_redeemed_at_matches_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    customer_id = Column(Uuid, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)
    policy_id = Column(Uuid, ForeignKey("compensation_policies.id", ondelete="SET NULL"))
    code = Column(String(64), nullable=False)
    compensation_type = Column(
        SAEnum(CompensationType, name="compensation_type", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    compensation_value = Column(Numeric(14, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(14, 2))
    complaint_category = Column(
        SAEnum(ComplaintCategory, name="complaint_category", native_enum=False, values_callable=enum_values)
    )
    complaint_summary = Column(Text)
    status = Column(
        SAEnum(VoucherStatus, name="voucher_status", native_enum=False, values_callable=enum_values, length=32),
        nullable=False,
        default=VoucherStatus.PENDING_APPROVAL,
    )
    valid_until = Column(DateTime)
    approved_by = Column(String(200))
    admin_notes = Column(Text)
    redeemed_at = Column(DateTime)
    redeemed_order_id = Column(Uuid)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="vouchers")
    policy = relationship("CompensationPolicy", back_populates="vouchers")
