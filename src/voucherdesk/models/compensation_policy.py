"""Compensation policy model configured per store and complaint category."""

import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum as SAEnum, Integer, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class CompensationType(str, enum.Enum):
    """What a voucher grants at checkout."""

    PERCENT_DISCOUNT = "percent_discount"
    FIXED_DISCOUNT = "fixed_discount"
    FREE_SHIPPING = "free_shipping"
    FREE_ITEM = "free_item"


class ComplaintCategory(str, enum.Enum):
    """Complaint classes a policy can be attached to."""

    FOOD_QUALITY = "food_quality"
    WRONG_ITEM = "wrong_item"
    DELIVERY_DELAY = "delivery_delay"
    SERVICE_QUALITY = "service_quality"
    DAMAGED_ITEM = "damaged_item"
    PRICING_ERROR = "pricing_error"
    STAFF_BEHAVIOR = "staff_behavior"
    OTHER = "other"


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class CompensationPolicy(Base):
    """Store-level rule describing what compensation a complaint earns."""

    __tablename__ = "compensation_policies"
    __table_args__ = (
        UniqueConstraint("tenant_id", "complaint_category", name="compensation_policies_category_unique"),
        CheckConstraint("compensation_value >= 0", name="compensation_policies_value_positive"),
        CheckConstraint("valid_days > 0", name="compensation_policies_valid_days_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    complaint_category = Column(
        SAEnum(ComplaintCategory, name="complaint_category", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    compensation_type = Column(
        SAEnum(CompensationType, name="compensation_type", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    compensation_value = Column(Numeric(14, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(14, 2))
    valid_days = Column(Integer, nullable=False, default=30)
    auto_approve = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    vouchers = relationship("Voucher", back_populates="policy")
