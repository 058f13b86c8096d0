"""Prepaid gift card model."""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum as SAEnum, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow
from .compensation_policy import enum_values


class GiftCardStatus(str, enum.Enum):
    """Gift card states; everything except ``active`` is terminal."""

    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    DISABLED = "disabled"


class GiftCard(Base):
    """Stored-value card whose balance only ever decreases."""

    __tablename__ = "gift_cards"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="gift_cards_tenant_code_unique"),
        CheckConstraint("initial_balance >= 0", name="gift_cards_initial_balance_positive"),
        CheckConstraint("current_balance >= 0", name="gift_cards_current_balance_positive"),
        CheckConstraint("current_balance <= initial_balance", name="gift_cards_balance_within_initial"),
        CheckConstraint(
            "(status = 'redeemed' AND current_balance = 0) OR (status <> 'redeemed' AND current_balance > 0)",
            name="gift_cards_redeemed_iff_empty",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    code = Column(String(100), nullable=False)
    initial_balance = Column(Numeric(14, 2), nullable=False)
    current_balance = Column(Numeric(14, 2), nullable=False)
    customer_id = Column(Uuid, ForeignKey("customers.id", ondelete="SET NULL"))
    status = Column(
        SAEnum(GiftCardStatus, name="gift_card_status", native_enum=False, values_callable=enum_values, length=32),
        nullable=False,
        default=GiftCardStatus.ACTIVE,
    )
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="gift_cards")
    transactions = relationship(
        "GiftCardTransaction",
        back_populates="gift_card",
        order_by="GiftCardTransaction.transaction_id.desc()",
    )
