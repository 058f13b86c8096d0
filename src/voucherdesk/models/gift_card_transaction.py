"""Gift card transaction ledger capturing balance movements."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow
from .compensation_policy import enum_values


class GiftCardTransactionType(str, enum.Enum):
    """Ledger event classification."""

    ISSUE = "issue"
    REDEMPTION = "redemption"


class GiftCardTransaction(Base):
    """Append-only record of each balance change, keyed for idempotent replays."""

    __tablename__ = "gift_card_transactions"
    __table_args__ = (
        CheckConstraint(
            "(transaction_type = 'redemption' AND amount_delta < 0) "
            "OR (transaction_type = 'issue' AND amount_delta > 0)",
            name="gift_card_transactions_delta_sign",
        ),
        CheckConstraint("balance_after >= 0", name="gift_card_transactions_balance_positive"),
        UniqueConstraint("tenant_id", "idempotency_key", name="gift_card_transactions_idempotency_unique"),
    )

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    gift_card_id = Column(Uuid, ForeignKey("gift_cards.id", ondelete="RESTRICT"), nullable=False, index=True)
    tenant_id = Column(Uuid, nullable=False, index=True)
    transaction_type = Column(
        Enum(GiftCardTransactionType, name="gift_card_transaction_type", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    amount_delta = Column(Numeric(14, 2), nullable=False)
    balance_after = Column(Numeric(14, 2), nullable=False)
    order_id = Column(Uuid)
    idempotency_key = Column(String(128))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    gift_card = relationship("GiftCard", back_populates="transactions")
