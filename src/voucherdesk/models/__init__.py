"""SQLAlchemy models for voucherdesk."""

from .compensation_policy import CompensationPolicy, CompensationType, ComplaintCategory
from .customer import Customer
from .gift_card import GiftCard, GiftCardStatus
from .gift_card_transaction import GiftCardTransaction, GiftCardTransactionType
from .voucher import Voucher, VoucherStatus

__all__ = [
    "CompensationPolicy",
    "CompensationType",
    "ComplaintCategory",
    "Customer",
    "GiftCard",
    "GiftCardStatus",
    "GiftCardTransaction",
    "GiftCardTransactionType",
    "Voucher",
    "VoucherStatus",
]
