"""Public schema exports."""

from .common import CustomerSummary
from .gift_card import (
	GiftCardApply,
	GiftCardApplyReceipt,
	GiftCardAssign,
	GiftCardIssue,
	GiftCardRead,
	GiftCardTransactionRead,
)
from .redemption import InstrumentReference, OrderContextPayload, RedemptionRequest, RedemptionResultRead
from .voucher import VoucherIssue, VoucherRead, VoucherRedeem, VoucherRedemptionReceipt, VoucherReview

__all__ = [
	"CustomerSummary",
	"GiftCardApply",
	"GiftCardApplyReceipt",
	"GiftCardAssign",
	"GiftCardIssue",
	"GiftCardRead",
	"GiftCardTransactionRead",
	"InstrumentReference",
	"OrderContextPayload",
	"RedemptionRequest",
	"RedemptionResultRead",
	"VoucherIssue",
	"VoucherRead",
	"VoucherRedeem",
	"VoucherRedemptionReceipt",
	"VoucherReview",
]
