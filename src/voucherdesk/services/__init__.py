"""Service layer exports."""

from . import (
	expiry_service,
	gift_card_service,
	redemption_gateway,
	voucher_service,
)

__all__ = [
	"expiry_service",
	"gift_card_service",
	"redemption_gateway",
	"voucher_service",
]
