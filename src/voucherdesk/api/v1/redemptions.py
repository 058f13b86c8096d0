"""Checkout redemption gateway endpoint."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import RedemptionRequest, RedemptionResultRead
from ...services import redemption_gateway
from ...services.errors import InstrumentError
from ...services.redemption_gateway import InstrumentRef, OrderContext
from .deps import get_tenant_id
from .errors import instrument_http_error, storage_http_error

router = APIRouter(prefix="/redemptions", tags=["redemptions"])


@router.post(
    "",
    response_model=RedemptionResultRead,
    summary="Apply a voucher or gift card to an order",
    responses={
        200: {
            "description": "Instrument applied",
            "content": {
                "application/json": {
                    "example": {
                        "instrument_kind": "gift_card",
                        "instrument_id": "55555555-5555-5555-5555-555555555555",
                        "code": "GIFT-2026-0042",
                        "applied_amount": "12000.00",
                        "remaining_balance": "18000.00",
                        "compensation_type": None,
                        "replayed": False,
                    }
                }
            },
        },
        404: {"description": "Instrument not found"},
        409: {"description": "Instrument not redeemable in its current state"},
        410: {"description": "Instrument expired"},
        422: {"description": "Insufficient balance or invalid amount"},
    },
)
def redeem_instrument(
    payload: RedemptionRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> RedemptionResultRead:
    """Redeem an instrument at checkout.

    Example request body::

        {
            "instrument": {"kind": "voucher", "code": "COMP-7F3K9Q2M"},
            "order": {"order_id": "44444444-4444-4444-4444-444444444444", "subtotal": "10000"}
        }

    The ``error`` field of a failure body names the declined-instrument
    reason (``expired``, ``insufficient_balance``, ``already_redeemed``...).
    """

    try:
        result = redemption_gateway.redeem(
            db,
            tenant_id=tenant_id,
            instrument=InstrumentRef(
                kind=payload.instrument.kind,
                id=payload.instrument.id,
                code=payload.instrument.code,
            ),
            order=OrderContext(
                order_id=payload.order.order_id,
                subtotal=payload.order.subtotal,
                amount=payload.order.amount,
            ),
            idempotency_key=payload.idempotency_key,
        )
        db.commit()
        return RedemptionResultRead.model_validate(result)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc
