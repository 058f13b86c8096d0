"""Single checkout-facing entry point for consuming vouchers and gift cards."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import CompensationType
from . import gift_card_service, voucher_service


class InstrumentKind(str, enum.Enum):
    VOUCHER = "voucher"
    GIFT_CARD = "gift_card"


@dataclass
class InstrumentRef:
    """Points at one instrument by id or by its printed code."""

    kind: InstrumentKind
    id: Optional[UUID] = None
    code: Optional[str] = None


@dataclass
class OrderContext:
    order_id: UUID
    subtotal: Decimal
    # Amount to charge to a gift card; defaults to the subtotal.
    amount: Optional[Decimal] = None


@dataclass
class RedemptionResult:
    instrument_kind: InstrumentKind
    instrument_id: UUID
    code: str
    applied_amount: Optional[Decimal]
    remaining_balance: Optional[Decimal] = None
    compensation_type: Optional[CompensationType] = None
    replayed: bool = False


def redeem(
    session: Session,
    *,
    tenant_id: UUID,
    instrument: InstrumentRef,
    order: OrderContext,
    idempotency_key: Optional[str] = None,
    current_time: datetime | None = None,
) -> RedemptionResult:
    """Apply ``instrument`` to ``order``, raising the owning ledger's typed errors."""

    if instrument.kind is InstrumentKind.VOUCHER:
        voucher_id = instrument.id or voucher_service.find_voucher_id_by_code(
            session, tenant_id=tenant_id, code=instrument.code
        )
        outcome = voucher_service.redeem_voucher(
            session,
            tenant_id=tenant_id,
            voucher_id=voucher_id,
            order_id=order.order_id,
            order_subtotal=order.subtotal,
            current_time=current_time,
        )
        return RedemptionResult(
            instrument_kind=InstrumentKind.VOUCHER,
            instrument_id=outcome.voucher.id,
            code=outcome.voucher.code,
            applied_amount=outcome.applied_amount,
            compensation_type=CompensationType(outcome.voucher.compensation_type),
        )

    if instrument.kind is InstrumentKind.GIFT_CARD:
        card_id = instrument.id or gift_card_service.get_gift_card_by_code(
            session, tenant_id=tenant_id, code=instrument.code, current_time=current_time
        ).id
        amount = order.amount if order.amount is not None else order.subtotal
        outcome = gift_card_service.apply_gift_card(
            session,
            tenant_id=tenant_id,
            card_id=card_id,
            amount=amount,
            idempotency_key=idempotency_key,
            order_id=order.order_id,
            current_time=current_time,
        )
        return RedemptionResult(
            instrument_kind=InstrumentKind.GIFT_CARD,
            instrument_id=outcome.card.id,
            code=outcome.card.code,
            applied_amount=outcome.applied_amount,
            remaining_balance=outcome.new_balance,
            replayed=outcome.replayed,
        )

    raise ValueError(f"Unsupported instrument kind {instrument.kind!r}")
