"""Time-based expiry shared by both ledgers.

Expiry is evaluated lazily: :func:`voucher_effective_status` and
:func:`gift_card_effective_status` compute what a row's status *is* at a
given instant, and every read or guard goes through them. The sweep merely
persists the same answer in bulk so that reporting queries stay accurate.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import and_, case, literal, update
from sqlalchemy.orm import Session

from ..models import GiftCard, GiftCardStatus, Voucher, VoucherStatus
from ..utils.datetime import resolve_now

logger = logging.getLogger(__name__)


def voucher_effective_status(voucher: Voucher, now: datetime) -> VoucherStatus:
    """Status of ``voucher`` at ``now``; only ``approved`` can lapse into ``expired``."""

    status = VoucherStatus(voucher.status)
    if status is VoucherStatus.APPROVED and voucher.valid_until is not None and now > voucher.valid_until:
        return VoucherStatus.EXPIRED
    return status


def gift_card_effective_status(card: GiftCard, now: datetime) -> GiftCardStatus:
    """Status of ``card`` at ``now``; only ``active`` can lapse into ``expired``."""

    status = GiftCardStatus(card.status)
    if status is GiftCardStatus.ACTIVE and card.expires_at is not None and now > card.expires_at:
        return GiftCardStatus.EXPIRED
    return status


def voucher_expired_clause(now: datetime):
    return and_(
        Voucher.status == VoucherStatus.APPROVED,
        Voucher.valid_until.is_not(None),
        Voucher.valid_until < now,
    )


def gift_card_expired_clause(now: datetime):
    return and_(
        GiftCard.status == GiftCardStatus.ACTIVE,
        GiftCard.expires_at.is_not(None),
        GiftCard.expires_at < now,
    )


def voucher_status_expression(now: datetime):
    """SQL twin of :func:`voucher_effective_status` for filtering and grouping."""

    return case(
        (voucher_expired_clause(now), literal(VoucherStatus.EXPIRED, Voucher.status.type)),
        else_=Voucher.status,
    )


def gift_card_status_expression(now: datetime):
    """SQL twin of :func:`gift_card_effective_status`."""

    return case(
        (gift_card_expired_clause(now), literal(GiftCardStatus.EXPIRED, GiftCard.status.type)),
        else_=GiftCard.status,
    )


def resolve_voucher_expiry(session: Session, voucher: Voucher, now: datetime) -> bool:
    """Persist a lazily-detected expiry. Returns True when the row changed."""

    if voucher_effective_status(voucher, now) is not VoucherStatus.EXPIRED:
        return False
    if VoucherStatus(voucher.status) is VoucherStatus.EXPIRED:
        return False

    result = session.execute(
        update(Voucher)
        .where(Voucher.id == voucher.id, voucher_expired_clause(now))
        .values(status=VoucherStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.refresh(voucher)
    if result.rowcount:
        logger.info("voucher %s expired (valid_until=%s)", voucher.id, voucher.valid_until)
    return bool(result.rowcount)


def resolve_gift_card_expiry(session: Session, card: GiftCard, now: datetime) -> bool:
    """Persist a lazily-detected gift card expiry. Returns True when the row changed."""

    if gift_card_effective_status(card, now) is not GiftCardStatus.EXPIRED:
        return False
    if GiftCardStatus(card.status) is GiftCardStatus.EXPIRED:
        return False

    result = session.execute(
        update(GiftCard)
        .where(GiftCard.id == card.id, gift_card_expired_clause(now))
        .values(status=GiftCardStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.refresh(card)
    if result.rowcount:
        logger.info("gift card %s expired (expires_at=%s)", card.id, card.expires_at)
    return bool(result.rowcount)


def run_expiry_sweep(session: Session, *, current_time: datetime | None = None) -> dict[str, int]:
    """Persist every expiry that has already happened.

    Safe to re-run: rows that are already terminal do not match the
    conditional updates. Returns summary statistics useful for logging/testing.
    """

    now = resolve_now(current_time)

    vouchers = session.execute(
        update(Voucher)
        .where(voucher_expired_clause(now))
        .values(status=VoucherStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    cards = session.execute(
        update(GiftCard)
        .where(gift_card_expired_clause(now))
        .values(status=GiftCardStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    return {
        "vouchers_expired": vouchers.rowcount or 0,
        "gift_cards_expired": cards.rowcount or 0,
    }
