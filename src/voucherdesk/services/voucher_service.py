"""Domain logic for the compensation voucher lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, joinedload

from ..core.config import get_settings
from ..models import CompensationPolicy, CompensationType, ComplaintCategory, Customer, Voucher, VoucherStatus
from ..utils.codes import generate_code, normalize_code
from ..utils.datetime import days_from, resolve_now
from ..utils.money import HUNDRED, ZERO, is_cent_precise, to_money
from .errors import (
    AlreadyRedeemed,
    CustomerNotFound,
    DuplicateCode,
    Expired,
    InvalidAmount,
    InvalidTransition,
    NotFound,
    PolicyNotFound,
)
from .expiry_service import (
    resolve_voucher_expiry,
    voucher_effective_status,
    voucher_expired_clause,
    voucher_status_expression,
)

logger = logging.getLogger(__name__)

AUTO_APPROVER = "auto-approve"
_CODE_ATTEMPTS = 5


@dataclass
class VoucherRedemption:
    """Outcome of a successful redemption.

    ``applied_amount`` is None for free shipping / free item vouchers, whose
    value is priced by the order component.
    """

    voucher: Voucher
    applied_amount: Optional[Decimal]


def _voucher_query(tenant_id: UUID):
    return (
        select(Voucher)
        .options(joinedload(Voucher.customer), joinedload(Voucher.policy))
        .where(Voucher.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )


def _ensure_voucher(session: Session, tenant_id: UUID, voucher_id: UUID) -> Voucher:
    voucher = session.execute(_voucher_query(tenant_id).where(Voucher.id == voucher_id)).scalar_one_or_none()
    if voucher is None:
        raise NotFound(f"Voucher {voucher_id} not found")
    return voucher


def _ensure_customer(session: Session, tenant_id: UUID, customer_id: UUID) -> Customer:
    stmt = select(Customer).where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
    customer = session.execute(stmt).scalar_one_or_none()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return customer


def _resolve_policy(
    session: Session,
    tenant_id: UUID,
    *,
    policy_id: Optional[UUID],
    complaint_category: Optional[ComplaintCategory],
) -> CompensationPolicy:
    stmt = select(CompensationPolicy).where(
        CompensationPolicy.tenant_id == tenant_id,
        CompensationPolicy.is_active.is_(True),
    )
    if policy_id is not None:
        stmt = stmt.where(CompensationPolicy.id == policy_id)
    elif complaint_category is not None:
        stmt = stmt.where(CompensationPolicy.complaint_category == complaint_category)
    else:
        raise PolicyNotFound("A policy id or complaint category is required.")

    policy = session.execute(stmt).scalar_one_or_none()
    if policy is None:
        raise PolicyNotFound(f"No active compensation policy for {policy_id or complaint_category}")
    return policy


def _unique_code(session: Session, tenant_id: UUID, prefix: str) -> str:
    for _ in range(_CODE_ATTEMPTS):
        code = generate_code(prefix)
        taken = session.execute(
            select(Voucher.id).where(Voucher.tenant_id == tenant_id, Voucher.code == code).limit(1)
        ).scalar_one_or_none()
        if taken is None:
            return code
    raise DuplicateCode(f"Could not allocate a unique voucher code after {_CODE_ATTEMPTS} attempts.")


def compute_discount(voucher: Voucher, order_subtotal: Decimal) -> Optional[Decimal]:
    """Discount ``voucher`` grants on an order of ``order_subtotal``."""

    subtotal = to_money(order_subtotal)
    value = to_money(voucher.compensation_value or ZERO)
    compensation_type = CompensationType(voucher.compensation_type)

    if compensation_type is CompensationType.PERCENT_DISCOUNT:
        discount = to_money(subtotal * value / HUNDRED)
        if voucher.max_discount_amount is not None:
            discount = min(discount, to_money(voucher.max_discount_amount))
        return discount
    if compensation_type is CompensationType.FIXED_DISCOUNT:
        return min(value, subtotal)
    return None


def issue_voucher(
    session: Session,
    *,
    tenant_id: UUID,
    customer_id: UUID,
    policy_id: Optional[UUID] = None,
    complaint_category: Optional[ComplaintCategory] = None,
    complaint_summary: Optional[str] = None,
    current_time: datetime | None = None,
) -> Voucher:
    """Create a voucher from a compensation policy.

    Auto-approving policies run the approve transition straight away, so the
    voucher still passes through ``pending_approval``.
    """

    settings = get_settings()
    now = resolve_now(current_time)

    policy = _resolve_policy(session, tenant_id, policy_id=policy_id, complaint_category=complaint_category)
    customer = _ensure_customer(session, tenant_id, customer_id)

    valid_days = policy.valid_days or settings.default_voucher_valid_days
    voucher = Voucher(
        tenant_id=tenant_id,
        customer=customer,
        policy=policy,
        code=_unique_code(session, tenant_id, settings.voucher_code_prefix),
        compensation_type=policy.compensation_type,
        compensation_value=policy.compensation_value,
        max_discount_amount=policy.max_discount_amount,
        complaint_category=complaint_category or policy.complaint_category,
        complaint_summary=complaint_summary,
        status=VoucherStatus.PENDING_APPROVAL,
        valid_until=days_from(now, valid_days),
        created_at=now,
        updated_at=now,
    )
    session.add(voucher)
    session.flush()
    logger.info(
        "voucher %s issued to customer %s (policy=%s, type=%s, value=%s)",
        voucher.code,
        customer.id,
        policy.id,
        policy.compensation_type,
        policy.compensation_value,
    )

    if policy.auto_approve:
        return approve_voucher(
            session,
            tenant_id=tenant_id,
            voucher_id=voucher.id,
            approved_by=AUTO_APPROVER,
            current_time=now,
        )
    return voucher


def _review(
    session: Session,
    *,
    tenant_id: UUID,
    voucher_id: UUID,
    target: VoucherStatus,
    reviewed_by: str,
    admin_notes: Optional[str],
    now: datetime,
) -> Voucher:
    result = session.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher_id,
            Voucher.tenant_id == tenant_id,
            Voucher.status == VoucherStatus.PENDING_APPROVAL,
        )
        .values(status=target, approved_by=reviewed_by, admin_notes=admin_notes, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    voucher = _ensure_voucher(session, tenant_id, voucher_id)
    if not result.rowcount:
        status = voucher_effective_status(voucher, now)
        expired = status is VoucherStatus.EXPIRED and resolve_voucher_expiry(session, voucher, now)
        raise InvalidTransition(
            f"Voucher {voucher.code} is {status.value}, not pending approval.",
            retain_changes=expired,
            status=status.value,
        )

    logger.info("voucher %s %s by %s", voucher.code, target.value, reviewed_by)
    return voucher


def approve_voucher(
    session: Session,
    *,
    tenant_id: UUID,
    voucher_id: UUID,
    approved_by: str,
    admin_notes: Optional[str] = None,
    current_time: datetime | None = None,
) -> Voucher:
    """Move a pending voucher to ``approved``."""

    return _review(
        session,
        tenant_id=tenant_id,
        voucher_id=voucher_id,
        target=VoucherStatus.APPROVED,
        reviewed_by=approved_by,
        admin_notes=admin_notes,
        now=resolve_now(current_time),
    )


def reject_voucher(
    session: Session,
    *,
    tenant_id: UUID,
    voucher_id: UUID,
    rejected_by: str,
    admin_notes: Optional[str] = None,
    current_time: datetime | None = None,
) -> Voucher:
    """Move a pending voucher to ``rejected``; a new voucher must be issued afterwards."""

    return _review(
        session,
        tenant_id=tenant_id,
        voucher_id=voucher_id,
        target=VoucherStatus.REJECTED,
        reviewed_by=rejected_by,
        admin_notes=admin_notes,
        now=resolve_now(current_time),
    )


def redeem_voucher(
    session: Session,
    *,
    tenant_id: UUID,
    voucher_id: UUID,
    order_id: UUID,
    order_subtotal: Decimal,
    current_time: datetime | None = None,
) -> VoucherRedemption:
    """Consume an approved voucher against an order exactly once.

    The status flip is a single conditional UPDATE, so of two concurrent
    attempts only one matches the ``approved`` row; the other is classified
    from the row it then reads back.
    """

    if order_subtotal is None or not is_cent_precise(order_subtotal):
        raise InvalidAmount("Order subtotal must be a whole number of cents.", order_subtotal=order_subtotal)
    if to_money(order_subtotal) < ZERO:
        raise InvalidAmount("Order subtotal must be zero or positive.")

    now = resolve_now(current_time)
    result = session.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher_id,
            Voucher.tenant_id == tenant_id,
            Voucher.status == VoucherStatus.APPROVED,
            or_(Voucher.valid_until.is_(None), Voucher.valid_until >= now),
        )
        .values(
            status=VoucherStatus.REDEEMED,
            redeemed_at=now,
            redeemed_order_id=order_id,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    voucher = _ensure_voucher(session, tenant_id, voucher_id)

    if not result.rowcount:
        status = voucher_effective_status(voucher, now)
        if status is VoucherStatus.REDEEMED:
            raise AlreadyRedeemed(
                f"Voucher {voucher.code} was already redeemed.",
                redeemed_order_id=voucher.redeemed_order_id,
            )
        if status is VoucherStatus.EXPIRED:
            resolve_voucher_expiry(session, voucher, now)
            raise Expired(f"Voucher {voucher.code} expired at {voucher.valid_until}.")
        raise InvalidTransition(
            f"Voucher {voucher.code} is {status.value} and cannot be redeemed.",
            status=status.value,
        )

    applied_amount = compute_discount(voucher, order_subtotal)
    logger.info(
        "voucher %s redeemed on order %s (applied=%s)",
        voucher.code,
        order_id,
        applied_amount,
    )
    return VoucherRedemption(voucher=voucher, applied_amount=applied_amount)


def get_voucher(
    session: Session,
    *,
    tenant_id: UUID,
    voucher_id: UUID,
    current_time: datetime | None = None,
) -> Voucher:
    """Fetch a voucher with any lapsed expiry persisted."""

    voucher = _ensure_voucher(session, tenant_id, voucher_id)
    resolve_voucher_expiry(session, voucher, resolve_now(current_time))
    return voucher


def find_voucher_id_by_code(session: Session, *, tenant_id: UUID, code: str) -> UUID:
    stmt = select(Voucher.id).where(Voucher.tenant_id == tenant_id, Voucher.code == normalize_code(code))
    voucher_id = session.execute(stmt).scalar_one_or_none()
    if voucher_id is None:
        raise NotFound(f"Voucher {code} not found")
    return voucher_id


def list_vouchers(
    session: Session,
    *,
    tenant_id: UUID,
    status: Optional[VoucherStatus] = None,
    customer_id: Optional[UUID] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    current_time: datetime | None = None,
) -> Sequence[Voucher]:
    """Retrieve vouchers newest first, filtering on effective status."""

    now = resolve_now(current_time)
    stmt = _voucher_query(tenant_id).order_by(Voucher.created_at.desc()).offset(offset).limit(limit)

    if status is not None:
        stmt = stmt.where(voucher_status_expression(now) == status)
    if customer_id:
        stmt = stmt.where(Voucher.customer_id == customer_id)
    if search:
        stmt = stmt.where(Voucher.code.ilike(f"%{search.strip()}%"))

    vouchers = session.execute(stmt).unique().scalars().all()
    for voucher in vouchers:
        resolve_voucher_expiry(session, voucher, now)
    return vouchers


def voucher_status_counts(
    session: Session,
    *,
    tenant_id: UUID,
    current_time: datetime | None = None,
) -> dict[str, int]:
    """Count vouchers per effective status, including zero buckets."""

    now = resolve_now(current_time)
    stmt = select(Voucher.status, func.count(Voucher.id)).where(Voucher.tenant_id == tenant_id).group_by(Voucher.status)

    counts = {status.value: 0 for status in VoucherStatus}
    for status, total in session.execute(stmt).all():
        counts[VoucherStatus(status).value] = int(total)

    # Approved rows past valid_until that no sweep has persisted yet.
    lapsed = session.execute(
        select(func.count(Voucher.id)).where(Voucher.tenant_id == tenant_id, voucher_expired_clause(now))
    ).scalar_one()
    counts[VoucherStatus.APPROVED.value] -= lapsed
    counts[VoucherStatus.EXPIRED.value] += lapsed
    return counts
