"""Domain logic for gift card issuance and balance decrements."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import case, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..models import Customer, GiftCard, GiftCardStatus, GiftCardTransaction, GiftCardTransactionType
from ..utils.codes import normalize_code
from ..utils.datetime import as_naive_utc, resolve_now
from ..utils.money import ZERO, is_cent_precise, to_money
from .errors import (
    CustomerNotFound,
    Disabled,
    DuplicateCode,
    Expired,
    IdempotencyConflict,
    InsufficientBalance,
    InvalidAmount,
    InvalidExpiry,
    InvalidTransition,
    NotFound,
)
from .expiry_service import gift_card_effective_status, gift_card_status_expression, resolve_gift_card_expiry

logger = logging.getLogger(__name__)


@dataclass
class GiftCardApplication:
    """Result of debiting a card, or of replaying an earlier debit."""

    card: GiftCard
    transaction: GiftCardTransaction
    applied_amount: Decimal
    new_balance: Decimal
    replayed: bool = False


def _card_query(tenant_id: UUID):
    return (
        select(GiftCard)
        .options(joinedload(GiftCard.customer))
        .where(GiftCard.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )


def _ensure_card(session: Session, tenant_id: UUID, card_id: UUID) -> GiftCard:
    card = session.execute(_card_query(tenant_id).where(GiftCard.id == card_id)).scalar_one_or_none()
    if card is None:
        raise NotFound(f"Gift card {card_id} not found")
    return card


def _ensure_customer(session: Session, tenant_id: UUID, customer_id: UUID) -> Customer:
    stmt = select(Customer).where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
    customer = session.execute(stmt).scalar_one_or_none()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return customer


def _positive_amount(amount, label: str) -> Decimal:
    if amount is None:
        raise InvalidAmount(f"{label} is required.")
    if not is_cent_precise(amount):
        raise InvalidAmount(f"{label} must be a whole number of cents.", amount=amount)
    value = to_money(amount)
    if value <= ZERO:
        raise InvalidAmount(f"{label} must be greater than zero.")
    return value


def _find_keyed_transaction(session: Session, tenant_id: UUID, key: str) -> Optional[GiftCardTransaction]:
    stmt = select(GiftCardTransaction).where(
        GiftCardTransaction.tenant_id == tenant_id,
        GiftCardTransaction.idempotency_key == key,
    )
    return session.execute(stmt).scalar_one_or_none()


def _replay(
    session: Session,
    tenant_id: UUID,
    card_id: UUID,
    amount: Decimal,
    previous: GiftCardTransaction,
) -> GiftCardApplication:
    previous_amount = to_money(-previous.amount_delta)
    if previous.gift_card_id != card_id or previous_amount != amount:
        raise IdempotencyConflict(
            f"Idempotency key {previous.idempotency_key} was already used for a different request.",
            idempotency_key=previous.idempotency_key,
        )
    card = _ensure_card(session, tenant_id, card_id)
    logger.info("gift card %s apply replayed (key=%s)", card.code, previous.idempotency_key)
    return GiftCardApplication(
        card=card,
        transaction=previous,
        applied_amount=previous_amount,
        new_balance=to_money(previous.balance_after),
        replayed=True,
    )


def issue_gift_card(
    session: Session,
    *,
    tenant_id: UUID,
    code: str,
    initial_balance: Decimal,
    customer_id: Optional[UUID] = None,
    expires_at: Optional[datetime] = None,
    current_time: datetime | None = None,
) -> GiftCard:
    """Create an active card holding ``initial_balance``."""

    balance = _positive_amount(initial_balance, "Initial balance")
    code = normalize_code(code)
    if not code:
        raise InvalidAmount("Gift card code must not be blank.")
    now = resolve_now(current_time)
    expires_at = as_naive_utc(expires_at)
    if expires_at is not None and expires_at <= now:
        raise InvalidExpiry("Gift card expiry must be in the future.", expires_at=expires_at)

    taken = session.execute(
        select(GiftCard.id).where(GiftCard.tenant_id == tenant_id, GiftCard.code == code).limit(1)
    ).scalar_one_or_none()
    if taken is not None:
        raise DuplicateCode(f"Gift card code {code} already exists.", code=code)

    customer = _ensure_customer(session, tenant_id, customer_id) if customer_id else None

    card = GiftCard(
        tenant_id=tenant_id,
        code=code,
        initial_balance=balance,
        current_balance=balance,
        customer=customer,
        status=GiftCardStatus.ACTIVE,
        expires_at=expires_at,
        created_at=now,
        updated_at=now,
    )
    session.add(card)
    try:
        session.flush()
    except IntegrityError as exc:
        raise DuplicateCode(f"Gift card code {code} already exists.", code=code) from exc

    session.add(
        GiftCardTransaction(
            gift_card_id=card.id,
            tenant_id=tenant_id,
            transaction_type=GiftCardTransactionType.ISSUE,
            amount_delta=balance,
            balance_after=balance,
            created_at=now,
        )
    )
    session.flush()
    logger.info("gift card %s issued with balance %s", card.code, balance)
    return card


def apply_gift_card(
    session: Session,
    *,
    tenant_id: UUID,
    card_id: UUID,
    amount: Decimal,
    idempotency_key: Optional[str] = None,
    order_id: Optional[UUID] = None,
    current_time: datetime | None = None,
) -> GiftCardApplication:
    """Atomically debit ``amount`` from a card.

    The balance check and the decrement are one conditional UPDATE, so
    concurrent callers can never drive the balance below zero. A repeated
    ``idempotency_key`` returns the recorded result instead of debiting
    twice.

    If a concurrent request with the same key wins the insert race, the
    failed flush leaves the session unusable, so this function rolls it back
    (undoing its own debit) before returning the replay. That rollback also
    discards any other uncommitted work in ``session``: call it as the first
    write of a unit of work, as the routes and the redemption gateway do.
    """

    amount = _positive_amount(amount, "Amount")
    now = resolve_now(current_time)
    card = _ensure_card(session, tenant_id, card_id)

    if idempotency_key:
        previous = _find_keyed_transaction(session, tenant_id, idempotency_key)
        if previous is not None:
            return _replay(session, tenant_id, card_id, amount, previous)

    result = session.execute(
        update(GiftCard)
        .where(
            GiftCard.id == card_id,
            GiftCard.tenant_id == tenant_id,
            GiftCard.status == GiftCardStatus.ACTIVE,
            GiftCard.current_balance >= amount,
            or_(GiftCard.expires_at.is_(None), GiftCard.expires_at >= now),
        )
        .values(
            current_balance=GiftCard.current_balance - amount,
            status=case(
                (GiftCard.current_balance == amount, literal(GiftCardStatus.REDEEMED, GiftCard.status.type)),
                else_=literal(GiftCardStatus.ACTIVE, GiftCard.status.type),
            ),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if not result.rowcount:
        if idempotency_key:
            previous = _find_keyed_transaction(session, tenant_id, idempotency_key)
            if previous is not None:
                return _replay(session, tenant_id, card_id, amount, previous)
        _raise_apply_failure(session, tenant_id, card_id, amount, now)

    session.refresh(card)
    transaction = GiftCardTransaction(
        gift_card_id=card.id,
        tenant_id=tenant_id,
        transaction_type=GiftCardTransactionType.REDEMPTION,
        amount_delta=-amount,
        balance_after=card.current_balance,
        order_id=order_id,
        idempotency_key=idempotency_key,
        created_at=now,
    )
    session.add(transaction)
    try:
        session.flush()
    except IntegrityError:
        if not idempotency_key:
            raise
        session.rollback()
        previous = _find_keyed_transaction(session, tenant_id, idempotency_key)
        if previous is None:
            raise
        return _replay(session, tenant_id, card_id, amount, previous)

    logger.info(
        "gift card %s debited %s (balance=%s, status=%s)",
        card.code,
        amount,
        card.current_balance,
        GiftCardStatus(card.status).value,
    )
    return GiftCardApplication(
        card=card,
        transaction=transaction,
        applied_amount=amount,
        new_balance=to_money(card.current_balance),
    )


def _raise_apply_failure(session: Session, tenant_id: UUID, card_id: UUID, amount: Decimal, now: datetime) -> None:
    card = _ensure_card(session, tenant_id, card_id)
    status = gift_card_effective_status(card, now)

    if status is GiftCardStatus.DISABLED:
        raise Disabled(f"Gift card {card.code} is disabled.")
    if status is GiftCardStatus.EXPIRED:
        resolve_gift_card_expiry(session, card, now)
        raise Expired(f"Gift card {card.code} expired at {card.expires_at}.")
    raise InsufficientBalance(
        f"Gift card {card.code} has insufficient balance ({to_money(card.current_balance)}).",
        current_balance=to_money(card.current_balance),
        requested_amount=amount,
    )


def disable_gift_card(
    session: Session,
    *,
    tenant_id: UUID,
    card_id: UUID,
    current_time: datetime | None = None,
) -> GiftCard:
    """Administratively stop an active card from being used."""

    now = resolve_now(current_time)
    result = session.execute(
        update(GiftCard)
        .where(
            GiftCard.id == card_id,
            GiftCard.tenant_id == tenant_id,
            GiftCard.status == GiftCardStatus.ACTIVE,
            or_(GiftCard.expires_at.is_(None), GiftCard.expires_at >= now),
        )
        .values(status=GiftCardStatus.DISABLED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    card = _ensure_card(session, tenant_id, card_id)
    if not result.rowcount:
        status = gift_card_effective_status(card, now)
        expired = status is GiftCardStatus.EXPIRED and resolve_gift_card_expiry(session, card, now)
        raise InvalidTransition(
            f"Gift card {card.code} is {status.value} and cannot be disabled.",
            retain_changes=expired,
            status=status.value,
        )

    logger.info("gift card %s disabled", card.code)
    return card


def assign_customer(
    session: Session,
    *,
    tenant_id: UUID,
    card_id: UUID,
    customer_id: Optional[UUID],
    current_time: datetime | None = None,
) -> GiftCard:
    """Attach (or with ``None`` detach) a customer to an active card."""

    now = resolve_now(current_time)
    card = _ensure_card(session, tenant_id, card_id)
    status = gift_card_effective_status(card, now)
    if status is not GiftCardStatus.ACTIVE:
        expired = status is GiftCardStatus.EXPIRED and resolve_gift_card_expiry(session, card, now)
        raise InvalidTransition(
            f"Gift card {card.code} is {status.value}; only active cards can be reassigned.",
            retain_changes=expired,
            status=status.value,
        )

    card.customer = _ensure_customer(session, tenant_id, customer_id) if customer_id else None
    card.updated_at = now
    session.flush()
    logger.info("gift card %s assigned to customer %s", card.code, customer_id)
    return card


def get_gift_card(
    session: Session,
    *,
    tenant_id: UUID,
    card_id: UUID,
    current_time: datetime | None = None,
) -> GiftCard:
    """Fetch a card with any lapsed expiry persisted."""

    card = _ensure_card(session, tenant_id, card_id)
    resolve_gift_card_expiry(session, card, resolve_now(current_time))
    return card


def get_gift_card_by_code(
    session: Session,
    *,
    tenant_id: UUID,
    code: str,
    current_time: datetime | None = None,
) -> GiftCard:
    card = session.execute(
        _card_query(tenant_id).where(GiftCard.code == normalize_code(code))
    ).scalar_one_or_none()
    if card is None:
        raise NotFound(f"Gift card {code} not found")
    resolve_gift_card_expiry(session, card, resolve_now(current_time))
    return card


def list_gift_cards(
    session: Session,
    *,
    tenant_id: UUID,
    status: Optional[GiftCardStatus] = None,
    customer_id: Optional[UUID] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    current_time: datetime | None = None,
) -> Sequence[GiftCard]:
    """Retrieve cards newest first, filtering on effective status."""

    now = resolve_now(current_time)
    stmt = _card_query(tenant_id).order_by(GiftCard.created_at.desc()).offset(offset).limit(limit)

    if status is not None:
        stmt = stmt.where(gift_card_status_expression(now) == status)
    if customer_id:
        stmt = stmt.where(GiftCard.customer_id == customer_id)
    if search:
        stmt = stmt.where(GiftCard.code.ilike(f"%{search.strip()}%"))

    cards = session.execute(stmt).unique().scalars().all()
    for card in cards:
        resolve_gift_card_expiry(session, card, now)
    return cards


def list_transactions(
    session: Session,
    *,
    tenant_id: UUID,
    card_id: UUID,
    limit: int = 100,
    offset: int = 0,
) -> Sequence[GiftCardTransaction]:
    """Return a card's balance movements, newest first."""

    _ensure_card(session, tenant_id, card_id)
    stmt = (
        select(GiftCardTransaction)
        .where(
            GiftCardTransaction.gift_card_id == card_id,
            GiftCardTransaction.tenant_id == tenant_id,
        )
        .order_by(GiftCardTransaction.transaction_id.desc())
        .offset(offset)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()
