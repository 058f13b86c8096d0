"""Gift card endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...models import GiftCardStatus
from ...schemas import (
    GiftCardApply,
    GiftCardApplyReceipt,
    GiftCardAssign,
    GiftCardIssue,
    GiftCardRead,
    GiftCardTransactionRead,
)
from ...services import gift_card_service
from ...services.errors import InstrumentError
from .deps import get_tenant_id
from .errors import instrument_http_error, storage_http_error

router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


@router.post(
    "",
    response_model=GiftCardRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a gift card",
    responses={
        201: {
            "description": "Gift card issued",
            "content": {
                "application/json": {
                    "example": {
                        "id": "55555555-5555-5555-5555-555555555555",
                        "code": "GIFT-2026-0042",
                        "initial_balance": "30000.00",
                        "current_balance": "30000.00",
                        "customer": None,
                        "status": "active",
                        "expires_at": "2027-10-19T00:00:00",
                        "created_at": "2026-10-19T09:00:00",
                        "updated_at": "2026-10-19T09:00:00",
                    }
                }
            },
        },
        404: {"description": "Customer not found"},
        409: {"description": "Code already used by this store"},
        422: {"description": "Initial balance not positive"},
    },
)
def issue_gift_card(
    payload: GiftCardIssue,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardRead:
    """Create a card with its full balance available.

    Example request body::

        {"code": "GIFT-2026-0042", "initial_balance": "30000", "expires_at": "2027-10-19T00:00:00Z"}
    """

    try:
        card = gift_card_service.issue_gift_card(
            db,
            tenant_id=tenant_id,
            code=payload.code,
            initial_balance=payload.initial_balance,
            customer_id=payload.customer_id,
            expires_at=payload.expires_at,
        )
        db.commit()
        db.refresh(card)
        return GiftCardRead.model_validate(card)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get("", response_model=List[GiftCardRead], summary="List gift cards")
def list_gift_cards(
    *,
    status_filter: Optional[GiftCardStatus] = Query(None, alias="status", description="Filter by effective status"),
    customer_id: Optional[UUID] = Query(None, description="Filter by customer UUID"),
    search: Optional[str] = Query(None, max_length=100, description="Substring of the card code"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> List[GiftCardRead]:
    try:
        cards = gift_card_service.list_gift_cards(
            db,
            tenant_id=tenant_id,
            status=status_filter,
            customer_id=customer_id,
            search=search,
            limit=limit,
            offset=offset,
        )
        response = [GiftCardRead.model_validate(card) for card in cards]
        db.commit()
        return response
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get("/by-code/{code}", response_model=GiftCardRead, summary="Look up a gift card by code")
def get_gift_card_by_code(
    code: str,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardRead:
    """Checkout lookup for a card whose code the customer typed in."""

    try:
        card = gift_card_service.get_gift_card_by_code(db, tenant_id=tenant_id, code=code)
        response = GiftCardRead.model_validate(card)
        db.commit()
        return response
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get("/{card_id}", response_model=GiftCardRead, summary="Get a gift card")
def get_gift_card(
    card_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardRead:
    try:
        card = gift_card_service.get_gift_card(db, tenant_id=tenant_id, card_id=card_id)
        response = GiftCardRead.model_validate(card)
        db.commit()
        return response
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.post(
    "/{card_id}/apply",
    response_model=GiftCardApplyReceipt,
    summary="Debit a gift card",
    responses={
        404: {"description": "Gift card not found"},
        409: {"description": "Card disabled, or idempotency key reused for another request"},
        410: {"description": "Card expired"},
        422: {"description": "Insufficient balance or invalid amount"},
    },
)
def apply_gift_card(
    card_id: UUID,
    payload: GiftCardApply,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=128),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardApplyReceipt:
    """Subtract ``amount`` from the card balance.

    The key may be sent as the ``Idempotency-Key`` header or in the body;
    retries carrying the same key return the original receipt.

    Example request body::

        {"amount": "12000", "idempotency_key": "checkout-7781-attempt"}
    """

    try:
        outcome = gift_card_service.apply_gift_card(
            db,
            tenant_id=tenant_id,
            card_id=card_id,
            amount=payload.amount,
            idempotency_key=payload.idempotency_key or idempotency_key,
            order_id=payload.order_id,
        )
        db.commit()
        db.refresh(outcome.card)
        return GiftCardApplyReceipt(
            card=GiftCardRead.model_validate(outcome.card),
            applied_amount=outcome.applied_amount,
            new_balance=outcome.new_balance,
            replayed=outcome.replayed,
        )
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.post(
    "/{card_id}/disable",
    response_model=GiftCardRead,
    summary="Disable an active gift card",
    responses={404: {"description": "Gift card not found"}, 409: {"description": "Card is not active"}},
)
def disable_gift_card(
    card_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardRead:
    try:
        card = gift_card_service.disable_gift_card(db, tenant_id=tenant_id, card_id=card_id)
        db.commit()
        db.refresh(card)
        return GiftCardRead.model_validate(card)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.put("/{card_id}/customer", response_model=GiftCardRead, summary="Assign a gift card to a customer")
def assign_gift_card_customer(
    card_id: UUID,
    payload: GiftCardAssign,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> GiftCardRead:
    try:
        card = gift_card_service.assign_customer(
            db,
            tenant_id=tenant_id,
            card_id=card_id,
            customer_id=payload.customer_id,
        )
        db.commit()
        db.refresh(card)
        return GiftCardRead.model_validate(card)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get(
    "/{card_id}/transactions",
    response_model=List[GiftCardTransactionRead],
    summary="Gift card balance history",
)
def list_gift_card_transactions(
    card_id: UUID,
    limit: int = Query(100, ge=1, le=200, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> List[GiftCardTransactionRead]:
    try:
        transactions = gift_card_service.list_transactions(
            db,
            tenant_id=tenant_id,
            card_id=card_id,
            limit=limit,
            offset=offset,
        )
        return [GiftCardTransactionRead.model_validate(item) for item in transactions]
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc
