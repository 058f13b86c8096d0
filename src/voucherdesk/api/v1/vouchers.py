"""Compensation voucher endpoints."""

from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...models import VoucherStatus
from ...schemas import VoucherIssue, VoucherRead, VoucherRedeem, VoucherRedemptionReceipt, VoucherReview
from ...services import voucher_service
from ...services.errors import InstrumentError
from .deps import get_tenant_id
from .errors import instrument_http_error, storage_http_error

router = APIRouter(prefix="/vouchers", tags=["vouchers"])

_VOUCHER_EXAMPLE = {
    "id": "11111111-1111-1111-1111-111111111111",
    "code": "COMP-7F3K9Q2M",
    "customer": {
        "id": "22222222-2222-2222-2222-222222222222",
        "name": "Bolormaa D.",
        "phone": "+97699112233",
        "email": None,
    },
    "policy_id": "33333333-3333-3333-3333-333333333333",
    "compensation_type": "percent_discount",
    "compensation_value": "20.00",
    "max_discount_amount": "5000.00",
    "complaint_category": "delivery_delay",
    "complaint_summary": "Order arrived 90 minutes late.",
    "status": "pending_approval",
    "valid_until": "2026-11-18T09:00:00",
    "approved_by": None,
    "admin_notes": None,
    "redeemed_at": None,
    "redeemed_order_id": None,
    "created_at": "2026-10-19T09:00:00",
    "updated_at": "2026-10-19T09:00:00",
}


@router.post(
    "",
    response_model=VoucherRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a compensation voucher",
    responses={
        201: {"description": "Voucher issued", "content": {"application/json": {"example": _VOUCHER_EXAMPLE}}},
        404: {"description": "Policy or customer not found"},
    },
)
def issue_voucher(
    payload: VoucherIssue,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> VoucherRead:
    """Issue a voucher to a customer from a compensation policy.

    Example request body::

        {
            "customer_id": "22222222-2222-2222-2222-222222222222",
            "complaint_category": "delivery_delay",
            "complaint_summary": "Order arrived 90 minutes late."
        }
    """

    try:
        voucher = voucher_service.issue_voucher(
            db,
            tenant_id=tenant_id,
            customer_id=payload.customer_id,
            policy_id=payload.policy_id,
            complaint_category=payload.complaint_category,
            complaint_summary=payload.complaint_summary,
        )
        db.commit()
        db.refresh(voucher)
        return VoucherRead.model_validate(voucher)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get("", response_model=List[VoucherRead], summary="List vouchers")
def list_vouchers(
    *,
    status_filter: Optional[VoucherStatus] = Query(None, alias="status", description="Filter by effective status"),
    customer_id: Optional[UUID] = Query(None, description="Filter by customer UUID"),
    search: Optional[str] = Query(None, max_length=64, description="Substring of the voucher code"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> List[VoucherRead]:
    """Fetch vouchers newest first; lapsed vouchers are reported (and stored) as expired."""

    try:
        vouchers = voucher_service.list_vouchers(
            db,
            tenant_id=tenant_id,
            status=status_filter,
            customer_id=customer_id,
            search=search,
            limit=limit,
            offset=offset,
        )
        response = [VoucherRead.model_validate(voucher) for voucher in vouchers]
        db.commit()
        return response
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get("/summary", response_model=Dict[str, int], summary="Voucher counts per status")
def voucher_summary(
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    try:
        return voucher_service.voucher_status_counts(db, tenant_id=tenant_id)
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.get(
    "/{voucher_id}",
    response_model=VoucherRead,
    summary="Get a voucher",
    responses={404: {"description": "Voucher not found"}},
)
def get_voucher(
    voucher_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> VoucherRead:
    try:
        voucher = voucher_service.get_voucher(db, tenant_id=tenant_id, voucher_id=voucher_id)
        response = VoucherRead.model_validate(voucher)
        db.commit()
        return response
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


def _review(db: Session, tenant_id: UUID, voucher_id: UUID, payload: VoucherReview, approve: bool) -> VoucherRead:
    try:
        if approve:
            voucher = voucher_service.approve_voucher(
                db,
                tenant_id=tenant_id,
                voucher_id=voucher_id,
                approved_by=payload.reviewer,
                admin_notes=payload.admin_notes,
            )
        else:
            voucher = voucher_service.reject_voucher(
                db,
                tenant_id=tenant_id,
                voucher_id=voucher_id,
                rejected_by=payload.reviewer,
                admin_notes=payload.admin_notes,
            )
        db.commit()
        db.refresh(voucher)
        return VoucherRead.model_validate(voucher)
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc


@router.post(
    "/{voucher_id}/approve",
    response_model=VoucherRead,
    summary="Approve a pending voucher",
    responses={
        404: {"description": "Voucher not found"},
        409: {"description": "Voucher is no longer pending"},
    },
)
def approve_voucher(
    voucher_id: UUID,
    payload: VoucherReview,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> VoucherRead:
    """Approve a voucher awaiting a manager's decision.

    Example request body::

        {"reviewer": "Store manager", "admin_notes": "Confirmed with courier."}
    """

    return _review(db, tenant_id, voucher_id, payload, approve=True)


@router.post(
    "/{voucher_id}/reject",
    response_model=VoucherRead,
    summary="Reject a pending voucher",
    responses={
        404: {"description": "Voucher not found"},
        409: {"description": "Voucher is no longer pending"},
    },
)
def reject_voucher(
    voucher_id: UUID,
    payload: VoucherReview,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> VoucherRead:
    """Reject a voucher; rejected vouchers can never be approved later."""

    return _review(db, tenant_id, voucher_id, payload, approve=False)


@router.post(
    "/{voucher_id}/redeem",
    response_model=VoucherRedemptionReceipt,
    summary="Redeem an approved voucher",
    responses={
        200: {
            "description": "Voucher redeemed",
            "content": {
                "application/json": {
                    "example": {
                        "voucher": {
                            **_VOUCHER_EXAMPLE,
                            "status": "redeemed",
                            "approved_by": "Store manager",
                            "redeemed_at": "2026-10-21T12:30:00",
                            "redeemed_order_id": "44444444-4444-4444-4444-444444444444",
                        },
                        "applied_amount": "2000.00",
                    }
                }
            },
        },
        404: {"description": "Voucher not found"},
        409: {"description": "Voucher not approved, or already redeemed"},
        410: {"description": "Voucher expired"},
    },
)
def redeem_voucher(
    voucher_id: UUID,
    payload: VoucherRedeem,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> VoucherRedemptionReceipt:
    """Consume the voucher against an order and return the discount to apply.

    Example request body::

        {
            "order_id": "44444444-4444-4444-4444-444444444444",
            "order_subtotal": "10000"
        }
    """

    try:
        outcome = voucher_service.redeem_voucher(
            db,
            tenant_id=tenant_id,
            voucher_id=voucher_id,
            order_id=payload.order_id,
            order_subtotal=payload.order_subtotal,
        )
        db.commit()
        db.refresh(outcome.voucher)
        return VoucherRedemptionReceipt(
            voucher=VoucherRead.model_validate(outcome.voucher),
            applied_amount=outcome.applied_amount,
        )
    except InstrumentError as exc:
        raise instrument_http_error(db, exc) from exc
    except SQLAlchemyError as exc:
        raise storage_http_error(db, exc) from exc
