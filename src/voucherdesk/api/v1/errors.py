"""Translate ledger failures into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...services.errors import InstrumentError, StorageUnavailable

logger = logging.getLogger(__name__)


def instrument_http_error(db: Session, exc: InstrumentError) -> HTTPException:
    """Close the unit of work for a failed operation and build the HTTP error.

    Errors flagged ``retain_changes`` (a lazily detected expiry) commit what
    the operation already wrote; everything else is rolled back.
    """

    if exc.retain_changes:
        try:
            db.commit()
        except SQLAlchemyError as commit_exc:
            return storage_http_error(db, commit_exc)
    else:
        db.rollback()

    logger.info("instrument operation refused: %s (%s)", exc.kind, exc.detail)
    return HTTPException(status_code=exc.status_code, detail=exc.as_detail())


def storage_http_error(db: Session, exc: SQLAlchemyError) -> HTTPException:
    db.rollback()
    logger.exception("instrument store failure", exc_info=exc)
    error = StorageUnavailable.wrap(exc)
    return HTTPException(status_code=error.status_code, detail=error.as_detail())
