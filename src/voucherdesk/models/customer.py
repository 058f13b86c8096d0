"""Customer model, owned by the surrounding CRM and read here."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class Customer(Base):
    """A store customer who may hold vouchers and gift cards."""

    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    name = Column(String, nullable=False)
    phone = Column(String)
    email = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    vouchers = relationship("Voucher", back_populates="customer")
    gift_cards = relationship("GiftCard", back_populates="customer")
