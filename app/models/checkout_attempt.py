from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON


class AttemptStatus(str, Enum):
    submitting = "submitting"
    committed = "committed"
    failed = "failed"


class CheckoutAttempt(SQLModel, table=True):
    """One row per client-generated idempotency key."""
    __tablename__ = "checkout_attempt"

    id: Optional[int] = Field(default=None, primary_key=True)
    idempotency_key: str = Field(index=True, unique=True)
    buyer_id: int = Field(foreign_key="user.id", index=True)

    status: str = Field(default=AttemptStatus.submitting.value)
    error: Optional[str] = None
    order_ids: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    payment_ref: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
