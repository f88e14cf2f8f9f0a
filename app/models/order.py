from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional
from datetime import datetime

from app.constants.order_status import OrderStatus
from app.models.order_item import OrderItem

class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: int = Field(foreign_key="user.id", index=True)
    seller_id: int = Field(foreign_key="user.id", index=True)

    subtotal: float
    discount: float = 0
    delivery_fee: float
    total: float

    coupon_id: Optional[int] = Field(default=None, foreign_key="coupon.id")
    status: str = Field(default=OrderStatus.pending.value)
    payment_ref: Optional[str] = None
    checkout_attempt_id: Optional[int] = Field(default=None, foreign_key="checkout_attempt.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(back_populates="order")
