from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional

from app.constants.order_status import OrderStatus


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    price: float
    quantity: int
    line_total: float


class OrderOut(BaseModel):
    order_id: int
    buyer_id: int
    seller_id: int
    status: str
    subtotal: float
    discount: float
    delivery_fee: float
    total: float
    total_display: str
    coupon_id: Optional[int] = None
    payment_ref: Optional[str] = None
    created_at: datetime
    items: List[OrderItemOut]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
