# app/schemas/checkout_schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional

from app.schemas.cart_schemas import CartLineOut, RemovedItem


class PricingSummary(BaseModel):
    subtotal: float
    delivery: float
    discount: float
    total: float
    # display strings, rounded to whole Naira
    subtotal_display: str
    delivery_display: str
    discount_display: str
    total_display: str


class AppliedCouponOut(BaseModel):
    coupon_id: int
    code: str
    discount_percent: float
    seller_id: Optional[int] = None


class SellerPartitionOut(BaseModel):
    seller_id: int
    items: List[CartLineOut]
    subtotal: float
    delivery_fee: float
    discount: float
    total: float
    total_display: str


class CheckoutSummary(BaseModel):
    partitions: List[SellerPartitionOut]
    removed_items: List[RemovedItem]
    applied_coupon: Optional[AppliedCouponOut] = None
    # why an applied coupon no longer discounts this cart
    coupon_notice: Optional[str] = None
    summary: PricingSummary


class CartResponse(BaseModel):
    items: List[CartLineOut]
    removed_items: List[RemovedItem]
    summary: PricingSummary
    coupon_notice: Optional[str] = None


class ApplyCouponRequest(BaseModel):
    code: str


class PlaceOrderRequest(BaseModel):
    idempotency_key: str = Field(min_length=1, max_length=128)
    acknowledge_removed: bool = False


class PlacedOrder(BaseModel):
    order_id: int
    seller_id: int
    subtotal: float
    discount: float
    delivery_fee: float
    total: float
    status: str
    item_count: int


class PlaceOrderResponse(BaseModel):
    message: str
    idempotency_key: str
    payment_ref: Optional[str] = None
    replayed: bool = False
    orders: List[PlacedOrder]
    grand_total: float
    grand_total_display: str
