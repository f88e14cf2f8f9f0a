from typing import Dict, List, Optional
from pydantic import BaseModel

from app.config import settings
from app.models.coupon import Coupon
from app.services.seller_partition import SellerPartition

DELIVERY_FEE_PER_ORDER = settings.delivery_fee_per_order


class PartitionTotals(BaseModel):
    seller_id: int
    subtotal: float
    delivery_fee: float
    discount: float
    total: float
    coupon_id: Optional[int] = None


class CartPricing(BaseModel):
    partitions: List[PartitionTotals]
    grand_subtotal: float
    grand_delivery: float
    grand_discount: float
    grand_total: float
    coupon_id: Optional[int] = None
    discounted_seller_id: Optional[int] = None

    def for_seller(self, seller_id: int) -> PartitionTotals:
        for totals in self.partitions:
            if totals.seller_id == seller_id:
                return totals
        raise KeyError(seller_id)


def coupon_targets(coupon: Optional[Coupon], seller_id: int, partition_count: int) -> bool:
    """Whether ``coupon`` discounts the partition of ``seller_id``."""
    if coupon is None:
        return False
    if coupon.is_platform_wide:
        # only a single-seller cart
        return partition_count == 1
    return coupon.seller_id == seller_id


def price_partition(
    partition: SellerPartition,
    coupon: Optional[Coupon] = None,
    partition_count: int = 1,
    delivery_fee: float = DELIVERY_FEE_PER_ORDER,
) -> PartitionTotals:
    subtotal = partition.subtotal

    discount = 0
    coupon_id = None
    if coupon_targets(coupon, partition.seller_id, partition_count):
        discount = subtotal * coupon.discount_percent / 100
        coupon_id = coupon.id

    return PartitionTotals(
        seller_id=partition.seller_id,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        discount=discount,
        total=max(0, subtotal - discount + delivery_fee),
        coupon_id=coupon_id,
    )


def price_cart(
    partitions: Dict[int, SellerPartition],
    coupon: Optional[Coupon] = None,
    delivery_fee: float = DELIVERY_FEE_PER_ORDER,
) -> CartPricing:
    """
    Price every seller partition and the cart as a whole.

    Each seller partition pays one delivery fee. A coupon discounts at most
    one partition. Amounts are left unrounded; see ``format_naira``.
    """
    count = len(partitions)
    totals = [
        price_partition(p, coupon, partition_count=count, delivery_fee=delivery_fee)
        for p in partitions.values()
    ]

    grand_subtotal = sum(t.subtotal for t in totals)
    grand_delivery = sum(t.delivery_fee for t in totals)

    discounted = [t for t in totals if t.coupon_id is not None]
    grand_discount = discounted[0].discount if discounted else 0

    return CartPricing(
        partitions=totals,
        grand_subtotal=grand_subtotal,
        grand_delivery=grand_delivery,
        grand_discount=grand_discount,
        grand_total=max(0, grand_subtotal - grand_discount + grand_delivery),
        coupon_id=discounted[0].coupon_id if discounted else None,
        discounted_seller_id=discounted[0].seller_id if discounted else None,
    )


def format_naira(amount: float) -> str:
    """Display an amount as whole Naira with grouping separators, e.g. ₦2,500."""
    return f"{settings.currency_symbol}{round(amount):,}"
