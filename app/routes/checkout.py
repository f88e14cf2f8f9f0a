from fastapi import APIRouter, Depends
from sqlmodel import Session, select
from app.database import get_session
from app.models.order import Order
from app.models.user import User
from app.routes.cart import line_out, pricing_summary, removed_out
from app.schemas.checkout_schemas import (
    AppliedCouponOut,
    ApplyCouponRequest,
    CheckoutSummary,
    PlacedOrder,
    PlaceOrderRequest,
    PlaceOrderResponse,
    SellerPartitionOut,
)
from app.services.cart_snapshot import read_cart_snapshot
from app.services.checkout_service import settle_checkout
from app.services.coupon_service import apply_coupon, current_coupon, remove_applied_coupon
from app.services.payment_service import SimulatedPaymentGateway, get_payment_gateway
from app.services.pricing import format_naira, price_cart
from app.services.seller_partition import partition_by_seller, unresolved_lines
from app.utils.token import get_current_user

router = APIRouter()


def build_checkout_summary(session: Session, buyer_id: int) -> CheckoutSummary:
    lines = read_cart_snapshot(session, buyer_id)
    partitions = partition_by_seller(lines)
    coupon, notice = current_coupon(session, buyer_id, lines)
    pricing = price_cart(partitions, coupon)

    partitions_out = []
    for totals in pricing.partitions:
        partitions_out.append(
            SellerPartitionOut(
                seller_id=totals.seller_id,
                items=[line_out(line) for line in partitions[totals.seller_id].lines],
                subtotal=totals.subtotal,
                delivery_fee=totals.delivery_fee,
                discount=totals.discount,
                total=totals.total,
                total_display=format_naira(totals.total),
            )
        )

    applied = None
    if coupon:
        applied = AppliedCouponOut(
            coupon_id=coupon.id,
            code=coupon.code,
            discount_percent=coupon.discount_percent,
            seller_id=coupon.seller_id,
        )

    return CheckoutSummary(
        partitions=partitions_out,
        removed_items=[removed_out(line) for line in unresolved_lines(lines)],
        applied_coupon=applied,
        coupon_notice=notice,
        summary=pricing_summary(pricing),
    )


@router.get("/summary", response_model=CheckoutSummary)
def checkout_summary(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    return build_checkout_summary(session, current_user.id)


@router.post("/coupon", response_model=CheckoutSummary)
def apply_coupon_code(
    data: ApplyCouponRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    apply_coupon(session, current_user.id, data.code)
    return build_checkout_summary(session, current_user.id)


@router.delete("/coupon", response_model=CheckoutSummary)
def remove_coupon(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    remove_applied_coupon(session, current_user.id)
    return build_checkout_summary(session, current_user.id)


# Pay (simulated) and place one order per seller

@router.post("/place-order", response_model=PlaceOrderResponse)
def place_order(
    data: PlaceOrderRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    gateway: SimulatedPaymentGateway = Depends(get_payment_gateway),
):
    result = settle_checkout(
        session,
        current_user.id,
        data.idempotency_key,
        gateway,
        acknowledge_removed=data.acknowledge_removed,
    )

    orders = session.exec(
        select(Order).where(Order.id.in_(result.order_ids)).order_by(Order.id)
    ).all()

    grand_total = sum(o.total for o in orders)

    return PlaceOrderResponse(
        message="Order placed" if not result.replayed else "Order already placed",
        idempotency_key=result.idempotency_key,
        payment_ref=result.payment_ref,
        replayed=result.replayed,
        orders=[
            PlacedOrder(
                order_id=o.id,
                seller_id=o.seller_id,
                subtotal=o.subtotal,
                discount=o.discount,
                delivery_fee=o.delivery_fee,
                total=o.total,
                status=o.status,
                item_count=len(o.items),
            )
            for o in orders
        ],
        grand_total=grand_total,
        grand_total_display=format_naira(grand_total),
    )
