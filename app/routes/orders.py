from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from sqlmodel import Session, select
from app.constants.order_status import ALLOWED_TRANSITIONS, OrderStatus
from app.database import get_session
from app.models.order import Order
from app.models.user import User
from app.schemas.orders_schemas import OrderItemOut, OrderOut, OrderStatusUpdate
from app.services.order_event_service import STATUS_CHANGED, get_order_timeline, log_order_event
from app.services.pricing import format_naira
from app.utils.pagination import paginate
from app.utils.token import get_current_seller, get_current_user
from datetime import datetime


router = APIRouter()


def order_out(order: Order) -> OrderOut:
    return OrderOut(
        order_id=order.id,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        status=order.status,
        subtotal=order.subtotal,
        discount=order.discount,
        delivery_fee=order.delivery_fee,
        total=order.total,
        total_display=format_naira(order.total),
        coupon_id=order.coupon_id,
        payment_ref=order.payment_ref,
        created_at=order.created_at,
        items=[
            OrderItemOut(
                product_id=i.product_id,
                product_name=i.product_name,
                price=i.price,
                quantity=i.quantity,
                line_total=i.line_total,
            )
            for i in order.items
        ],
    )


# Buyer orders

@router.get("/my")
def my_orders(
    page: int = 1,
    limit: int = 10,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    query = (
        select(Order)
        .where(Order.buyer_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )

    data = paginate(session=session, query=query, page=page, limit=limit)
    data["results"] = [order_out(o) for o in data["results"]]
    return data


# Seller dashboard

@router.get("/seller")
def seller_orders(
    page: int = 1,
    limit: int = 10,
    status: Optional[OrderStatus] = None,
    session: Session = Depends(get_session),
    seller: User = Depends(get_current_seller)
):
    query = select(Order).where(Order.seller_id == seller.id)

    if status:
        query = query.where(Order.status == status.value)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    data = paginate(session=session, query=query, page=page, limit=limit)
    data["results"] = [order_out(o) for o in data["results"]]
    return data


@router.get("/{order_id}/timeline")
def order_timeline(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    order = session.get(Order, order_id)

    if not order or current_user.id not in (order.buyer_id, order.seller_id):
        raise HTTPException(404, "Order not found")

    return {
        "order_id": order.id,
        "status": order.status,
        "events": [
            {
                "event_type": e.event_type,
                "label": e.label,
                "meta": e.meta,
                "created_by": e.created_by,
                "created_at": e.created_at,
            }
            for e in get_order_timeline(session, order.id)
        ],
    }


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    session: Session = Depends(get_session),
    seller: User = Depends(get_current_seller),
):
    order = session.get(Order, order_id)
    if not order or order.seller_id != seller.id:
        raise HTTPException(404, "Order not found")

    new_status = data.status.value
    allowed = ALLOWED_TRANSITIONS.get(order.status, [])
    if new_status not in allowed:
        raise HTTPException(
            400,
            f"Invalid status change from {order.status} → {new_status}"
        )

    old_status = order.status
    order.status = new_status
    order.updated_at = datetime.utcnow()
    session.add(order)

    log_order_event(
        session,
        order.id,
        STATUS_CHANGED,
        f"Order {new_status}",
        created_by=f"user:{seller.id}",
        meta={"from": old_status, "to": new_status},
    )

    session.commit()

    return {
        "message": "Order status updated",
        "order_id": order.id,
        "old_status": old_status,
        "new_status": new_status,
    }
