import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.errors import (
    CheckoutError,
    CheckoutInProgress,
    CouponRejected,
    PaymentDeclined,
    PaymentUnavailable,
    PersistenceFailure,
    StaleDataFailure,
    ValidationError,
)
from app.models.cart import CartItem
from app.models.checkout_attempt import AttemptStatus, CheckoutAttempt
from app.models.coupon import AppliedCoupon, Coupon
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import Product
from app.services.cart_snapshot import read_cart_snapshot
from app.services.coupon_service import EXHAUSTED, get_applied_coupon, validate_coupon
from app.services.order_event_service import ORDER_PLACED, log_order_event
from app.services.payment_service import SimulatedPaymentGateway
from app.services.pricing import CartPricing, price_cart
from app.services.seller_partition import SellerPartition, partition_by_seller, unresolved_lines

logger = logging.getLogger(__name__)


_buyer_locks: Dict[int, threading.Lock] = {}
_registry_lock = threading.Lock()


@contextmanager
def buyer_checkout_lock(buyer_id: int):
    """Single-flight guard for one buyer inside this process.

    Only a debounce: other workers do not see it. The idempotency key
    is what keeps retries from creating duplicate orders.
    """
    with _registry_lock:
        lock = _buyer_locks.setdefault(buyer_id, threading.Lock())

    if not lock.acquire(blocking=False):
        raise CheckoutInProgress()
    try:
        yield
    finally:
        lock.release()


class SettlementResult(BaseModel):
    attempt_id: int
    idempotency_key: str
    order_ids: List[int]
    payment_ref: Optional[str] = None
    removed_item_ids: List[int] = []
    replayed: bool = False


def _find_attempt(session: Session, key: str) -> Optional[CheckoutAttempt]:
    return session.exec(
        select(CheckoutAttempt).where(CheckoutAttempt.idempotency_key == key)
    ).first()


def _begin_attempt(
    session: Session,
    attempt: Optional[CheckoutAttempt],
    buyer_id: int,
    key: str,
) -> CheckoutAttempt:
    """Move the attempt to ``submitting`` and commit it so concurrent retries see it."""
    if attempt is None:
        attempt = CheckoutAttempt(idempotency_key=key, buyer_id=buyer_id)
    else:
        attempt.status = AttemptStatus.submitting.value
        attempt.error = None
        attempt.updated_at = datetime.utcnow()

    session.add(attempt)
    try:
        session.commit()
    except IntegrityError:
        # same key inserted by a concurrent request
        session.rollback()
        raise CheckoutInProgress()

    session.refresh(attempt)
    return attempt


def _mark_failed(
    session: Session, attempt_id: int, error: str, payment_ref: Optional[str] = None
):
    """Record the failure along with the gateway reference, if a charge was attempted."""
    try:
        attempt = session.get(CheckoutAttempt, attempt_id)
        if attempt:
            attempt.status = AttemptStatus.failed.value
            attempt.error = error
            if payment_ref:
                attempt.payment_ref = payment_ref
            attempt.updated_at = datetime.utcnow()
            session.add(attempt)
            session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Could not record failure of checkout attempt {attempt_id}")


def _check_stock(session: Session, partitions: Dict[int, SellerPartition]):
    """Re-read stock for every line; the whole checkout fails on the first shortfall."""
    for partition in partitions.values():
        for line in partition.lines:
            product = session.get(Product, line.product_id)
            available = product.stock if product else 0
            if line.quantity > available:
                raise StaleDataFailure(line.product_id, line.quantity, available)


def _write_settlement(
    session: Session,
    buyer_id: int,
    attempt: CheckoutAttempt,
    partitions: Dict[int, SellerPartition],
    pricing: CartPricing,
    payment_ref: Optional[str],
) -> List[int]:
    """Stage every write of the settlement; the caller commits or rolls back."""

    # 1. one order per seller partition
    orders_by_seller: Dict[int, Order] = {}
    for totals in pricing.partitions:
        order = Order(
            buyer_id=buyer_id,
            seller_id=totals.seller_id,
            subtotal=totals.subtotal,
            discount=totals.discount,
            delivery_fee=totals.delivery_fee,
            total=totals.total,
            coupon_id=totals.coupon_id,
            payment_ref=payment_ref,
            checkout_attempt_id=attempt.id,
        )
        session.add(order)
        orders_by_seller[totals.seller_id] = order

    # 2. generated ids
    session.flush()

    # 3. items, with the price captured now, and stock taken
    for seller_id, order in orders_by_seller.items():
        for line in partitions[seller_id].lines:
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    product_name=line.product.name,
                    price=line.product.price,
                    quantity=line.quantity,
                )
            )

            taken = session.execute(
                update(Product)
                .where(Product.id == line.product_id, Product.stock >= line.quantity)
                .values(stock=Product.stock - line.quantity)
            )
            if taken.rowcount != 1:
                product = session.get(Product, line.product_id)
                raise StaleDataFailure(
                    line.product_id, line.quantity, product.stock if product else 0
                )

        log_order_event(
            session,
            order.id,
            ORDER_PLACED,
            "Order placed",
            created_by=f"user:{buyer_id}",
            meta={"total": order.total, "items": len(partitions[seller_id].lines)},
        )

    # 4. coupon usage, only if it stays within the limit
    if pricing.coupon_id is not None:
        redeemed = session.execute(
            update(Coupon)
            .where(
                Coupon.id == pricing.coupon_id,
                Coupon.is_active == True,  # noqa: E712
                or_(
                    Coupon.usage_limit == None,  # noqa: E711
                    Coupon.usage_count < Coupon.usage_limit,
                ),
            )
            .values(usage_count=Coupon.usage_count + 1)
        )
        if redeemed.rowcount != 1:
            raise CouponRejected(EXHAUSTED)

    # 5. full cart clear and applied coupon
    session.execute(delete(CartItem).where(CartItem.user_id == buyer_id))
    session.execute(delete(AppliedCoupon).where(AppliedCoupon.buyer_id == buyer_id))

    order_ids = [order.id for order in orders_by_seller.values()]

    attempt.status = AttemptStatus.committed.value
    attempt.order_ids = order_ids
    attempt.payment_ref = payment_ref
    attempt.updated_at = datetime.utcnow()
    session.add(attempt)

    return order_ids


def settle_checkout(
    session: Session,
    buyer_id: int,
    idempotency_key: str,
    gateway: SimulatedPaymentGateway,
    acknowledge_removed: bool = False,
) -> SettlementResult:
    """
    Turn the buyer's cart into one pending order per seller.

    Orders, order items, stock, coupon usage and the cart clear are
    committed in a single transaction. A retry with an already committed
    ``idempotency_key`` returns the original orders without writing.
    """
    key = (idempotency_key or "").strip()
    if not key:
        raise ValidationError("Missing checkout attempt key")

    attempt = _find_attempt(session, key)
    if attempt:
        if attempt.buyer_id != buyer_id:
            raise ValidationError("Checkout attempt key is not valid for this account")
        if attempt.status == AttemptStatus.committed.value:
            logger.info(f"Replaying committed checkout attempt {key} for buyer {buyer_id}")
            return SettlementResult(
                attempt_id=attempt.id,
                idempotency_key=key,
                order_ids=attempt.order_ids or [],
                payment_ref=attempt.payment_ref,
                replayed=True,
            )
        if attempt.status == AttemptStatus.submitting.value:
            raise CheckoutInProgress()

    with buyer_checkout_lock(buyer_id):
        lines = read_cart_snapshot(session, buyer_id)
        if not lines:
            raise ValidationError("Your cart is empty")

        removed = unresolved_lines(lines)
        if removed and not acknowledge_removed:
            raise ValidationError(
                f"{len(removed)} item(s) in your cart are no longer available. "
                "Review your cart before paying."
            )

        partitions = partition_by_seller(lines)
        if not partitions:
            raise ValidationError("Your cart is empty")

        coupon = get_applied_coupon(session, buyer_id)
        if coupon is not None:
            coupon = validate_coupon(session, coupon.code, lines)

        pricing = price_cart(partitions, coupon)
        _check_stock(session, partitions)

        attempt = _begin_attempt(session, attempt, buyer_id, key)
        attempt_id = attempt.id

        try:
            payment = gateway.charge(buyer_id, pricing.grand_total)
        except Exception as e:
            logger.exception(f"Payment gateway error on checkout attempt {key} for buyer {buyer_id}")
            _mark_failed(session, attempt_id, f"payment error: {e}")
            raise PaymentUnavailable(e)

        if not payment.succeeded:
            _mark_failed(session, attempt_id, "payment declined", payment.reference)
            raise PaymentDeclined(payment.reference)

        try:
            order_ids = _write_settlement(
                session, buyer_id, attempt, partitions, pricing, payment.reference
            )
            session.commit()
        except CheckoutError as e:
            session.rollback()
            logger.warning(
                f"Checkout attempt {key} for buyer {buyer_id} rejected "
                f"after payment {payment.reference}: {e.message}"
            )
            _mark_failed(session, attempt_id, e.message, payment.reference)
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(
                f"Checkout attempt {key} for buyer {buyer_id} failed after payment {payment.reference}"
            )
            _mark_failed(session, attempt_id, str(e), payment.reference)
            raise PersistenceFailure("saving your orders", e)

    logger.info(
        f"Checkout {key}: buyer {buyer_id} placed {len(order_ids)} order(s), "
        f"total {pricing.grand_total}, coupon {pricing.coupon_id}"
    )

    return SettlementResult(
        attempt_id=attempt_id,
        idempotency_key=key,
        order_ids=order_ids,
        payment_ref=payment.reference,
        removed_item_ids=[line.id for line in removed],
    )
