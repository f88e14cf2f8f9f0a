import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from app.errors import CouponRejected, ValidationError
from app.models.coupon import AppliedCoupon, Coupon
from app.schemas.cart_schemas import CartLine
from app.services.cart_snapshot import read_cart_snapshot

logger = logging.getLogger(__name__)

NOT_FOUND = "Coupon not found or inactive"
EXPIRED = "Coupon has expired"
EXHAUSTED = "Coupon usage limit reached"
WRONG_SELLER = "This coupon only applies to a specific seller's cart"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_exhausted(coupon: Coupon) -> bool:
    if coupon.usage_limit is None:
        return False
    # a zero limit can never be redeemed
    if coupon.usage_limit <= 0:
        return True
    return coupon.usage_count >= coupon.usage_limit


def validate_coupon(
    session: Session,
    code: str,
    lines: List[CartLine],
    now: Optional[datetime] = None,
) -> Coupon:
    """
    Check a coupon code against the buyer's current cart.

    Checks run in order and stop at the first failure: code present,
    coupon exists and is active, not expired, not exhausted, cart not
    empty, and for a seller-scoped coupon every line in the cart
    belongs to that seller.
    """
    code = (code or "").strip()
    if not code:
        raise ValidationError("Enter a coupon code")

    coupon = session.exec(
        select(Coupon).where(Coupon.code == code, Coupon.is_active == True)  # noqa: E712
    ).first()
    if not coupon:
        raise CouponRejected(NOT_FOUND)

    now = _as_utc(now or datetime.now(timezone.utc))
    if coupon.expires_at and _as_utc(coupon.expires_at) < now:
        raise CouponRejected(EXPIRED)

    if is_exhausted(coupon):
        raise CouponRejected(EXHAUSTED)

    if not lines:
        raise ValidationError("Your cart is empty")

    if coupon.seller_id is not None:
        seller_ids = {line.seller_id for line in lines if line.seller_id is not None}
        if seller_ids != {coupon.seller_id}:
            raise CouponRejected(WRONG_SELLER)

    return coupon


def get_applied_coupon(session: Session, buyer_id: int) -> Optional[Coupon]:
    applied = session.get(AppliedCoupon, buyer_id)
    if not applied:
        return None
    return session.get(Coupon, applied.coupon_id)


def current_coupon(
    session: Session, buyer_id: int, lines: List[CartLine]
) -> Tuple[Optional[Coupon], Optional[str]]:
    """The applied coupon if it still holds for ``lines``, else ``(None, reason)``.

    The applied row is kept so the buyer sees why the discount is gone.
    """
    coupon = get_applied_coupon(session, buyer_id)
    if coupon is None or not lines:
        return None, None

    try:
        return validate_coupon(session, coupon.code, lines), None
    except CouponRejected as e:
        return None, e.reason


def apply_coupon(session: Session, buyer_id: int, code: str) -> Coupon:
    """Validate ``code`` and make it the buyer's applied coupon.

    On rejection the previously applied coupon, if any, stays applied.
    """
    lines = read_cart_snapshot(session, buyer_id)

    try:
        coupon = validate_coupon(session, code, lines)
    except (CouponRejected, ValidationError) as e:
        logger.warning(f"Coupon {code!r} rejected for buyer {buyer_id}: {e.message}")
        raise

    applied = session.get(AppliedCoupon, buyer_id)
    if applied:
        applied.coupon_id = coupon.id
        applied.applied_at = datetime.utcnow()
    else:
        applied = AppliedCoupon(buyer_id=buyer_id, coupon_id=coupon.id)

    session.add(applied)
    session.commit()

    logger.info(f"Coupon {coupon.code} applied for buyer {buyer_id} ({coupon.discount_percent}% off)")
    return coupon


def remove_applied_coupon(session: Session, buyer_id: int) -> bool:
    applied = session.get(AppliedCoupon, buyer_id)
    if not applied:
        return False

    session.delete(applied)
    session.commit()
    return True
