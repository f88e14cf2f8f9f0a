"""Tests for coupon validation and the applied-coupon state."""

from datetime import datetime, timedelta

import pytest

from app.errors import CouponRejected, ValidationError
from app.models.coupon import AppliedCoupon
from app.services.cart_snapshot import read_cart_snapshot
from app.services.coupon_service import (
    EXHAUSTED,
    EXPIRED,
    NOT_FOUND,
    WRONG_SELLER,
    apply_coupon,
    current_coupon,
    get_applied_coupon,
    remove_applied_coupon,
    validate_coupon,
)


@pytest.fixture
def s1_cart(buyer, seller1, make_product, add_to_cart, session):
    add_to_cart(buyer, make_product(seller1, 1000), quantity=2)
    return read_cart_snapshot(session, buyer.id)


class TestValidateCoupon:
    def test_valid_scoped_coupon(self, session, seller1, make_coupon, s1_cart):
        coupon = make_coupon("S1TEN", seller=seller1)
        assert validate_coupon(session, "S1TEN", s1_cart).id == coupon.id

    def test_code_is_trimmed(self, session, seller1, make_coupon, s1_cart):
        make_coupon("S1TEN", seller=seller1)
        assert validate_coupon(session, "  S1TEN ", s1_cart).code == "S1TEN"

    @pytest.mark.parametrize("code", ["", "   ", None])
    def test_empty_code(self, session, s1_cart, code):
        with pytest.raises(ValidationError):
            validate_coupon(session, code, s1_cart)

    def test_unknown_code(self, session, s1_cart):
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "NOPE", s1_cart)
        assert exc.value.reason == NOT_FOUND

    def test_code_is_case_sensitive(self, session, make_coupon, s1_cart):
        make_coupon("Save10")
        with pytest.raises(CouponRejected):
            validate_coupon(session, "SAVE10", s1_cart)

    def test_inactive(self, session, make_coupon, s1_cart):
        make_coupon("OFF", is_active=False)
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "OFF", s1_cart)
        assert exc.value.reason == NOT_FOUND

    def test_expired(self, session, make_coupon, s1_cart):
        make_coupon("OLD", expires_at=datetime.utcnow() - timedelta(days=1))
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "OLD", s1_cart)
        assert exc.value.reason == EXPIRED

    def test_not_yet_expired(self, session, make_coupon, s1_cart):
        make_coupon("NEW", expires_at=datetime.utcnow() + timedelta(days=1))
        assert validate_coupon(session, "NEW", s1_cart).code == "NEW"

    def test_exhausted_regardless_of_expiry_and_scope(self, session, seller2, make_coupon, s1_cart):
        # scoped to another seller as well; exhaustion is checked first
        make_coupon(
            "ONCE",
            seller=seller2,
            usage_limit=1,
            usage_count=1,
            expires_at=datetime.utcnow() + timedelta(days=1),
        )
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "ONCE", s1_cart)
        assert exc.value.reason == EXHAUSTED

    def test_zero_limit_always_rejected(self, session, make_coupon, s1_cart):
        make_coupon("ZERO", usage_limit=0)
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "ZERO", s1_cart)
        assert exc.value.reason == EXHAUSTED

    def test_no_limit_never_exhausted(self, session, make_coupon, s1_cart):
        make_coupon("UNLIMITED", usage_limit=None, usage_count=10_000)
        assert validate_coupon(session, "UNLIMITED", s1_cart).code == "UNLIMITED"

    def test_under_limit(self, session, make_coupon, s1_cart):
        make_coupon("TWICE", usage_limit=2, usage_count=1)
        assert validate_coupon(session, "TWICE", s1_cart).code == "TWICE"

    def test_empty_cart(self, session, make_coupon):
        make_coupon("ANY")
        with pytest.raises(ValidationError):
            validate_coupon(session, "ANY", [])

    def test_scoped_coupon_rejected_on_mixed_cart(
        self, session, buyer, seller1, seller2, make_product, add_to_cart, make_coupon
    ):
        add_to_cart(buyer, make_product(seller1, 1000))
        add_to_cart(buyer, make_product(seller2, 2000))
        make_coupon("S1ONLY", seller=seller1)

        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "S1ONLY", read_cart_snapshot(session, buyer.id))
        assert exc.value.reason == WRONG_SELLER

    def test_scoped_coupon_rejected_on_other_sellers_cart(self, session, seller2, make_coupon, s1_cart):
        make_coupon("S2ONLY", seller=seller2)
        with pytest.raises(CouponRejected) as exc:
            validate_coupon(session, "S2ONLY", s1_cart)
        assert exc.value.reason == WRONG_SELLER

    def test_platform_coupon_allowed_on_mixed_cart(
        self, session, buyer, seller1, seller2, make_product, add_to_cart, make_coupon
    ):
        add_to_cart(buyer, make_product(seller1, 1000))
        add_to_cart(buyer, make_product(seller2, 2000))
        make_coupon("CAMPUS")

        lines = read_cart_snapshot(session, buyer.id)
        assert validate_coupon(session, "CAMPUS", lines).seller_id is None


class TestAppliedCoupon:
    def test_apply_then_read_back(self, session, buyer, seller1, make_coupon, s1_cart):
        coupon = make_coupon("S1TEN", seller=seller1)

        apply_coupon(session, buyer.id, "S1TEN")

        assert get_applied_coupon(session, buyer.id).id == coupon.id

    def test_apply_replaces_previous(self, session, buyer, seller1, make_coupon, s1_cart):
        make_coupon("FIRST", seller=seller1)
        second = make_coupon("SECOND", seller=seller1, discount_percent=20)

        apply_coupon(session, buyer.id, "FIRST")
        apply_coupon(session, buyer.id, "SECOND")

        assert get_applied_coupon(session, buyer.id).id == second.id

    def test_rejection_keeps_previous(self, session, buyer, seller1, seller2, make_coupon, s1_cart):
        first = make_coupon("FIRST", seller=seller1)
        make_coupon("OTHER", seller=seller2)

        apply_coupon(session, buyer.id, "FIRST")
        with pytest.raises(CouponRejected):
            apply_coupon(session, buyer.id, "OTHER")

        assert get_applied_coupon(session, buyer.id).id == first.id

    def test_remove(self, session, buyer, make_coupon, s1_cart):
        make_coupon("ANY")
        apply_coupon(session, buyer.id, "ANY")

        assert remove_applied_coupon(session, buyer.id) is True
        assert session.get(AppliedCoupon, buyer.id) is None
        assert remove_applied_coupon(session, buyer.id) is False


class TestCurrentCoupon:
    def test_still_valid(self, session, buyer, seller1, make_coupon, s1_cart):
        coupon = make_coupon("S1TEN", seller=seller1)
        apply_coupon(session, buyer.id, "S1TEN")

        assert current_coupon(session, buyer.id, s1_cart) == (coupon, None)

    def test_nothing_applied(self, session, buyer, s1_cart):
        assert current_coupon(session, buyer.id, s1_cart) == (None, None)

    def test_cart_gained_another_seller(
        self, session, buyer, seller1, seller2, make_product, add_to_cart, make_coupon, s1_cart
    ):
        make_coupon("S1TEN", seller=seller1)
        apply_coupon(session, buyer.id, "S1TEN")
        add_to_cart(buyer, make_product(seller2, 2000))

        lines = read_cart_snapshot(session, buyer.id)

        assert current_coupon(session, buyer.id, lines) == (None, WRONG_SELLER)
        # still applied, so the buyer can see and remove it
        assert session.get(AppliedCoupon, buyer.id) is not None

    def test_deactivated_since_applied(self, session, buyer, seller1, make_coupon, s1_cart):
        coupon = make_coupon("S1TEN", seller=seller1)
        apply_coupon(session, buyer.id, "S1TEN")
        coupon.is_active = False
        session.add(coupon)
        session.commit()

        assert current_coupon(session, buyer.id, s1_cart) == (None, NOT_FOUND)

    def test_exhausted_since_applied(self, session, buyer, seller1, make_coupon, s1_cart):
        coupon = make_coupon("ONCE", seller=seller1, usage_limit=1)
        apply_coupon(session, buyer.id, "ONCE")
        coupon.usage_count = 1
        session.add(coupon)
        session.commit()

        assert current_coupon(session, buyer.id, s1_cart) == (None, EXHAUSTED)

    def test_empty_cart(self, session, buyer, make_coupon, s1_cart):
        make_coupon("ANY")
        apply_coupon(session, buyer.id, "ANY")

        assert current_coupon(session, buyer.id, []) == (None, None)
