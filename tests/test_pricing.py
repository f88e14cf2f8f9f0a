"""Tests for seller partitioning and cart pricing."""

import pytest

from app.models.coupon import Coupon
from app.schemas.cart_schemas import CartLine, ProductSnapshot
from app.services.pricing import format_naira, price_cart, price_partition
from app.services.seller_partition import partition_by_seller, unresolved_lines


def line(line_id, seller_id, price, quantity=1, product_id=None):
    return CartLine(
        id=line_id,
        buyer_id=1,
        product_id=product_id or line_id,
        quantity=quantity,
        product=ProductSnapshot(name=f"p{line_id}", price=price, stock=100, seller_id=seller_id),
    )


def orphan(line_id, quantity=1):
    return CartLine(id=line_id, buyer_id=1, product_id=line_id, quantity=quantity, product=None)


class TestPartitionBySeller:
    def test_groups_in_first_seen_order(self):
        lines = [line(1, 20, 100), line(2, 10, 200), line(3, 20, 300)]

        partitions = partition_by_seller(lines)

        assert list(partitions) == [20, 10]
        assert [l.id for l in partitions[20].lines] == [1, 3]
        assert [l.id for l in partitions[10].lines] == [2]

    def test_every_resolved_line_in_exactly_one_partition(self):
        lines = [line(i, i % 3, 100) for i in range(1, 10)]

        partitions = partition_by_seller(lines)

        ids = [l.id for p in partitions.values() for l in p.lines]
        assert sorted(ids) == list(range(1, 10))

    def test_lines_without_product_are_silently_skipped(self):
        lines = [line(1, 10, 100), orphan(2), line(3, 10, 50)]

        partitions = partition_by_seller(lines)

        assert list(partitions) == [10]
        assert [l.id for l in partitions[10].lines] == [1, 3]
        assert [l.id for l in unresolved_lines(lines)] == [2]

    def test_only_orphans_gives_no_partitions(self):
        assert partition_by_seller([orphan(1), orphan(2)]) == {}

    def test_empty_cart(self):
        assert partition_by_seller([]) == {}

    def test_partition_subtotal(self):
        partitions = partition_by_seller([line(1, 10, 1000, quantity=2), line(2, 10, 250, quantity=3)])
        assert partitions[10].subtotal == 2750


class TestPriceCart:
    def test_single_seller_no_coupon(self):
        pricing = price_cart(partition_by_seller([line(1, 1, 1000, quantity=2)]))

        assert pricing.grand_subtotal == 2000
        assert pricing.grand_delivery == 500
        assert pricing.grand_discount == 0
        assert pricing.grand_total == 2500
        assert pricing.partitions[0].total == 2500

    def test_two_sellers_pay_one_fee_each(self):
        pricing = price_cart(partition_by_seller([line(1, 1, 1000), line(2, 2, 2000)]))

        assert pricing.for_seller(1).total == 1500
        assert pricing.for_seller(2).total == 2500
        assert pricing.grand_delivery == 1000
        assert pricing.grand_total == 4000

    def test_delivery_fee_is_per_seller_not_per_item(self):
        pricing = price_cart(partition_by_seller([line(i, 1, 100) for i in range(1, 6)]))
        assert pricing.grand_delivery == 500

    def test_partition_sums_match_grand_totals(self):
        lines = [line(1, 1, 1000, 3), line(2, 2, 450, 2), line(3, 3, 99.5, 7), line(4, 1, 10, 1)]
        pricing = price_cart(partition_by_seller(lines))

        assert sum(p.subtotal for p in pricing.partitions) == pricing.grand_subtotal
        assert sum(p.delivery_fee for p in pricing.partitions) == pricing.grand_delivery

    def test_orphan_lines_excluded_from_totals(self):
        pricing = price_cart(partition_by_seller([line(1, 1, 1000), orphan(2, quantity=5)]))
        assert pricing.grand_subtotal == 1000
        assert pricing.grand_total == 1500

    def test_empty_cart_costs_nothing(self):
        pricing = price_cart({})
        assert pricing.grand_total == 0
        assert pricing.partitions == []

    def test_scoped_coupon_discounts_its_seller(self):
        coupon = Coupon(id=7, code="S1", seller_id=1, discount_percent=10)
        pricing = price_cart(partition_by_seller([line(1, 1, 1000, quantity=2)]), coupon)

        assert pricing.grand_discount == 200
        assert pricing.for_seller(1).total == 2300
        assert pricing.coupon_id == 7
        assert pricing.discounted_seller_id == 1

    def test_scoped_coupon_for_other_seller_gives_nothing(self):
        coupon = Coupon(id=7, code="S2", seller_id=2, discount_percent=10)
        pricing = price_cart(partition_by_seller([line(1, 1, 1000)]), coupon)

        assert pricing.grand_discount == 0
        assert pricing.coupon_id is None

    def test_platform_coupon_applies_to_single_seller_cart(self):
        coupon = Coupon(id=3, code="ALL", seller_id=None, discount_percent=50)
        pricing = price_cart(partition_by_seller([line(1, 4, 800)]), coupon)

        assert pricing.grand_discount == 400
        assert pricing.grand_total == 900
        assert pricing.discounted_seller_id == 4

    def test_platform_coupon_does_not_span_sellers(self):
        coupon = Coupon(id=3, code="ALL", seller_id=None, discount_percent=50)
        pricing = price_cart(partition_by_seller([line(1, 1, 800), line(2, 2, 800)]), coupon)

        assert pricing.grand_discount == 0
        assert all(p.coupon_id is None for p in pricing.partitions)

    def test_no_intermediate_rounding(self):
        coupon = Coupon(id=1, code="ODD", seller_id=1, discount_percent=12.5)
        pricing = price_cart(partition_by_seller([line(1, 1, 333, quantity=1)]), coupon)

        assert pricing.grand_discount == pytest.approx(41.625)
        assert pricing.grand_total == pytest.approx(333 - 41.625 + 500)

    def test_partition_total_floored_at_zero(self):
        coupon = Coupon(id=1, code="FREE", seller_id=1, discount_percent=150)
        partition = partition_by_seller([line(1, 1, 1000)])[1]

        totals = price_partition(partition, coupon, delivery_fee=0)

        assert totals.total == 0


class TestFormatNaira:
    @pytest.mark.parametrize(
        "amount, expected",
        [(0, "₦0"), (500, "₦500"), (2500, "₦2,500"), (1234567, "₦1,234,567"), (2299.6, "₦2,300")],
    )
    def test_grouping_and_display_rounding(self, amount, expected):
        assert format_naira(amount) == expected
