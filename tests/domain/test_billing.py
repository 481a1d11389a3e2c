"""
Tests for the pure billing and money helpers.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pharmacy_kernel.domain.billing import compute_line, summarize
from pharmacy_kernel.domain.money import round_money, to_decimal


class TestComputeLine:
    def test_plain_line(self):
        amounts = compute_line(30, Decimal("10"), gst_percent=Decimal("12"))

        assert amounts.gross == Decimal("300.00")
        assert amounts.taxable == Decimal("300.00")
        assert amounts.gst == Decimal("36.00")
        assert amounts.amount == Decimal("336.00")

    def test_discount_applies_before_tax(self):
        amounts = compute_line(3, Decimal("33.33"), Decimal("10"), Decimal("5"))

        assert amounts.gross == Decimal("99.99")
        assert amounts.discount == Decimal("10.00")
        assert amounts.taxable == Decimal("89.99")
        assert amounts.gst == Decimal("4.50")
        assert amounts.amount == Decimal("94.49")

    def test_rounding_is_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("2.675")) == Decimal("2.68")

    def test_floats_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    @settings(max_examples=200)
    @given(
        quantity=st.integers(min_value=1, max_value=10_000),
        rate=st.decimals(min_value=0, max_value=5000, places=2),
        discount=st.decimals(min_value=0, max_value=100, places=2),
        gst=st.sampled_from([Decimal("0"), Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28")]),
    )
    def test_components_add_up(self, quantity, rate, discount, gst):
        amounts = compute_line(quantity, rate, discount, gst)

        assert amounts.gross - amounts.discount == amounts.taxable
        assert amounts.taxable + amounts.gst == amounts.amount
        assert amounts.taxable >= 0
        assert amounts.gst <= amounts.taxable


class TestSummarize:
    def test_groups_by_rate_and_counts_products(self):
        lines = [
            (compute_line(10, Decimal("10"), gst_percent=Decimal("12")), "a"),
            (compute_line(5, Decimal("20"), gst_percent=Decimal("12")), "a"),
            (compute_line(2, Decimal("50"), gst_percent=Decimal("5")), "b"),
        ]

        summary = summarize(lines)

        assert summary.subtotal == Decimal("300.00")
        assert summary.gst_amount == Decimal("29.00")
        assert summary.grand_total == Decimal("329.00")
        assert summary.total_quantity == 17
        assert summary.product_count == 2
        assert [slab.gst_percent for slab in summary.gst_summary] == [Decimal("5"), Decimal("12")]

    def test_intra_state_split_gives_odd_paisa_to_sgst(self):
        summary = summarize([(compute_line(1, Decimal("300.42"), gst_percent=Decimal("12")), "a")])

        slab = summary.gst_summary[0]
        assert slab.cgst + slab.sgst == summary.gst_amount
        assert slab.igst == Decimal("0")
        assert slab.cgst - slab.sgst in (Decimal("0"), Decimal("0.01"))

    def test_inter_state_is_all_igst(self):
        summary = summarize(
            [(compute_line(10, Decimal("10"), gst_percent=Decimal("18")), "a")], inter_state=True
        )

        slab = summary.gst_summary[0]
        assert slab.igst == Decimal("18.00")
        assert slab.cgst == slab.sgst == Decimal("0")
        assert slab.total_gst == summary.gst_amount

    def test_empty_bill(self):
        summary = summarize([])

        assert summary.grand_total == Decimal("0")
        assert summary.gst_summary == ()
