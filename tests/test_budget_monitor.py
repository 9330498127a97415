"""
Tests for the budget monitor

Tier boundaries are inclusive on the lower edge: exactly 50%, 90% and
100% of the limit land in the higher tier.
"""

from decimal import Decimal

import pytest

from barcontrol.budget import classify, evaluate, usage_percentage
from barcontrol.models import BudgetTier


LIMIT = Decimal("100")


class TestClassify:
    """Tests for tier boundaries."""

    @pytest.mark.parametrize("total,expected", [
        ("0", BudgetTier.SAFE),
        ("49.99", BudgetTier.SAFE),
        ("50", BudgetTier.CAUTION),
        ("89.99", BudgetTier.CAUTION),
        ("90", BudgetTier.NEAR),
        ("99.99", BudgetTier.NEAR),
        ("100", BudgetTier.EXCEEDED),
        ("150", BudgetTier.EXCEEDED),
    ])
    def test_boundaries(self, total, expected):
        assert classify(Decimal(total), LIMIT) == expected

    @pytest.mark.parametrize("limit", ["0", "-10"])
    def test_no_limit_is_unbounded(self, limit):
        """Test that a limit of zero or less disables the budget."""
        assert classify(Decimal("500"), Decimal(limit)) == BudgetTier.UNBOUNDED

    def test_boundaries_scale_with_limit(self):
        """Test a limit where the thresholds are not whole numbers."""
        limit = Decimal("33.33")
        assert classify(Decimal("16.665"), limit) == BudgetTier.CAUTION
        assert classify(Decimal("16.664"), limit) == BudgetTier.SAFE


class TestUsagePercentage:
    """Tests for the progress bar value."""

    def test_is_clamped(self):
        assert usage_percentage(Decimal("150"), LIMIT) == 100.0
        assert usage_percentage(Decimal("25"), LIMIT) == 25.0

    def test_unbounded_is_zero(self):
        assert usage_percentage(Decimal("150"), Decimal("0")) == 0.0


class TestEvaluate:
    """Tests for the full status."""

    def test_near_limit_does_not_alert(self):
        """Test 95 of 100: near the limit, no alert."""
        status = evaluate(Decimal("95"), LIMIT)
        assert status.tier == BudgetTier.NEAR
        assert status.alert is False
        assert status.percentage == 95.0

    def test_reaching_limit_alerts(self):
        """Test 100 of 100: exceeded, alert raised."""
        status = evaluate(Decimal("100"), LIMIT)
        assert status.tier == BudgetTier.EXCEEDED
        assert status.alert is True
        assert status.percentage == 100.0

    def test_only_exceeded_alerts(self):
        """Test that no other tier raises the alert."""
        for total in ("0", "60", "95"):
            assert evaluate(Decimal(total), LIMIT).alert is False
        assert evaluate(Decimal("500"), Decimal("0")).alert is False

    def test_accepts_plain_numbers(self):
        """Test that ints and floats are converted to Decimal."""
        status = evaluate(45, 100.0)
        assert status.total == Decimal("45")
        assert status.limit == Decimal("100.0")
        assert status.tier == BudgetTier.SAFE

    def test_every_tier_has_a_message(self):
        for total in ("0", "60", "95", "100"):
            assert evaluate(Decimal(total), LIMIT).message
        assert evaluate(Decimal("1"), Decimal("0")).message

    def test_is_stateless(self):
        """Test that going back under the limit clears the alert."""
        assert evaluate(Decimal("120"), LIMIT).alert is True
        assert evaluate(Decimal("80"), LIMIT).alert is False
