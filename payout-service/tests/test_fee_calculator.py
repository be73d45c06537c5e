"""
Tests for the payout fee calculator.

Verifies that FeeCalculator correctly:
- Applies the 10% platform fee with its 50 cent floor
- Applies the 2.9% + 30 cent processing fee
- Rounds each fee independently, half-up
- Charges nothing on free tickets
- Sums per-ticket fees for an event
- Splits instant MonCash withdrawals into fee and payout
"""

from decimal import Decimal

import pytest

from app.services.payout.fee_calculator import (
    FeeBreakdown,
    FeeCalculator,
    round_half_up,
)


class TestFeeCalculator:
    """Tests for the payout fee calculator."""

    def setup_method(self):
        """Create a calculator with the default fee model."""
        self.calculator = FeeCalculator(
            platform_percent=Decimal("0.10"),
            platform_min_cents=50,
            processing_percent=Decimal("0.029"),
            processing_fixed_cents=30,
            minimum_payout_cents=5000,
            instant_fee_percent=Decimal("0.03"),
        )

    # ------------------------------------------------------------------ #
    # Single charges
    # ------------------------------------------------------------------ #

    def test_hundred_dollar_ticket(self):
        """10000: platform 1000, processing 290 + 30, net 8680."""
        result = self.calculator.calculate(10000)

        assert result == FeeBreakdown(gross=10000, platform_fee=1000, processing_fee=320, net=8680)

    def test_platform_fee_floor(self):
        """300 cents: 10% is 30, below the 50 cent floor."""
        result = self.calculator.calculate(300)

        assert result.platform_fee == 50
        assert result.processing_fee == 9 + 30  # 8.7 rounds to 9
        assert result.net == 300 - 50 - 39

    def test_free_ticket_no_fees(self):
        """$0 tickets carry no fees and no floor."""
        result = self.calculator.calculate(0)

        assert result == FeeBreakdown(gross=0, platform_fee=0, processing_fee=0, net=0)

    def test_free_ticket_fee_parts_match_breakdown(self):
        assert self.calculator.platform_fee(0) == 0
        assert self.calculator.processing_fee(0) == 0
        assert self.calculator.platform_fee(1) == 50

    def test_negative_gross_rejected(self):
        with pytest.raises(ValueError):
            self.calculator.calculate(-1)

    def test_half_up_rounding(self):
        """2.9% of 50 is 1.45 -> 1; 2.9% of 1550 is 44.95 -> 45."""
        assert self.calculator.processing_fee(50) == 1 + 30
        assert self.calculator.processing_fee(1550) == 45 + 30
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2

    def test_net_is_gross_minus_fees(self):
        for gross in (1, 99, 1234, 5000, 250000):
            result = self.calculator.calculate(gross)
            assert result.net == result.gross - result.platform_fee - result.processing_fee

    # ------------------------------------------------------------------ #
    # Events (sum of tickets)
    # ------------------------------------------------------------------ #

    def test_calculate_many_sums_per_ticket(self):
        """Fees apply per ticket, so the floor and fixed charge repeat."""
        result = self.calculator.calculate_many([10000, 300, 0])

        assert result.gross == 10300
        assert result.platform_fee == 1000 + 50
        assert result.processing_fee == 320 + 39
        assert result.net == 10300 - 1050 - 359

    def test_calculate_many_empty(self):
        result = self.calculator.calculate_many([])

        assert result == FeeBreakdown(gross=0, platform_fee=0, processing_fee=0, net=0)

    def test_estimate_net_per_ticket(self):
        assert self.calculator.estimate_net_per_ticket(10000) == 8680

    # ------------------------------------------------------------------ #
    # Payouts
    # ------------------------------------------------------------------ #

    def test_minimum_payout(self):
        assert self.calculator.meets_minimum_payout(5000)
        assert not self.calculator.meets_minimum_payout(4999)

    def test_instant_transfer_fee(self):
        """5000 gross: 3% fee 150, 4850 reaches the wallet."""
        split = self.calculator.instant_transfer_fee(5000)

        assert split.amount == 5000
        assert split.fee == 150
        assert split.payout == 4850
        assert split.fee_percent == Decimal("0.03")

    def test_instant_transfer_fee_rounds_half_up(self):
        """3% of 5050 is 151.5 -> 152."""
        split = self.calculator.instant_transfer_fee(5050)

        assert split.fee == 152
        assert split.payout == 5050 - 152

    def test_from_settings_uses_configured_rates(self):
        calculator = FeeCalculator.from_settings()

        assert calculator.calculate(10000).net == 8680
        assert calculator.minimum_payout_cents == 5000
