"""
Fee calculation for ticket earnings and payouts.

Fee model (integer cents throughout):
- platform_fee   = max(round(gross * 10%), 50)
- processing_fee = round(gross * 2.9%) + 30
- net            = gross - platform_fee - processing_fee
- The two fees are rounded independently, half-up, so audits reproduce
- Free tickets ($0) carry no fees
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from app.core.config import settings


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FeeBreakdown:
    gross: int               # cents
    platform_fee: int        # cents
    processing_fee: int      # cents
    net: int                 # cents


@dataclass(frozen=True)
class InstantFee:
    amount: int              # gross withdrawal, cents
    fee: int                 # cents
    payout: int              # amount - fee
    fee_percent: Decimal


class FeeCalculator:
    """
    Stateless fee calculator.

    Args:
        platform_percent: platform commission as a decimal (0.10 for 10%)
        platform_min_cents: floor applied to the platform commission
        processing_percent: processor percentage as a decimal (0.029)
        processing_fixed_cents: fixed processor charge per transaction
    """

    def __init__(
        self,
        platform_percent: Decimal,
        platform_min_cents: int,
        processing_percent: Decimal,
        processing_fixed_cents: int,
        minimum_payout_cents: int = 5000,
        instant_fee_percent: Decimal = Decimal("0.03"),
    ):
        self.platform_percent = Decimal(platform_percent)
        self.platform_min_cents = platform_min_cents
        self.processing_percent = Decimal(processing_percent)
        self.processing_fixed_cents = processing_fixed_cents
        self.minimum_payout_cents = minimum_payout_cents
        self.instant_fee_percent = Decimal(instant_fee_percent)

    @classmethod
    def from_settings(cls) -> "FeeCalculator":
        return cls(
            platform_percent=Decimal(settings.PLATFORM_FEE_PERCENT),
            platform_min_cents=settings.PLATFORM_FEE_MIN_CENTS,
            processing_percent=Decimal(settings.PROCESSING_FEE_PERCENT),
            processing_fixed_cents=settings.PROCESSING_FEE_FIXED_CENTS,
            minimum_payout_cents=settings.MINIMUM_PAYOUT_CENTS,
            instant_fee_percent=Decimal(settings.PREFUNDING_FEE_PERCENT),
        )

    def platform_fee(self, gross: int) -> int:
        if gross == 0:
            return 0
        return max(round_half_up(gross * self.platform_percent), self.platform_min_cents)

    def processing_fee(self, gross: int) -> int:
        if gross == 0:
            return 0
        return round_half_up(gross * self.processing_percent) + self.processing_fixed_cents

    def calculate(self, gross: int) -> FeeBreakdown:
        """Fees for a single charge of `gross` cents."""
        if gross < 0:
            raise ValueError("gross must be >= 0")
        if gross == 0:
            return FeeBreakdown(gross=0, platform_fee=0, processing_fee=0, net=0)
        platform = self.platform_fee(gross)
        processing = self.processing_fee(gross)
        return FeeBreakdown(
            gross=gross,
            platform_fee=platform,
            processing_fee=processing,
            net=gross - platform - processing,
        )

    def calculate_many(self, charges: Iterable[int]) -> FeeBreakdown:
        """
        Sum of per-charge fees.

        Each ticket is charged separately, so fees (and the platform floor)
        apply per ticket rather than to the event total.
        """
        gross = platform = processing = 0
        for amount in charges:
            item = self.calculate(amount)
            gross += item.gross
            platform += item.platform_fee
            processing += item.processing_fee
        return FeeBreakdown(
            gross=gross,
            platform_fee=platform,
            processing_fee=processing,
            net=gross - platform - processing,
        )

    def meets_minimum_payout(self, amount: int) -> bool:
        return amount >= self.minimum_payout_cents

    def instant_transfer_fee(self, amount: int) -> InstantFee:
        fee = round_half_up(amount * self.instant_fee_percent)
        return InstantFee(
            amount=amount,
            fee=fee,
            payout=amount - fee,
            fee_percent=self.instant_fee_percent,
        )

    def estimate_net_per_ticket(self, price: int) -> int:
        return self.calculate(price).net


fee_calculator = FeeCalculator.from_settings()
