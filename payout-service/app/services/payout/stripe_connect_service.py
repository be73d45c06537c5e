# app/services/payout/stripe_connect_service.py
"""
Card-gateway (Stripe Connect) account status for US/CA organizers.

Only the read side lives here: payouts on this rail are executed by the
gateway itself. The service keeps the local card_gateway_connect profile in
sync so status derivation and publish checks see current flags.
"""
import stripe
import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ExternalRailError
from app.models.payout_profile import PayoutProfile
from app.schemas.payout import PayoutRail
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class StripeConnectService:
    """Reads and syncs connected account status."""

    def __init__(self):
        if not stripe.api_key:
            stripe.api_key = settings.STRIPE_SECRET_KEY

    def _get_profile(self, organizer_id: str, db: Session) -> Optional[PayoutProfile]:
        return (
            db.query(PayoutProfile)
            .filter(
                PayoutProfile.organizer_id == organizer_id,
                PayoutProfile.rail == PayoutRail.card_gateway_connect.value,
            )
            .first()
        )

    async def get_account_status(self, organizer_id: str, db: Session) -> Dict[str, Any]:
        """
        Retrieves the connected account's current status from the gateway.

        Returns: {
            is_connected, account_id, charges_enabled, payouts_enabled,
            details_submitted, verified
        }
        """
        profile = self._get_profile(organizer_id, db)
        if not profile or not profile.connected_account_id:
            return {
                "is_connected": False,
                "account_id": None,
                "charges_enabled": False,
                "payouts_enabled": False,
                "details_submitted": False,
                "verified": False,
            }

        try:
            account = stripe.Account.retrieve(profile.connected_account_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving account status: {e}")
            raise ExternalRailError("Could not retrieve connected account status")

        charges_enabled = bool(account.charges_enabled)
        payouts_enabled = bool(account.payouts_enabled)
        details_submitted = bool(account.details_submitted)

        # Sync local state with the gateway
        profile.charges_enabled = charges_enabled
        profile.payouts_enabled = payouts_enabled
        profile.details_submitted = details_submitted
        profile.updated_at = utcnow()
        db.add(profile)
        db.commit()

        return {
            "is_connected": True,
            "account_id": account.id,
            "charges_enabled": charges_enabled,
            "payouts_enabled": payouts_enabled,
            "details_submitted": details_submitted,
            "verified": charges_enabled and payouts_enabled,
        }

    async def handle_account_updated(self, account_data: Dict[str, Any], db: Session) -> None:
        """Webhook handler for account.updated."""
        account_id = account_data.get("id")
        if not account_id:
            logger.warning("account.updated event without account ID")
            return

        profile = (
            db.query(PayoutProfile)
            .filter(
                PayoutProfile.rail == PayoutRail.card_gateway_connect.value,
                PayoutProfile.connected_account_id == account_id,
            )
            .first()
        )
        if not profile:
            logger.warning(f"No payout profile found for account {account_id}")
            return

        profile.charges_enabled = bool(account_data.get("charges_enabled", False))
        profile.payouts_enabled = bool(account_data.get("payouts_enabled", False))
        profile.details_submitted = bool(account_data.get("details_submitted", False))
        profile.updated_at = utcnow()
        db.add(profile)
        db.commit()
        logger.info(
            f"Synced account {account_id} for organizer {profile.organizer_id}: "
            f"charges={profile.charges_enabled} payouts={profile.payouts_enabled}"
        )
