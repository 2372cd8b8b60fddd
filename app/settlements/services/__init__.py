"""
Settlement services.

- PaymentLinkService: issue and cancel payment requests
- StatusReconciler: conditional writes on payout_status
- PayoutOrchestrator: send the recipient and platform payout legs
- SettlementService: claim + orchestrate entry points
- PayoutProfileService: recipient payout destination
"""

from settlements.services.payment_link_service import PaymentLinkService
from settlements.services.payout_orchestrator import PayoutOrchestrator, PayoutOutcome
from settlements.services.payout_profile_service import PayoutProfileService
from settlements.services.reconciler import (
    ClaimOutcome,
    ClaimResult,
    StatusReconciler,
)
from settlements.services.settlement_service import SettlementService

__all__ = [
    "ClaimOutcome",
    "ClaimResult",
    "PaymentLinkService",
    "PayoutOrchestrator",
    "PayoutOutcome",
    "PayoutProfileService",
    "SettlementService",
    "StatusReconciler",
]
