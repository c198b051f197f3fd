"""
PackVault services.

Business logic for pack openings, card valuation, and claim eligibility.
The database-backed ledger lives in packvault.services.ledger.
"""

from packvault.services.catalog import CardCatalog
from packvault.services.claims import (
    ClaimDecision,
    ClaimState,
    claim_day,
    claim_window_start,
    daily_claim_state,
    evaluate_daily_claim,
    evaluate_hourly_accrual,
    is_daily_claim_eligible,
    is_hourly_accrual_eligible,
    next_daily_reset,
)
from packvault.services.pack_sampler import draw_pack, draw_pack_for, pick_card, sample_rarity
from packvault.services.valuation import rating_multiplier, sell_value

__all__ = [
    "CardCatalog",
    "ClaimDecision",
    "ClaimState",
    "claim_day",
    "claim_window_start",
    "daily_claim_state",
    "draw_pack",
    "draw_pack_for",
    "evaluate_daily_claim",
    "evaluate_hourly_accrual",
    "is_daily_claim_eligible",
    "is_hourly_accrual_eligible",
    "next_daily_reset",
    "pick_card",
    "rating_multiplier",
    "sample_rarity",
    "sell_value",
]
