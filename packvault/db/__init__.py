from packvault.db.database import get_session, get_session_factory, init_db
from packvault.db.operations import (
    account_to_model,
    add_owned_cards,
    apply_daily_claim,
    apply_hourly_accrual,
    card_to_model,
    count_cards_by_rarity,
    create_account,
    credit_balance,
    debit_for_pack,
    get_account,
    get_card,
    get_owned_card,
    get_owned_cards,
    get_pack_openings,
    get_recent_sales,
    get_sale_totals,
    load_catalog,
    owned_card_to_model,
    pack_opening_to_model,
    record_card_sale,
    record_daily_claim,
    record_pack_opening,
    remove_owned_quantity,
    upsert_card,
)

__all__ = [
    "account_to_model",
    "add_owned_cards",
    "apply_daily_claim",
    "apply_hourly_accrual",
    "card_to_model",
    "count_cards_by_rarity",
    "create_account",
    "credit_balance",
    "debit_for_pack",
    "get_account",
    "get_card",
    "get_owned_card",
    "get_owned_cards",
    "get_pack_openings",
    "get_recent_sales",
    "get_sale_totals",
    "get_session",
    "get_session_factory",
    "init_db",
    "load_catalog",
    "owned_card_to_model",
    "pack_opening_to_model",
    "record_card_sale",
    "record_daily_claim",
    "record_pack_opening",
    "remove_owned_quantity",
    "upsert_card",
]
