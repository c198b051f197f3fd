from packvault.api.accounts import router as accounts_router
from packvault.api.cards import router as cards_router
from packvault.api.claims import router as claims_router
from packvault.api.health import router as health_router
from packvault.api.packs import router as packs_router
from packvault.api.tasks import router as tasks_router

__all__ = [
    "accounts_router",
    "cards_router",
    "claims_router",
    "health_router",
    "packs_router",
    "tasks_router",
]
