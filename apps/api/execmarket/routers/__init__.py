from .search import router as search_router
from .candidates import router as candidates_router
from .payments import router as payments_router
from .webhooks import router as webhooks_router
from .me import router as me_router
from .admin import router as admin_router

ROUTERS = (search_router, candidates_router, payments_router, webhooks_router, me_router, admin_router)

__all__ = [
    "ROUTERS",
    "search_router",
    "candidates_router",
    "payments_router",
    "webhooks_router",
    "me_router",
    "admin_router",
]
