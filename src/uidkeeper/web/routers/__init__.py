from uidkeeper.web.routers.auth import router as auth_router
from uidkeeper.web.routers.bots import router as bots_router
from uidkeeper.web.routers.stats import router as stats_router
from uidkeeper.web.routers.uids import router as uids_router
from uidkeeper.web.routers.users import router as users_router

__all__ = [
    "auth_router",
    "bots_router",
    "stats_router",
    "uids_router",
    "users_router",
]
