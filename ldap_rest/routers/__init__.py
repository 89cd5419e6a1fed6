from .groups import router as groups_router
from .users import router as users_router

__all__ = ["groups_router", "users_router"]
