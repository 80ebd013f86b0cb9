from .modules import ADMIN_TOKEN_ENV_KEY, build_price_history_admin_router

__all__ = ["ADMIN_TOKEN_ENV_KEY", "build_price_history_admin_router"]
