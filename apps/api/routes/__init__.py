from .ingestion_jobs import (
    AdminTokenDependency,
    build_admin_token_dependency,
    build_ingestion_jobs_router,
)

__all__ = [
    "AdminTokenDependency",
    "build_admin_token_dependency",
    "build_ingestion_jobs_router",
]
