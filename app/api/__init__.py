from fastapi import APIRouter

from .routes import (
    account,
    admin,
    certificates,
    distribution,
    health,
    pass_updates,
    passes,
    signup,
    templates,
    tier,
)

api_router = APIRouter()

# Health check
api_router.include_router(health.router, tags=["health"])

# Accounts and tier progression
api_router.include_router(signup.router, prefix="/api/signup", tags=["signup"])
api_router.include_router(account.router, prefix="/api/account", tags=["account"])
api_router.include_router(tier.router, prefix="/api/tier", tags=["tier"])
api_router.include_router(certificates.router, prefix="/api/certificates", tags=["certificates"])

# Pass design and distribution
api_router.include_router(pass_updates.router, prefix="/passes", tags=["pass updates"])
api_router.include_router(passes.router, prefix="/passes", tags=["passes"])
api_router.include_router(distribution.router, prefix="/passes", tags=["distribution"])
api_router.include_router(templates.router, prefix="/templates", tags=["templates"])

# Public endpoints (no auth required)
api_router.include_router(distribution.public_router, tags=["public"])

# Admin: approval queues, production review, business domains
api_router.include_router(admin.router, prefix="/api/admin", tags=["admin"])
