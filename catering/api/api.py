"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from catering.api.endpoints import auth, categories, health, menus, public

api_router = APIRouter()

# Registration, admin token login, browser sessions
api_router.include_router(auth.router)

# Admin back-office (bearer token required)
api_router.include_router(categories.router)
api_router.include_router(menus.router)

# Storefront catalogue, health
api_router.include_router(public.router)
api_router.include_router(health.router)
