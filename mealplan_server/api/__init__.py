"""
API routes and endpoints.
"""

from fastapi import APIRouter

from .v1 import admin, kitchen, subscriptions

api_router = APIRouter()

api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(kitchen.router, prefix="/kitchen", tags=["kitchen"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
