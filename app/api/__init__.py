"""
API package initialization
"""
from fastapi import APIRouter
from app.api.routes import health, listings

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(
    listings.router, prefix="/listings", tags=["Listings"])
