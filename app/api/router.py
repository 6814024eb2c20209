# app/api/router.py
from fastapi import APIRouter

from app.core.config import get_settings
from app.api import carts as carts_api
from app.api import proposals as proposals_api
from app.api import freight as freight_api

api_router = APIRouter()
settings = get_settings()

@api_router.get("/health", tags=["health"])
async def health_check():
    return {
        "status": "ok",
        "env": settings.ENV,
        "version": "0.1.0",
        "service": settings.PROJECT_NAME,
    }

api_router.include_router(carts_api.router)
api_router.include_router(proposals_api.router)
api_router.include_router(freight_api.router)
