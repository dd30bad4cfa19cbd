from fastapi import APIRouter

from schooldata.api.v1.endpoints import auth, data, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(data.router, prefix="/data", tags=["Data"])
