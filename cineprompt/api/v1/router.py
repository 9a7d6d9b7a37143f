from fastapi import APIRouter

from cineprompt.api.v1 import catalog, workspace


api_router = APIRouter(prefix="/v1")

api_router.include_router(catalog.router)
api_router.include_router(workspace.router)
