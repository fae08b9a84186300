from fastapi import APIRouter
from app.api.v1.endpoints import incidents

router = APIRouter()

router.include_router(incidents.router, prefix="/incidents", tags=["incidents"])
