"""
Health check endpoint
"""
from fastapi import APIRouter

from app.core.constants import SERVICE_NAME
from app.schemas.common import ApiResponse

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint
    """
    return ApiResponse.ok(data={"status": "ok", "service": SERVICE_NAME}).to_dict()
