"""
Usage Routes

GET /usage - Current month's usage and plan limits
"""

from fastapi import APIRouter, Depends

from nextrounds.core.auth import get_current_user
from nextrounds.schemas.schemas import UsageResponse
from nextrounds.services.usage_service import UsageService, get_usage_service

router = APIRouter(tags=["Usage"])


@router.get("/usage", response_model=UsageResponse, response_model_exclude_unset=True)
def get_usage(
    user: dict = Depends(get_current_user),
    usage: UsageService = Depends(get_usage_service)
):
    """
    Generations this month against the plan limit.

    Pro users get limit/remaining of -1 plus their subscription end date.
    """
    return {"success": True, "usage": usage.get_usage_summary(user["id"])}
