from typing import Literal

from fastapi import APIRouter, Query

from eshop.api.deps import DB, AdminRateLimit
from eshop.schemas.analytics import DashboardResponse
from eshop.services.analytics_service import AnalyticsService

router = APIRouter(tags=["Analytics"], dependencies=[AdminRateLimit])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    db: DB,
    time_range: Literal["7d", "30d", "90d", "1y", "all"] = Query("30d"),
):
    """Sales figures for the time range; revenue excludes delivery."""
    return await AnalyticsService(db).get_dashboard(time_range)
