"""
Kitchen routes: daily demand, upcoming days, diagnostics and the month calendar
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...services import ServiceRegistry
from ..deps import get_services

router = APIRouter()


@router.get("/daily-demand")
def daily_demand(target_date: Optional[date] = None, services: ServiceRegistry = Depends(get_services)):
    return create_success_response(services.demand.compute_daily_demand(target_date))


@router.get("/daily-orders")
def daily_orders(
    days: Optional[int] = Query(None, ge=1, le=31),
    start: Optional[date] = None,
    services: ServiceRegistry = Depends(get_services)
):
    """Preparation lists for the next few days (3 by default)"""
    return create_success_response(services.demand.compute_upcoming_demand(days, start))


@router.get("/diagnostics")
def diagnostics(target_date: Optional[date] = None, services: ServiceRegistry = Depends(get_services)):
    return create_success_response(services.diagnostics.compute_daily_diagnostics(target_date))


@router.get("/calendar")
def calendar(
    year: Optional[int] = Query(None, ge=1),
    month: Optional[int] = Query(None, ge=1, le=12),
    services: ServiceRegistry = Depends(get_services)
):
    """Month grid of meal counts; defaults to the current month"""
    today = services.clock.today()
    return create_success_response(
        services.demand.compute_month_calendar(year or today.year, month or today.month)
    )
