"""
Admin routes: lifecycle sweeps and the customer pipeline.
The sweep endpoints are meant for an external scheduler (cron) or an operator.
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...services import ServiceRegistry
from ..deps import get_services

router = APIRouter()


@router.post("/sweeps/activate-joiners")
def activate_new_joiners(services: ServiceRegistry = Depends(get_services)):
    activated = services.subscriptions.check_and_activate_new_joiners()
    return create_success_response({"activated": activated}, f"Activated {activated} subscriptions")


@router.post("/sweeps/cancel-exiting")
def cancel_exiting(services: ServiceRegistry = Depends(get_services)):
    cancelled = services.subscriptions.check_and_cancel_exiting_subscriptions()
    return create_success_response({"cancelled": cancelled}, f"Cancelled {cancelled} subscriptions")


@router.get("/pipeline")
def pipeline(services: ServiceRegistry = Depends(get_services)):
    return create_success_response(services.pipeline.summarize())
