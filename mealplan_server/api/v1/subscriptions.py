"""
Subscription routes.
Thin wrappers over SubscriptionStateService; all rules live in the service.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...core.exceptions import ValidationError
from ...models.subscription import (
    Actor,
    ActorKind,
    BulkStateChangeRequest,
    StateChangeRequest,
    SubscriptionCreate,
    SubscriptionStatus,
)
from ...services import ServiceRegistry
from ..deps import get_services

router = APIRouter()


@router.post("", status_code=201)
def create_subscription(
    req: SubscriptionCreate,
    created_by: Optional[str] = Query(None, description="Operator user id; system when omitted"),
    services: ServiceRegistry = Depends(get_services)
):
    if created_by and created_by.strip().lower() == ActorKind.SYSTEM.value:
        raise ValidationError("created_by cannot be the reserved system label",
                              details={"created_by": created_by})
    actor = Actor.user(created_by) if created_by else Actor.system()
    subscription = services.subscriptions.create_subscription_with_state(req, actor)
    return create_success_response(subscription, "Subscription created")


@router.get("")
def list_subscriptions(
    status: Optional[SubscriptionStatus] = None,
    user_id: Optional[str] = None,
    services: ServiceRegistry = Depends(get_services)
):
    return create_success_response(services.subscriptions.list_subscriptions(status, user_id))


@router.put("/bulk-state")
def bulk_change_state(req: BulkStateChangeRequest, services: ServiceRegistry = Depends(get_services)):
    """Apply one transition to many subscriptions; per-item failures are listed, not raised"""
    result = services.subscriptions.transition_many(
        req.subscription_ids, req.new_state, req.reason, Actor.user(req.changed_by)
    )
    message = f"Updated {len(result.updated)} of {len(req.subscription_ids)} subscriptions"
    return create_success_response(result, message)


@router.get("/{subscription_id}")
def get_subscription(subscription_id: int, services: ServiceRegistry = Depends(get_services)):
    return create_success_response(services.subscriptions.get_subscription(subscription_id))


@router.put("/{subscription_id}/state")
def change_state(subscription_id: int, req: StateChangeRequest,
                 services: ServiceRegistry = Depends(get_services)):
    result = services.subscriptions.execute_transition(
        subscription_id, req.new_state, req.reason, Actor.user(req.changed_by)
    )
    return create_success_response(result, f"Subscription moved to {req.new_state.value}")


@router.get("/{subscription_id}/history")
def get_history(subscription_id: int, services: ServiceRegistry = Depends(get_services)):
    return create_success_response(services.subscriptions.get_state_history(subscription_id))


@router.post("/{subscription_id}/payments/success")
def payment_success(subscription_id: int, services: ServiceRegistry = Depends(get_services)):
    before = services.subscriptions.get_subscription(subscription_id)
    services.subscriptions.process_payment_success(subscription_id)
    subscription = services.subscriptions.get_subscription(subscription_id)
    activated = before.status != subscription.status and subscription.status == SubscriptionStatus.ACTIVE
    return create_success_response(
        {"activated": activated, "subscription": subscription}, "Payment recorded"
    )


@router.post("/{subscription_id}/payments/failure")
def payment_failure(subscription_id: int, services: ServiceRegistry = Depends(get_services)):
    services.subscriptions.process_payment_failure(subscription_id)
    subscription = services.subscriptions.get_subscription(subscription_id)
    return create_success_response({"subscription": subscription}, "Subscription cancelled")
