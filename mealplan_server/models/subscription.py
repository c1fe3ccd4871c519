"""
Subscription lifecycle models
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import BaseEntity, TimestampMixin


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states; values are the stored strings"""
    PENDING_PAYMENT = "pending_payment"
    PENDING_APPROVAL = "Pending_Approval"
    NEW_JOINER = "New_Joiner"
    CURIOUS = "Curious"
    ACTIVE = "Active"
    FROZEN = "Frozen"
    EXITING = "Exiting"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED})

# Statuses that still occupy a kitchen slot
MEAL_ELIGIBLE_STATES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.FROZEN)


class PaymentMethod(str, Enum):
    """How the customer pays"""
    CREDIT_CARD = "credit_card"
    WIRE_TRANSFER = "wire_transfer"
    OTHER = "other"


class ActorKind(str, Enum):
    SYSTEM = "system"
    USER = "user"


class Actor(BaseModel):
    """Who requested a transition"""
    kind: ActorKind
    user_id: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def system(cls) -> "Actor":
        return cls(kind=ActorKind.SYSTEM)

    @classmethod
    def user(cls, user_id: str) -> "Actor":
        return cls(kind=ActorKind.USER, user_id=str(user_id))

    @property
    def audit_label(self) -> str:
        """Value written to history.changed_by"""
        if self.kind == ActorKind.SYSTEM:
            return ActorKind.SYSTEM.value
        return self.user_id


class SubscriptionCreate(BaseModel):
    """Subscription creation payload"""
    user_id: str = Field(..., min_length=1)
    plan_id: int
    start_date: date
    end_date: date
    price_charged_cents: int
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    auto_renewal: bool = True
    notes: Optional[str] = Field(None, max_length=1000)


class Subscription(BaseEntity, TimestampMixin):
    """Stored subscription"""
    id: int
    user_id: str
    plan_id: int
    status: SubscriptionStatus
    start_date: date
    end_date: date
    price_charged_cents: int
    payment_method: PaymentMethod
    auto_renewal: bool = True
    completed_cycles: int = Field(0, ge=0)
    notes: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class StateHistoryEntry(BaseEntity):
    """One row of the append-only transition log"""
    id: Optional[int] = None
    subscription_id: int
    previous_state: Optional[SubscriptionStatus] = None
    new_state: SubscriptionStatus
    reason: Optional[str] = None
    changed_by: str
    created_at: datetime


class TransitionResult(BaseModel):
    """Outcome of a successful transition"""
    success: bool = True
    subscription: Subscription
    history_entry: StateHistoryEntry


class BulkTransitionError(BaseModel):
    subscription_id: int
    error_code: str
    message: str


class BulkTransitionResult(BaseModel):
    updated: List[Subscription] = Field(default_factory=list)
    errors: List[BulkTransitionError] = Field(default_factory=list)


class StateChangeRequest(BaseModel):
    """Body of PUT /subscriptions/{id}/state"""
    new_state: SubscriptionStatus
    reason: Optional[str] = Field(None, max_length=500)
    changed_by: str = Field(..., min_length=1, description="Operator user id")

    @field_validator("changed_by")
    @classmethod
    def validate_changed_by(cls, v):
        if v.strip().lower() == ActorKind.SYSTEM.value:
            raise ValueError("changed_by cannot be the reserved system label")
        return v


class BulkStateChangeRequest(StateChangeRequest):
    """Body of PUT /subscriptions/bulk-state"""
    subscription_ids: List[int] = Field(..., min_length=1)
