"""
Subscription plan models
"""

import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import BaseEntity, TimestampMixin

MONDAY = 1
SUNDAY = 7
LEGACY_SUNDAY = 0  # some stored patterns encode Sunday as 0
ALLOWED_DELIVERY_DAYS = (4, 6)


class BillingCycle(str, Enum):
    """Billing frequency"""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PlanStatus(str, Enum):
    """Catalog status"""
    ACTIVE = "active"
    ARCHIVED = "archived"


def default_delivery_pattern(delivery_days: int) -> List[int]:
    """Weekday pattern used when a plan is registered without one"""
    if delivery_days <= 4:
        return [1, 2, 3, 4]            # Mon-Thu
    if delivery_days <= 5:
        return [1, 2, 3, 4, 5]         # Mon-Fri
    return [1, 2, 3, 4, 5, 6]          # Mon-Sat


def _normalize_pattern(value) -> List[int]:
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            value = json.loads(text)
        else:
            # "1,2,3,4" form
            value = [part for part in text.split(",") if part.strip()]
    days = sorted({int(day) for day in value})
    for day in days:
        if day < LEGACY_SUNDAY or day > SUNDAY:
            raise ValueError(f"weekday {day} is outside 0..7")
    return days


class PlanBase(BaseModel):
    """Fields shared by create and read models"""
    code: str = Field(..., min_length=1, max_length=32, description="Short plan code, e.g. FOCUS")
    name: Optional[str] = Field(None, max_length=200)
    meals_per_day: int = Field(..., ge=1, le=2)
    delivery_days: int = Field(..., description="4 (half week) or 6 (full week)")
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    base_price_cents: int = Field(..., ge=0)
    discounted_price_cents: Optional[int] = Field(None, ge=0)

    @field_validator("delivery_days")
    @classmethod
    def validate_delivery_days(cls, v):
        if v not in ALLOWED_DELIVERY_DAYS:
            raise ValueError(f"delivery_days must be one of {ALLOWED_DELIVERY_DAYS}")
        return v


class PlanCreate(PlanBase):
    """Plan registration payload; pattern defaults from delivery_days"""
    delivery_pattern: Optional[List[int]] = None

    @field_validator("delivery_pattern", mode="before")
    @classmethod
    def validate_pattern(cls, v):
        if v is None:
            return v
        return _normalize_pattern(v)


class Plan(PlanBase, BaseEntity, TimestampMixin):
    """Stored plan"""
    id: int
    delivery_pattern: List[int]
    status: PlanStatus = PlanStatus.ACTIVE

    @field_validator("delivery_pattern", mode="before")
    @classmethod
    def parse_pattern(cls, v):
        return _normalize_pattern(v)

    @property
    def effective_price_cents(self) -> int:
        """Discounted price when one is set"""
        if self.discounted_price_cents is not None:
            return self.discounted_price_cents
        return self.base_price_cents
