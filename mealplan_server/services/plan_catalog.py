"""
Plan catalog.
Read access to plan definitions plus registration of new plans.
Plans are never edited once stored: subscriptions keep the pricing they were sold with.
"""

import logging
from typing import List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..models.plan import Plan, PlanCreate, PlanStatus, default_delivery_pattern
from ..stores.catalog_store import PlanStore
from .delivery_rules import pattern_includes_sunday

logger = logging.getLogger(__name__)


class PlanCatalog:
    """Plan lookups and registration"""

    def __init__(self, plan_store: PlanStore):
        self.plans = plan_store

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise NotFoundError("Plan", plan_id)
        return plan

    def get_plan_by_code(self, code: str) -> Plan:
        plan = self.plans.get_by_code(code)
        if plan is None:
            raise NotFoundError("Plan", code)
        return plan

    def list_plans(self, status: Optional[PlanStatus] = None) -> List[Plan]:
        return self.plans.list_all(status)

    def register_plan(self, data: PlanCreate) -> Plan:
        """
        Store a new plan.

        Args:
            data: plan definition; when delivery_pattern is omitted it is
                generated from delivery_days

        Returns:
            Plan: the stored plan

        Raises:
            ValidationError: the code is already taken
        """
        if self.plans.get_by_code(data.code) is not None:
            raise ValidationError(f"Plan code {data.code} already exists",
                                  details={"code": data.code})

        pattern = data.delivery_pattern or default_delivery_pattern(data.delivery_days)
        plan = self.plans.create(data, pattern)

        for issue in self.plan_issues(plan):
            logger.warning("Plan %s registered with configuration issue: %s", plan.code, issue)
        logger.info("Registered plan %s (id=%s)", plan.code, plan.id)
        return plan

    def require_active_plan(self, plan_id: int) -> Plan:
        """Plan a new subscription may be sold on"""
        plan = self.plans.get(plan_id)
        if plan is None:
            raise ValidationError(f"Plan {plan_id} does not exist", details={"plan_id": plan_id})
        if plan.status != PlanStatus.ACTIVE:
            raise ValidationError(f"Plan {plan.code} is archived", details={"plan_id": plan_id})
        return plan

    @staticmethod
    def effective_price_cents(plan: Plan) -> int:
        return plan.effective_price_cents

    @staticmethod
    def plan_issues(plan: Plan) -> List[str]:
        """Configuration problems that do not block storage but skew kitchen counts"""
        issues = []
        if len(plan.delivery_pattern) != plan.delivery_days:
            issues.append(
                f"delivery_pattern has {len(plan.delivery_pattern)} weekdays "
                f"but delivery_days is {plan.delivery_days}"
            )
        if pattern_includes_sunday(plan.delivery_pattern):
            issues.append("delivery_pattern includes Sunday, which is never a delivery day")
        return issues
