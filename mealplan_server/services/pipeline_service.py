"""
Customer pipeline summary for the admin dashboard
"""

import logging
from datetime import timedelta
from typing import Optional

from ..config.settings import Settings, settings as default_settings
from ..core.clock import Clock
from ..core.database import DatabaseManager
from ..models.pipeline import PipelineStage, PipelineSummary, PlanSegment
from ..models.subscription import Subscription, SubscriptionStatus
from ..stores.catalog_store import PlanStore
from ..stores.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)

PIPELINE_STATUSES = (
    SubscriptionStatus.PENDING_APPROVAL,
    SubscriptionStatus.NEW_JOINER,
    SubscriptionStatus.CURIOUS,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.FROZEN,
    SubscriptionStatus.EXITING,
    SubscriptionStatus.CANCELLED,
)


class SubscriptionPipelineService:
    """Counts and revenue per lifecycle stage, segmented by plan"""

    def __init__(self, db: DatabaseManager, subscription_store: SubscriptionStore,
                 plan_store: PlanStore, clock: Clock, app_settings: Optional[Settings] = None):
        self.db = db
        self.subscriptions = subscription_store
        self.plans = plan_store
        self.clock = clock
        self.settings = app_settings or default_settings

    def summarize(self) -> PipelineSummary:
        """
        One stage per pipeline status.
        Cancelled only includes subscriptions that ended within the lookback window;
        subscriptions whose plan is gone are left out.
        """
        cutoff = self.clock.today() - timedelta(days=self.settings.cancelled_lookback_days)

        with self.db.snapshot():
            plans = self.plans.list_all()
            plans_by_id = {plan.id: plan for plan in plans}
            subscriptions = self.subscriptions.list(statuses=PIPELINE_STATUSES)

        def revenue(subscription: Subscription) -> int:
            # Unpriced subscriptions are valued at the plan's list price
            return subscription.price_charged_cents or plans_by_id[subscription.plan_id].base_price_cents

        stages = []
        for status in PIPELINE_STATUSES:
            members = [
                s for s in subscriptions
                if s.status == status and s.plan_id in plans_by_id
                and (status != SubscriptionStatus.CANCELLED or s.end_date >= cutoff)
            ]
            by_plan = []
            for plan in plans:
                plan_members = [s for s in members if s.plan_id == plan.id]
                by_plan.append(PlanSegment(
                    plan_id=plan.id,
                    plan_code=plan.code,
                    plan_name=plan.name,
                    count=len(plan_members),
                    revenue_cents=sum(revenue(s) for s in plan_members),
                ))
            stages.append(PipelineStage(
                status=status,
                count=len(members),
                revenue_cents=sum(revenue(s) for s in members),
                by_plan=by_plan,
            ))

        logger.debug("Pipeline summary built from %d subscriptions", len(subscriptions))
        return PipelineSummary(stages=stages)
