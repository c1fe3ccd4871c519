"""
Customer pipeline summary models (admin dashboard)
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .subscription import SubscriptionStatus


class PlanSegment(BaseModel):
    plan_id: int
    plan_code: str
    plan_name: Optional[str] = None
    count: int = 0
    revenue_cents: int = 0


class PipelineStage(BaseModel):
    status: SubscriptionStatus
    count: int = 0
    revenue_cents: int = 0
    by_plan: List[PlanSegment] = Field(default_factory=list)


class PipelineSummary(BaseModel):
    stages: List[PipelineStage]

    def stage(self, status: SubscriptionStatus) -> PipelineStage:
        for item in self.stages:
            if item.status == status:
                return item
        raise KeyError(status.value)
