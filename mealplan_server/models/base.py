"""
Shared model bases
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TimestampMixin(BaseModel):
    """created_at / updated_at columns"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """Row-backed entity"""

    model_config = {"from_attributes": True}
