from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

from domain.enums import HouseholdMatchMode, HouseholdRuleType, Strictness


class HouseholdAvoidRuleCreate(BaseModel):
    """Length/normalization checks happen in the service (they depend on match_mode)"""

    rule_type: HouseholdRuleType
    match_mode: HouseholdMatchMode
    match_value: str
    strictness: Strictness = Strictness.HARD
    note: Optional[str] = None


class HouseholdAvoidRuleResponse(BaseModel):
    id: UUID
    household_id: UUID
    rule_type: str
    match_mode: str
    match_value: str
    strictness: str
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
