"""
Admin schemas: dispatch requests, rider roster and the hub dashboard.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import Zone


class AccountResponse(BaseModel):
    """Schema for account response."""
    id: int
    name: str
    phone: str
    role: ActorRole
    home_zone: Optional[Zone]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RiderListResponse(BaseModel):
    riders: List[AccountResponse]
    total: int
    zone: Optional[Zone] = None
    zone_fallback: bool = Field(
        default=False,
        description="True when no rider serves the zone and every active rider is listed"
    )


class DispatchRequest(BaseModel):
    rider_id: int = Field(..., gt=0)
    override_zone: bool = False


class SummaryResponse(BaseModel):
    """Hub dashboard counters. In transit covers searching_rider, picked_up and out_for_delivery."""
    at_hub: int
    in_transit: int
    delivered: int
    total_fees: int
    value_in_transit: float
