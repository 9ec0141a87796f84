"""
Package Pydantic schemas.

Request and response models for booking, feeds and rider actions. Code
fields appear only on the response model of the party allowed to see them.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from custody.app.core.config import settings
from custody.app.models.package_enums import PackageStatus, PackageSize, Zone, VerificationKind


class RouteIn(BaseModel):
    pickup_address: str = Field(..., min_length=1, max_length=500)
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_zone: Zone


class PackageCreate(BaseModel):
    """Schema for booking a new package."""
    route: RouteIn
    description: str = Field(..., min_length=1, max_length=500, description="What is being sent")
    size: PackageSize = PackageSize.SMALL
    declared_value: float = Field(
        ..., ge=0, le=settings.max_declared_value, allow_inf_nan=False, description="Declared value in KES"
    )
    weight_kg: float = Field(default=1.0, gt=0, description="Weight in kilograms")


class PackageResponse(BaseModel):
    """Package as seen by riders. Carries no verification codes."""
    id: int
    tracking_code: str
    customer_id: int
    collection_rider_id: Optional[int]
    delivery_rider_id: Optional[int]
    pickup_address: str
    delivery_address: str
    delivery_zone: Zone
    description: str
    size: PackageSize
    weight_kg: float
    declared_value: float
    base_fee: int
    protection_fee: int
    total_fee: int
    is_high_value: bool
    warehouse_verified: bool
    delivery_verified: bool
    status: PackageStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerPackageResponse(PackageResponse):
    """The customer hands the delivery code to the delivery rider at the door."""
    delivery_code: Optional[str] = None


class AdminPackageResponse(PackageResponse):
    """The hub hands the warehouse code to the collection rider."""
    warehouse_code: Optional[str] = None


class PackageListResponse(BaseModel):
    packages: List[PackageResponse]
    total: int


class CustomerPackageListResponse(BaseModel):
    packages: List[CustomerPackageResponse]
    total: int


class AdminPackageListResponse(BaseModel):
    packages: List[AdminPackageResponse]
    total: int


class VerifyCodeRequest(BaseModel):
    kind: VerificationKind
    code: str = Field(..., min_length=1, max_length=12)


class VerifiedResponse(BaseModel):
    package_id: int
    kind: VerificationKind
    verified_at: datetime
