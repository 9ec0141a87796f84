"""
Package enumerations.
"""

import enum


class PackageStatus(str, enum.Enum):
    """
    Package status enumeration.
    
    Status flow:
        SEARCHING_RIDER → PICKED_UP → AT_WAREHOUSE → OUT_FOR_DELIVERY → DELIVERED
        CANCELLED is the only alternate terminal status
    """
    SEARCHING_RIDER = "searching_rider"
    PICKED_UP = "picked_up"
    AT_WAREHOUSE = "at_warehouse"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Position of each status along the forward custody path
STATUS_SEQUENCE = [
    PackageStatus.SEARCHING_RIDER,
    PackageStatus.PICKED_UP,
    PackageStatus.AT_WAREHOUSE,
    PackageStatus.OUT_FOR_DELIVERY,
    PackageStatus.DELIVERED,
]

TERMINAL_STATUSES = {PackageStatus.DELIVERED, PackageStatus.CANCELLED}


class PackageSize(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Zone(str, enum.Enum):
    """Delivery catchments served by the hub."""
    WESTLANDS = "Westlands"
    KASARANI = "Kasarani"
    CBD = "CBD"
    NGONG = "Ngong"
    EMBAKASI = "Embakasi"
    THIKA_ROAD = "Thika Road"
    KAREN = "Karen"
    RUIRU = "Ruiru"


class VerificationKind(str, enum.Enum):
    """Handoff points guarded by a verification code."""
    WAREHOUSE = "warehouse"
    DELIVERY = "delivery"
