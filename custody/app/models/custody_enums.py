"""
Custody event enumeration.
"""

import enum


class CustodyEvent(str, enum.Enum):
    """Events recorded in the chain-of-custody ledger."""
    ORDER_PLACED = "ORDER_PLACED"
    COLLECTED_FROM_CUSTOMER = "COLLECTED_FROM_CUSTOMER"
    ARRIVED_AT_WAREHOUSE = "ARRIVED_AT_WAREHOUSE"
    ACCEPTED_DELIVERY_JOB = "ACCEPTED_DELIVERY_JOB"
    DISPATCHED_TO_RIDER = "DISPATCHED_TO_RIDER"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    OTP_WAREHOUSE_VERIFIED = "OTP_WAREHOUSE_VERIFIED"
    OTP_DELIVERY_VERIFIED = "OTP_DELIVERY_VERIFIED"
    DELIVERED = "DELIVERED"
