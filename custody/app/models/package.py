"""
Package database model.

A package is the unit of custody moving from a customer, through the hub,
to its delivery address.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Enum, Boolean
from sqlalchemy.sql import func
from custody.app.db.session import Base, UTCDateTime
from custody.app.models.package_enums import PackageStatus, PackageSize, Zone


class Package(Base):
    """
    Package model.
    
    Fees, the high-value flag and the verification codes are derived once at
    creation and never rewritten. The two verified flags only move False → True.
    """
    __tablename__ = "packages"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_code = Column(String(32), unique=True, nullable=False, index=True)
    
    # Parties
    customer_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    collection_rider_id = Column(Integer, ForeignKey('accounts.id'), nullable=True, index=True)
    delivery_rider_id = Column(Integer, ForeignKey('accounts.id'), nullable=True, index=True)
    
    # Route
    pickup_address = Column(String(500), nullable=False)
    delivery_address = Column(String(500), nullable=False)
    delivery_zone = Column(Enum(Zone), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    size = Column(Enum(PackageSize), default=PackageSize.SMALL, nullable=False)
    weight_kg = Column(Float, default=1.0, nullable=False)
    
    # Valuation
    declared_value = Column(Float, nullable=False, default=0)
    base_fee = Column(Integer, nullable=False)
    protection_fee = Column(Integer, nullable=False)
    total_fee = Column(Integer, nullable=False)
    is_high_value = Column(Boolean, default=False, nullable=False)
    
    # Verification (high-value only)
    warehouse_code = Column(String(12), nullable=True)
    delivery_code = Column(String(12), nullable=True)
    warehouse_verified = Column(Boolean, default=False, nullable=False)
    delivery_verified = Column(Boolean, default=False, nullable=False)
    
    # Status
    status = Column(Enum(PackageStatus), default=PackageStatus.SEARCHING_RIDER, nullable=False, index=True)
    
    # Timestamps
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Package(id={self.id}, tracking='{self.tracking_code}', status='{self.status.value}')>"
