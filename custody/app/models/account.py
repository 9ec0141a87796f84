"""
Account database model.

Mirrors the identity provider's profile data the custody core needs:
role and, for riders, the home zone.
"""

from sqlalchemy import Column, Integer, String, Boolean, Enum
from sqlalchemy.sql import func
from custody.app.db.session import Base, UTCDateTime
from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import Zone


class Account(Base):
    """
    Account model.
    
    Role is read from here on every request; a role claimed by the
    caller is never trusted.
    """
    __tablename__ = "accounts"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    role = Column(Enum(ActorRole), nullable=False, index=True)
    
    # Riders only
    home_zone = Column(Enum(Zone), nullable=True, index=True)
    
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Account(id={self.id}, name='{self.name}', role='{self.role.value}')>"
