"""
Actor roles enumeration.

Defines the role types that may act on a package.
"""

import enum


class ActorRole(str, enum.Enum):
    """
    Actor role enumeration.
    
    Roles:
        CUSTOMER: Books packages and owns them
        RIDER: Collects packages from customers or delivers them from the hub
        ADMIN: Operates the warehouse hub and dispatches delivery riders
    """
    CUSTOMER = "customer"
    RIDER = "rider"
    ADMIN = "admin"
