"""
Custody log schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from custody.app.models.custody_enums import CustodyEvent
from custody.app.models.enums import ActorRole


class CustodyLogEntryResponse(BaseModel):
    id: int
    package_id: int
    actor_id: int
    actor_role: ActorRole
    event: CustodyEvent
    location: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class CustodyLogResponse(BaseModel):
    entries: List[CustodyLogEntryResponse]
    total: int
