"""
Custody Ledger.

Append-only chain-of-custody log. Entries are written inside the caller's
transaction and committed together with the package mutation they record.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from custody.app.domain.custody.actor import Actor
from custody.app.models.custody_enums import CustodyEvent
from custody.app.models.custody_log import CustodyLogEntry


class CustodyLedger:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        package_id: int,
        actor: Actor,
        event: CustodyEvent,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CustodyLogEntry:
        """
        Record one custody event.

        Does not commit; the owning transition decides whether the entry
        and its package mutation become durable together.

        Args:
            package_id: Package the event belongs to
            actor: Party that performed the action
            event: What happened
            location: Free-text place of the event
            notes: Optional free-text remark

        Returns:
            The pending CustodyLogEntry (id assigned)
        """
        entry = CustodyLogEntry(
            package_id=package_id,
            actor_id=actor.id,
            actor_role=actor.role,
            event=event,
            location=location,
            notes=notes,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_for_package(self, package_id: int) -> List[CustodyLogEntry]:
        """Entries for one package, oldest first."""
        result = await self.db.execute(
            select(CustodyLogEntry)
            .where(CustodyLogEntry.package_id == package_id)
            .order_by(CustodyLogEntry.created_at, CustodyLogEntry.id)
        )
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 100) -> List[CustodyLogEntry]:
        """Most recent entries across all packages, newest first."""
        result = await self.db.execute(
            select(CustodyLogEntry)
            .order_by(CustodyLogEntry.created_at.desc(), CustodyLogEntry.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
