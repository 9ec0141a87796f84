"""
Custody Log database model.

Immutable chain-of-custody records, one per transition or verification.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Enum, event
from sqlalchemy.orm import Session
from custody.app.db.session import Base, UTCDateTime
from custody.app.models.enums import ActorRole
from custody.app.models.custody_enums import CustodyEvent
from custody.app.core.exceptions import LedgerImmutableError


class CustodyLogEntry(Base):
    """
    Custody Log Entry model.
    
    Append-only: written in the same transaction as the package mutation it
    records. NO updates or deletions allowed.
    
    Enforced for flushed instances and for bulk ORM update()/delete()
    statements run through a Session. Core statements executed directly on
    a Connection bypass the ORM; revoke UPDATE and DELETE on custody_log
    from the application role to close that path in the store itself.
    """
    __tablename__ = "custody_log"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # References
    package_id = Column(Integer, ForeignKey('packages.id'), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    actor_role = Column(Enum(ActorRole), nullable=False)
    
    # Content
    event = Column(Enum(CustodyEvent), nullable=False, index=True)
    location = Column(String(500), nullable=True)
    notes = Column(String(500), nullable=True)
    
    # Timestamps (Immutable - no updated_at). Set by the ledger so that
    # ordering does not depend on the store's clock resolution.
    created_at = Column(UTCDateTime, nullable=False, index=True)
    
    def __repr__(self):
        return f"<CustodyLogEntry(id={self.id}, package_id={self.package_id}, event='{self.event.value}')>"


@event.listens_for(CustodyLogEntry, "before_update")
def _reject_update(mapper, connection, target):
    raise LedgerImmutableError(target.id, "update")


@event.listens_for(CustodyLogEntry, "before_delete")
def _reject_delete(mapper, connection, target):
    raise LedgerImmutableError(target.id, "delete")


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_rewrite(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is not None and mapper.class_ is CustodyLogEntry:
        operation = "update" if orm_execute_state.is_update else "delete"
        raise LedgerImmutableError(None, f"bulk {operation}")
