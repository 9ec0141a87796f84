"""
Package and account persistence.

Thin mapping over the async session. Binding changes go through
``update_if_matches``, a single ``UPDATE ... WHERE`` whose row count tells
the caller whether its expected snapshot still held.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from custody.app.core.exceptions import (
    AppException,
    ResourceNotFoundError,
    TransitionGuard,
    TransitionRejected,
)
from custody.app.models.account import Account
from custody.app.models.enums import ActorRole
from custody.app.models.package import Package
from custody.app.models.package_enums import PackageStatus, Zone

logger = logging.getLogger(__name__)


class PackageRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, package_id: int) -> Package:
        """
        Load a package fresh from the store.

        Raises:
            ResourceNotFoundError: If no such package exists
        """
        result = await self.db.execute(
            select(Package)
            .where(Package.id == package_id)
            .execution_options(populate_existing=True)
        )
        package = result.scalar_one_or_none()
        if not package:
            raise ResourceNotFoundError("Package", package_id)
        return package

    async def get_by_tracking_code(self, tracking_code: str) -> Package:
        result = await self.db.execute(
            select(Package).where(Package.tracking_code == tracking_code)
        )
        package = result.scalar_one_or_none()
        if not package:
            raise ResourceNotFoundError("Package", tracking_code)
        return package

    async def tracking_code_exists(self, tracking_code: str) -> bool:
        result = await self.db.execute(
            select(func.count(Package.id)).where(Package.tracking_code == tracking_code)
        )
        return result.scalar() > 0

    async def add(self, package: Package, make_tracking_code: Callable[[], str], attempts: int = 5) -> Package:
        """
        Insert a new package under a tracking code not yet in the store.

        Draws a fresh code while the candidate is already taken. The unique
        index on ``tracking_code`` remains the final arbiter for inserts racing
        on the same code.

        Raises:
            AppException: If every drawn code was already taken
        """
        for attempt in range(1, attempts + 1):
            candidate = make_tracking_code()
            if not await self.tracking_code_exists(candidate):
                package.tracking_code = candidate
                self.db.add(package)
                await self.db.flush()
                return package
            logger.warning(
                "Tracking code collision on attempt %d/%d", attempt, attempts
            )
        raise AppException(
            message="Could not allocate a unique tracking code",
            error_code="ERR_STORE_001",
            status_code=503,
        )

    async def update_if_matches(
        self,
        package_id: int,
        expected: Dict[str, Any],
        values: Dict[str, Any],
    ) -> bool:
        """
        Compare-and-swap on a package row.

        Args:
            package_id: Package to update
            expected: Column name → value the row must currently hold
                      (None means the column must be NULL)
            values: Column name → new value

        Returns:
            True if exactly one row matched and was updated
        """
        conditions = [Package.id == package_id]
        for column_name, value in expected.items():
            column = getattr(Package, column_name)
            conditions.append(column.is_(None) if value is None else column == value)

        stmt = (
            update(Package)
            .where(*conditions)
            .values(**values, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    # Read models

    async def list_for_customer(self, customer_id: int) -> List[Package]:
        result = await self.db.execute(
            select(Package)
            .where(Package.customer_id == customer_id)
            .order_by(Package.created_at.desc(), Package.id.desc())
        )
        return list(result.scalars().all())

    async def list_collection_feed(self) -> List[Package]:
        """Packages still waiting for a collection rider."""
        result = await self.db.execute(
            select(Package)
            .where(
                Package.status == PackageStatus.SEARCHING_RIDER,
                Package.collection_rider_id.is_(None),
            )
            .order_by(Package.created_at, Package.id)
        )
        return list(result.scalars().all())

    async def list_delivery_feed(self, zone: Zone) -> List[Package]:
        """Packages at the hub, bound for ``zone``, with no delivery rider yet."""
        result = await self.db.execute(
            select(Package)
            .where(
                Package.status == PackageStatus.AT_WAREHOUSE,
                Package.delivery_zone == zone,
                Package.delivery_rider_id.is_(None),
            )
            .order_by(Package.created_at, Package.id)
        )
        return list(result.scalars().all())

    async def list_active_for_rider(self, rider_id: int) -> List[Package]:
        result = await self.db.execute(
            select(Package)
            .where(
                or_(
                    Package.collection_rider_id == rider_id,
                    Package.delivery_rider_id == rider_id,
                ),
                Package.status.notin_([PackageStatus.DELIVERED, PackageStatus.CANCELLED]),
            )
            .order_by(Package.updated_at.desc(), Package.id.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: PackageStatus) -> List[Package]:
        result = await self.db.execute(
            select(Package)
            .where(Package.status == status)
            .order_by(Package.created_at, Package.id)
        )
        return list(result.scalars().all())

    async def status_totals(self) -> Dict[PackageStatus, Dict[str, float]]:
        """Count, total fees and declared value per status."""
        result = await self.db.execute(
            select(
                Package.status,
                func.count(Package.id),
                func.coalesce(func.sum(Package.total_fee), 0),
                func.coalesce(func.sum(Package.declared_value), 0),
            ).group_by(Package.status)
        )
        return {
            status: {"count": count, "fees": fees, "declared_value": declared}
            for status, count, fees, declared in result.all()
        }


class AccountDirectory:
    """Read access to stored accounts (roles, rider home zones)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, account_id: int) -> Account:
        result = await self.db.execute(
            select(Account).where(Account.id == account_id)
        )
        account = result.scalar_one_or_none()
        if not account:
            raise ResourceNotFoundError("Account", account_id)
        return account

    async def get_rider(self, rider_id: int, package_id: Optional[int] = None) -> Account:
        """
        Load an account that must be an active rider.

        Raises:
            ResourceNotFoundError: Unknown account
            TransitionRejected: Account is not a rider, or is inactive
        """
        account = await self.get(rider_id)
        if account.role != ActorRole.RIDER:
            raise TransitionRejected(
                TransitionGuard.NOT_A_RIDER,
                f"Account {rider_id} is not a rider",
                package_id,
            )
        if not account.is_active:
            raise TransitionRejected(
                TransitionGuard.INACTIVE_RIDER,
                f"Rider {rider_id} is inactive",
                package_id,
            )
        return account

    async def list_riders(self, zone: Optional[Zone] = None) -> List[Account]:
        query = select(Account).where(
            Account.role == ActorRole.RIDER,
            Account.is_active == True,
        )
        if zone is not None:
            query = query.where(Account.home_zone == zone)
        result = await self.db.execute(query.order_by(Account.name, Account.id))
        return list(result.scalars().all())
