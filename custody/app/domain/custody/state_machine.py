"""
Package State Machine.

Owns every package mutation. Each operation runs as one unit:

    lock package → read → check guards → compare-and-swap → ledger append → commit

A failing guard raises before anything is written, and any failure after a
write rolls the whole unit back, so a status change never exists without its
custody entry (or the reverse). Change records go to the feed only after
commit.

Verification is a side gate: a high-value package waits in ``at_warehouse`` /
``out_for_delivery`` until the bound rider enters the matching code, and only
the ``delivered`` transition consults the delivery flag.
"""

import hmac
import logging
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from custody.app.core.config import settings as default_settings
from custody.app.core.exceptions import (
    AppException,
    CodeMismatch,
    ConflictLost,
    InsufficientPermissionsError,
    TransitionGuard,
    TransitionRejected,
    ValidationError,
)
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.credentials import generate_handoff_codes, generate_tracking_code
from custody.app.domain.custody.fee_engine import compute_fees
from custody.app.domain.custody.ledger import CustodyLedger
from custody.app.domain.custody.locking import PackageLockRegistry, package_locks
from custody.app.domain.custody.repository import AccountDirectory, PackageRepository
from custody.app.models.account import Account
from custody.app.models.custody_enums import CustodyEvent
from custody.app.models.custody_log import CustodyLogEntry
from custody.app.models.enums import ActorRole
from custody.app.models.package import Package
from custody.app.models.package_enums import (
    PackageSize,
    PackageStatus,
    STATUS_SEQUENCE,
    TERMINAL_STATUSES,
    VerificationKind,
    Zone,
)
from custody.app.services.change_feed import ChangeFeed, NullChangeFeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    pickup_address: str
    delivery_address: str
    delivery_zone: Any


@dataclass(frozen=True)
class VerifiedResult:
    package: Package
    kind: VerificationKind
    verified_at: datetime


def is_forward_transition(current: PackageStatus, new: PackageStatus) -> bool:
    """
    True if ``new`` lies strictly ahead of ``current`` on the custody path,
    or ``new`` is ``cancelled`` and ``current`` is not terminal.
    """
    if current in TERMINAL_STATUSES:
        return False
    if new == PackageStatus.CANCELLED:
        return True
    return STATUS_SEQUENCE.index(new) > STATUS_SEQUENCE.index(current)


def can_view_package(actor: Actor, package: Package) -> bool:
    """Owning customer, either bound rider, or any admin."""
    if actor.role == ActorRole.ADMIN:
        return True
    if actor.role == ActorRole.CUSTOMER:
        return package.customer_id == actor.id
    return actor.id in (package.collection_rider_id, package.delivery_rider_id)


# Per-kind verification wiring: bound rider column, required status,
# verified flag column, stored code column, ledger event
_VERIFICATION_GATES = {
    VerificationKind.WAREHOUSE: (
        "collection_rider_id",
        PackageStatus.AT_WAREHOUSE,
        "warehouse_verified",
        "warehouse_code",
        CustodyEvent.OTP_WAREHOUSE_VERIFIED,
    ),
    VerificationKind.DELIVERY: (
        "delivery_rider_id",
        PackageStatus.OUT_FOR_DELIVERY,
        "delivery_verified",
        "delivery_code",
        CustodyEvent.OTP_DELIVERY_VERIFIED,
    ),
}


class PackageStateMachine:

    def __init__(
        self,
        db: AsyncSession,
        locks: PackageLockRegistry = None,
        change_feed: ChangeFeed = None,
        config=None,
    ):
        self.db = db
        self.packages = PackageRepository(db)
        self.accounts = AccountDirectory(db)
        self.ledger = CustodyLedger(db)
        self.locks = locks if locks is not None else package_locks
        self.change_feed = change_feed or NullChangeFeed()
        self.config = config or default_settings
        self._pending_changes: List[Dict[str, Any]] = []

    # Transaction plumbing

    @asynccontextmanager
    async def transaction(self, package_id: Optional[int] = None):
        """
        Run one all-or-nothing custody unit.

        Holds the package lock (when a package id is given) across the whole
        read-check-write-commit sequence. Publishes change records only after
        a successful commit.
        """
        self._pending_changes = []
        lock = self.locks.hold(package_id) if package_id is not None else nullcontext()
        async with lock:
            try:
                yield
                await self.db.commit()
            except AppException as exc:
                await self.db.rollback()
                logger.warning(
                    "Custody operation rejected for package %s: %s %s",
                    package_id, exc.error_code, exc.details,
                )
                raise
            except Exception:
                await self.db.rollback()
                raise

        changes, self._pending_changes = self._pending_changes, []
        for change in changes:
            logger.info(
                "Package %s: %s by %s %s",
                change["package_id"], change["event"], change["actor_role"], change["actor_id"],
            )
            await self.change_feed.publish(change)

    async def _record(
        self,
        package: Package,
        actor: Actor,
        event: CustodyEvent,
        location: Optional[str],
        notes: Optional[str] = None,
    ) -> CustodyLogEntry:
        entry = await self.ledger.append(package.id, actor, event, location, notes)
        self._pending_changes.append({
            "package_id": package.id,
            "tracking_code": package.tracking_code,
            "status": package.status.value,
            "event": event.value,
            "actor_id": actor.id,
            "actor_role": actor.role.value,
            "occurred_at": entry.created_at.isoformat(),
        })
        return entry

    async def _swap(
        self,
        package: Package,
        expected: Dict[str, Any],
        values: Dict[str, Any],
        lost: AppException,
    ) -> Package:
        """
        Compare-and-swap ``values`` onto ``package`` and reload it.

        Raises ``lost`` when the row no longer matches ``expected``.
        """
        new_status = values.get("status")
        if new_status is not None and not is_forward_transition(package.status, new_status):
            raise TransitionRejected(
                TransitionGuard.WRONG_STATE,
                f"Cannot move package from {package.status.value} to {new_status.value}",
                package.id,
            )
        if not await self.packages.update_if_matches(package.id, expected, values):
            raise lost
        return await self.packages.get(package.id)

    # Guards

    @staticmethod
    def require_role(actor: Actor, role: ActorRole, package_id: Optional[int] = None) -> None:
        if actor.role != role:
            raise TransitionRejected(
                TransitionGuard.WRONG_ROLE,
                f"Only a {role.value} can perform this action",
                package_id,
            )

    @staticmethod
    def _require_status(package: Package, *allowed: PackageStatus) -> None:
        if package.status not in allowed:
            raise TransitionRejected(
                TransitionGuard.WRONG_STATE,
                f"Package is {package.status.value}, expected "
                + " or ".join(s.value for s in allowed),
                package.id,
            )

    @staticmethod
    def _require_bound(package: Package, column: str, actor: Actor, label: str) -> None:
        bound = getattr(package, column)
        if bound is None:
            raise TransitionRejected(
                TransitionGuard.NOT_BOUND,
                f"No {label} is assigned to this package",
                package.id,
            )
        if bound != actor.id:
            raise TransitionRejected(
                TransitionGuard.WRONG_ACTOR,
                f"This package is assigned to another {label}",
                package.id,
            )

    # Operations

    async def create_package(
        self,
        actor: Actor,
        route: Route,
        description: str,
        size: Any = PackageSize.SMALL,
        declared_value: float = 0,
        weight_kg: float = 1.0,
    ) -> Package:
        """
        Book a new package for the acting customer.

        Assigns a tracking code, freezes the fee breakdown and, for a
        high-value package, draws the two handoff codes.

        Raises:
            TransitionRejected: Actor is not a customer
            ValidationError: Missing route or description, unknown zone/size,
                             negative declared value
        """
        self.require_role(actor, ActorRole.CUSTOMER)

        pickup_address = (route.pickup_address or "").strip()
        delivery_address = (route.delivery_address or "").strip()
        description = (description or "").strip()
        if not pickup_address:
            raise ValidationError("Pickup address is required", field="pickup_address")
        if not delivery_address:
            raise ValidationError("Delivery address is required", field="delivery_address")
        if not description:
            raise ValidationError("Item description is required", field="description")
        try:
            zone = Zone(route.delivery_zone)
        except ValueError:
            raise ValidationError(f"Unknown delivery zone: {route.delivery_zone}", field="delivery_zone")
        try:
            size = PackageSize(size)
        except ValueError:
            raise ValidationError(f"Unknown size: {size}", field="size")
        if weight_kg is None or weight_kg <= 0:
            raise ValidationError("Weight must be positive", field="weight_kg")

        fees = compute_fees(
            declared_value,
            base_fee=self.config.base_fee,
            protection_threshold=self.config.protection_threshold,
            protection_rate=self.config.protection_rate,
            high_value_threshold=self.config.high_value_threshold,
            max_declared_value=self.config.max_declared_value,
        )
        warehouse_code = delivery_code = None
        if fees.is_high_value:
            warehouse_code, delivery_code = generate_handoff_codes(self.config.verification_code_length)

        now = datetime.now(timezone.utc)
        package = Package(
            customer_id=actor.id,
            pickup_address=pickup_address,
            delivery_address=delivery_address,
            delivery_zone=zone,
            description=description,
            size=size,
            weight_kg=weight_kg,
            declared_value=declared_value,
            base_fee=fees.base_fee,
            protection_fee=fees.protection_fee,
            total_fee=fees.total_fee,
            is_high_value=fees.is_high_value,
            warehouse_code=warehouse_code,
            delivery_code=delivery_code,
            warehouse_verified=False,
            delivery_verified=False,
            status=PackageStatus.SEARCHING_RIDER,
            created_at=now,
            updated_at=now,
        )

        async with self.transaction():
            await self.packages.add(
                package,
                lambda: generate_tracking_code(
                    self.config.tracking_prefix, self.config.tracking_code_length
                ),
                attempts=self.config.tracking_code_attempts,
            )
            await self._record(
                package, actor, CustodyEvent.ORDER_PLACED, pickup_address,
                f"Booking confirmed - {self.config.currency} {fees.total_fee}",
            )
        return package

    async def accept_collection(self, actor: Actor, package_id: int) -> Package:
        """
        Bind the acting rider as collection rider and mark the package picked up.

        Raises:
            ConflictLost: Another rider already holds the collection
            TransitionRejected: Wrong role or state
        """
        self.require_role(actor, ActorRole.RIDER, package_id)
        async with self.transaction(package_id):
            package = await self.packages.get(package_id)
            if package.collection_rider_id is not None and package.collection_rider_id != actor.id:
                raise ConflictLost("Package already accepted by another rider", package_id)
            self._require_status(package, PackageStatus.SEARCHING_RIDER)
            package = await self._swap(
                package,
                {"status": PackageStatus.SEARCHING_RIDER, "collection_rider_id": None},
                {"status": PackageStatus.PICKED_UP, "collection_rider_id": actor.id},
                ConflictLost("Package already accepted by another rider", package_id),
            )
            await self._record(
                package, actor, CustodyEvent.COLLECTED_FROM_CUSTOMER,
                package.pickup_address, "Package collected",
            )
        return package

    async def mark_at_warehouse(self, actor: Actor, package_id: int) -> Package:
        """The bound collection rider hands the package in at the hub."""
        self.require_role(actor, ActorRole.RIDER, package_id)
        async with self.transaction(package_id):
            package = await self.packages.get(package_id)
            self._require_status(package, PackageStatus.PICKED_UP, PackageStatus.SEARCHING_RIDER)
            self._require_bound(package, "collection_rider_id", actor, "collection rider")
            package = await self._swap(
                package,
                {"status": package.status, "collection_rider_id": actor.id},
                {"status": PackageStatus.AT_WAREHOUSE},
                TransitionRejected(
                    TransitionGuard.WRONG_STATE, "Package changed while arriving at the hub", package_id
                ),
            )
            notes = "High value - verification required" if package.is_high_value else None
            await self._record(
                package, actor, CustodyEvent.ARRIVED_AT_WAREHOUSE, self.config.hub_location, notes,
            )
        return package

    async def accept_delivery(self, actor: Actor, package_id: int) -> Package:
        """
        Self-serve: a rider whose home zone matches claims the delivery job.

        The package stays ``at_warehouse`` until the admin dispatches it.
        """
        self.require_role(actor, ActorRole.RIDER, package_id)
        async with self.transaction(package_id):
            package = await self.packages.get(package_id)
            if package.delivery_rider_id is not None:
                if package.delivery_rider_id == actor.id:
                    raise TransitionRejected(
                        TransitionGuard.ALREADY_BOUND, "You already accepted this delivery", package_id
                    )
                raise ConflictLost("Delivery already accepted by another rider", package_id)
            self._require_status(package, PackageStatus.AT_WAREHOUSE)
            if actor.home_zone != package.delivery_zone:
                raise TransitionRejected(
                    TransitionGuard.ZONE_MISMATCH,
                    f"Package is bound for {package.delivery_zone.value}, "
                    f"your zone is {actor.home_zone.value if actor.home_zone else 'unset'}",
                    package_id,
                )
            package = await self._swap(
                package,
                {"status": PackageStatus.AT_WAREHOUSE, "delivery_rider_id": None},
                {"delivery_rider_id": actor.id},
                ConflictLost("Delivery already accepted by another rider", package_id),
            )
            await self._record(
                package, actor, CustodyEvent.ACCEPTED_DELIVERY_JOB, self.config.hub_location,
            )
        return package

    async def bind_delivery_rider(
        self,
        admin: Actor,
        package: Package,
        rider: Account,
        override_zone: bool = False,
    ) -> Package:
        """
        Admin binds ``rider`` as delivery rider. Must run inside ``transaction``.

        Re-binding the rider who already holds the job is accepted without a
        second write; any other bound rider wins.
        """
        self.require_role(admin, ActorRole.ADMIN, package.id)
        self._require_status(package, PackageStatus.AT_WAREHOUSE)
        if package.delivery_rider_id is not None and package.delivery_rider_id != rider.id:
            raise ConflictLost("Delivery already accepted by another rider", package.id)
        zone_matches = rider.home_zone == package.delivery_zone
        if not zone_matches and not override_zone:
            raise TransitionRejected(
                TransitionGuard.ZONE_MISMATCH,
                f"Rider zone {rider.home_zone.value if rider.home_zone else 'unset'} does not "
                f"match delivery zone {package.delivery_zone.value}",
                package.id,
            )
        if package.delivery_rider_id is None:
            package = await self._swap(
                package,
                {"status": PackageStatus.AT_WAREHOUSE, "delivery_rider_id": None},
                {"delivery_rider_id": rider.id},
                ConflictLost("Delivery already accepted by another rider", package.id),
            )

        notes = f"Assigned to {rider.name}"
        if not zone_matches:
            notes += " (zone override)"
        await self._record(
            package, admin, CustodyEvent.DISPATCHED_TO_RIDER, self.config.hub_location, notes,
        )
        return package

    async def start_delivery(self, admin: Actor, package: Package, rider: Account) -> Package:
        """
        Move a package with a bound delivery rider out of the hub.
        Must run inside ``transaction``.
        """
        self.require_role(admin, ActorRole.ADMIN, package.id)
        self._require_status(package, PackageStatus.AT_WAREHOUSE)
        if package.delivery_rider_id is None:
            raise TransitionRejected(
                TransitionGuard.NOT_BOUND, "No delivery rider is assigned to this package", package.id
            )
        if (
            self.config.require_warehouse_verification_for_dispatch
            and package.is_high_value
            and not package.warehouse_verified
        ):
            raise TransitionRejected(
                TransitionGuard.VERIFICATION_REQUIRED,
                "Warehouse handoff code must be verified before dispatch",
                package.id,
            )
        package = await self._swap(
            package,
            {"status": PackageStatus.AT_WAREHOUSE, "delivery_rider_id": rider.id},
            {"status": PackageStatus.OUT_FOR_DELIVERY},
            ConflictLost("Delivery already accepted by another rider", package.id),
        )
        await self._record(
            package, Actor.from_account(rider), CustodyEvent.OUT_FOR_DELIVERY, self.config.hub_location,
        )
        return package

    async def verify_code(
        self,
        actor: Actor,
        package_id: int,
        kind: Any,
        submitted_code: str,
    ) -> VerifiedResult:
        """
        Check a handoff code at the warehouse or at the door.

        A wrong code changes nothing and writes no custody entry; it is only
        logged. Attempts are not rate limited.

        Raises:
            ValidationError: Unknown kind, or package is not high-value
            TransitionRejected: Wrong actor/state or already verified
            CodeMismatch: Code does not match
        """
        try:
            kind = VerificationKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown verification kind: {kind}", field="kind")
        self.require_role(actor, ActorRole.RIDER, package_id)
        bound_column, required_status, flag_column, code_column, event = _VERIFICATION_GATES[kind]

        async with self.transaction(package_id):
            package = await self.packages.get(package_id)
            if not package.is_high_value:
                raise ValidationError(
                    "Verification does not apply to this package",
                    field="kind",
                    details={"package_id": package_id},
                )
            label = "collection rider" if kind == VerificationKind.WAREHOUSE else "delivery rider"
            self._require_bound(package, bound_column, actor, label)
            self._require_status(package, required_status)
            if getattr(package, flag_column):
                raise TransitionRejected(
                    TransitionGuard.ALREADY_VERIFIED,
                    f"The {kind.value} code was already verified",
                    package_id,
                )
            stored_code = getattr(package, code_column) or ""
            if not isinstance(submitted_code, str) or not hmac.compare_digest(
                submitted_code.encode(), stored_code.encode()
            ):
                logger.warning(
                    "Wrong %s code for package %s from rider %s", kind.value, package_id, actor.id
                )
                raise CodeMismatch(kind.value, package_id)

            package = await self._swap(
                package,
                {"status": required_status, bound_column: actor.id, flag_column: False},
                {flag_column: True},
                TransitionRejected(
                    TransitionGuard.ALREADY_VERIFIED,
                    f"The {kind.value} code was already verified",
                    package_id,
                ),
            )
            if kind == VerificationKind.WAREHOUSE:
                location, notes = self.config.hub_location, "High-value handoff confirmed"
            else:
                location, notes = package.delivery_address, "High-value delivery code confirmed"
            entry = await self._record(package, actor, event, location, notes)
        return VerifiedResult(package=package, kind=kind, verified_at=entry.created_at)

    async def mark_delivered(self, actor: Actor, package_id: int) -> Package:
        """
        The bound delivery rider completes the handoff.

        High-value packages require the delivery code to have been verified.
        """
        self.require_role(actor, ActorRole.RIDER, package_id)
        async with self.transaction(package_id):
            package = await self.packages.get(package_id)
            self._require_status(package, PackageStatus.OUT_FOR_DELIVERY)
            self._require_bound(package, "delivery_rider_id", actor, "delivery rider")
            expected = {"status": PackageStatus.OUT_FOR_DELIVERY, "delivery_rider_id": actor.id}
            if package.is_high_value:
                if not package.delivery_verified:
                    raise TransitionRejected(
                        TransitionGuard.VERIFICATION_REQUIRED,
                        "Delivery code must be verified before handoff",
                        package_id,
                    )
                expected["delivery_verified"] = True
            package = await self._swap(
                package,
                expected,
                {"status": PackageStatus.DELIVERED},
                TransitionRejected(
                    TransitionGuard.WRONG_STATE, "Package changed while being delivered", package_id
                ),
            )
            await self._record(
                package, actor, CustodyEvent.DELIVERED, package.delivery_address,
                "Package delivered successfully",
            )
        return package

    # Reads

    async def get_package(self, actor: Actor, package_id: int) -> Package:
        package = await self.packages.get(package_id)
        if not can_view_package(actor, package):
            raise InsufficientPermissionsError("You do not have access to this package")
        return package

    async def list_custody_log(self, package_id: int) -> List[CustodyLogEntry]:
        """Chain of custody for a package, oldest first."""
        await self.packages.get(package_id)
        return await self.ledger.list_for_package(package_id)
