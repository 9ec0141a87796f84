"""
Dispatch Assignment.

Admin-side orchestration over the state machine: bind a delivery rider to a
package at the hub and send it out, as one all-or-nothing unit. The ledger
still shows two events (DISPATCHED_TO_RIDER by the admin, OUT_FOR_DELIVERY by
the rider).
"""

import logging
from typing import List

from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.state_machine import PackageStateMachine
from custody.app.models.account import Account
from custody.app.models.enums import ActorRole
from custody.app.models.package import Package

logger = logging.getLogger(__name__)


class DispatchService:

    def __init__(self, state_machine: PackageStateMachine):
        self.state_machine = state_machine

    async def dispatch(
        self,
        admin: Actor,
        package_id: int,
        rider_id: int,
        override_zone: bool = False,
    ) -> Package:
        """
        Assign ``rider_id`` to a package at the hub and mark it out for delivery.

        Args:
            admin: Acting admin
            package_id: Package waiting at the hub
            rider_id: Active rider to bind
            override_zone: Allow a rider from another zone

        Raises:
            TransitionRejected: Wrong role/state, zone mismatch, not a rider,
                                inactive rider
            ConflictLost: A different rider already holds the delivery
            ResourceNotFoundError: Unknown package or rider
        """
        sm = self.state_machine
        sm.require_role(admin, ActorRole.ADMIN, package_id)

        async with sm.transaction(package_id):
            rider = await sm.accounts.get_rider(rider_id, package_id)
            package = await sm.packages.get(package_id)
            package = await sm.bind_delivery_rider(admin, package, rider, override_zone)
            package = await sm.start_delivery(admin, package, rider)

        logger.info(
            "Package %s dispatched to rider %s by admin %s", package_id, rider_id, admin.id
        )
        return package

    async def candidate_riders(self, package_id: int) -> List[Account]:
        """Active riders in the package's delivery zone, or every active rider if none."""
        package = await self.state_machine.packages.get(package_id)
        riders = await self.state_machine.accounts.list_riders(package.delivery_zone)
        if riders:
            return riders
        return await self.state_machine.accounts.list_riders()
