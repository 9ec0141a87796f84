"""
Package tracking endpoints shared by every role.

Readable by the owning customer, either bound rider, or an admin. Codes are
shown only to the party that hands them over.
"""

from fastapi import APIRouter, Depends, Path
from custody.app.core.dependencies import get_current_actor, get_state_machine
from custody.app.core.exceptions import InsufficientPermissionsError
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.state_machine import PackageStateMachine, can_view_package
from custody.app.models.enums import ActorRole
from custody.app.models.package import Package
from custody.app.schemas.custody import CustodyLogEntryResponse, CustodyLogResponse
from custody.app.schemas.package import (
    PackageResponse,
    CustomerPackageResponse,
    AdminPackageResponse,
)

router = APIRouter(prefix="/packages", tags=["Tracking"])


def present_package(actor: Actor, package: Package) -> PackageResponse:
    if actor.role == ActorRole.CUSTOMER:
        return CustomerPackageResponse.model_validate(package)
    if actor.role == ActorRole.ADMIN:
        return AdminPackageResponse.model_validate(package)
    return PackageResponse.model_validate(package)


@router.get("/track/{tracking_code}", response_model=None)
async def track_package(
    tracking_code: str = Path(..., description="Tracking code, e.g. MHB-4K7Q2Z"),
    actor: Actor = Depends(get_current_actor),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    package = await state_machine.packages.get_by_tracking_code(tracking_code.strip().upper())
    if not can_view_package(actor, package):
        raise InsufficientPermissionsError("You do not have access to this package")
    return present_package(actor, package)


@router.get("/{package_id}/custody-log", response_model=CustodyLogResponse)
async def package_custody_log(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(get_current_actor),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """Chain of custody, oldest first."""
    await state_machine.get_package(actor, package_id)
    entries = await state_machine.list_custody_log(package_id)
    return CustodyLogResponse(
        entries=[CustodyLogEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
