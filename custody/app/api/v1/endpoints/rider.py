"""
Rider API Endpoints.

Job feeds and the rider-side custody actions. Riders never see handoff codes;
they receive them from the hub or the customer and enter them here.
"""

from fastapi import APIRouter, Depends, Path
from custody.app.core.guards import require_rider
from custody.app.core.dependencies import get_state_machine
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.state_machine import PackageStateMachine
from custody.app.schemas.package import (
    PackageResponse,
    PackageListResponse,
    VerifyCodeRequest,
    VerifiedResponse,
)

router = APIRouter(prefix="/rider", tags=["Rider - Custody"])


def _as_list(packages) -> PackageListResponse:
    return PackageListResponse(
        packages=[PackageResponse.model_validate(p) for p in packages],
        total=len(packages),
    )


# Feeds

@router.get("/feeds/collection", response_model=PackageListResponse)
async def collection_feed(
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """Every package still waiting for a collection rider, oldest first."""
    return _as_list(await state_machine.packages.list_collection_feed())


@router.get("/feeds/delivery", response_model=PackageListResponse)
async def delivery_feed(
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """Packages at the hub bound for the rider's home zone with no delivery rider yet."""
    if actor.home_zone is None:
        return _as_list([])
    return _as_list(await state_machine.packages.list_delivery_feed(actor.home_zone))


@router.get("/packages/active", response_model=PackageListResponse)
async def my_active_packages(
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    return _as_list(await state_machine.packages.list_active_for_rider(actor.id))


# Actions

@router.post("/packages/{package_id}/accept-collection", response_model=PackageResponse)
async def accept_collection(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    package = await state_machine.accept_collection(actor, package_id)
    return PackageResponse.model_validate(package)


@router.post("/packages/{package_id}/arrive-warehouse", response_model=PackageResponse)
async def arrive_at_warehouse(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    package = await state_machine.mark_at_warehouse(actor, package_id)
    return PackageResponse.model_validate(package)


@router.post("/packages/{package_id}/accept-delivery", response_model=PackageResponse)
async def accept_delivery(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """
    Claim a delivery job in the rider's own zone.

    The package stays at the hub until an admin dispatches it.
    """
    package = await state_machine.accept_delivery(actor, package_id)
    return PackageResponse.model_validate(package)


@router.post("/packages/{package_id}/verify", response_model=VerifiedResponse)
async def verify_handoff_code(
    request: VerifyCodeRequest,
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    """
    Enter the warehouse or delivery code for a high-value package.

    A wrong code returns 400 and changes nothing.
    """
    result = await state_machine.verify_code(actor, package_id, request.kind, request.code)
    return VerifiedResponse(
        package_id=result.package.id,
        kind=result.kind,
        verified_at=result.verified_at,
    )


@router.post("/packages/{package_id}/deliver", response_model=PackageResponse)
async def mark_delivered(
    package_id: int = Path(..., description="Package ID"),
    actor: Actor = Depends(require_rider),
    state_machine: PackageStateMachine = Depends(get_state_machine)
):
    package = await state_machine.mark_delivered(actor, package_id)
    return PackageResponse.model_validate(package)
